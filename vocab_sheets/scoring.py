"""Score an attempt against the test it was taken on."""
from __future__ import annotations

from dataclasses import dataclass, field

from vocab_sheets.models import Attempt, Test


@dataclass
class ScoreResult:
    percentage: int
    correct_count: int
    total_count: int
    per_question: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "percentage": self.percentage,
            "correct_count": self.correct_count,
            "total_count": self.total_count,
            "per_question": dict(self.per_question),
        }


def is_correct(answer: str, correct_answer: str) -> bool:
    """Exact, case-sensitive comparison.  Option order never matters."""
    return answer == correct_answer


def percentage(correct_count: int, total_count: int) -> int:
    """round(correct / total * 100) with halves rounded up.

    Integer arithmetic, so 2/3 -> 67 and 1/8 -> 13 without float surprises.
    """
    if total_count <= 0:
        return 0
    return (200 * correct_count + total_count) // (2 * total_count)


def score(attempt: Attempt, test: Test) -> ScoreResult:
    """Pure function of the recorded answers and the test's correct answers.

    Every question counts toward the total; unanswered ones are wrong.  The
    cached ``Answer.is_correct`` flag is ignored and correctness recomputed.
    """
    per_question: dict[str, bool] = {}
    for q in test.questions:
        ans = attempt.answers.get(q.id)
        per_question[q.id] = ans is not None and is_correct(ans.answer, q.correct_answer)

    correct = sum(per_question.values())
    total = len(test.questions)
    return ScoreResult(
        percentage=percentage(correct, total),
        correct_count=correct,
        total_count=total,
        per_question=per_question,
    )
