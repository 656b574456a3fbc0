"""Tests for the scoring engine."""
from __future__ import annotations

import pytest

from vocab_sheets.models import IN_PROGRESS, Answer, Attempt, Question, Test
from vocab_sheets.scoring import is_correct, percentage, score


def _attempt(test: Test, answers: dict[str, str], flags: dict[str, bool] | None = None) -> Attempt:
    flags = flags or {}
    return Attempt(
        id="a1",
        test_id=test.id,
        student_id="student-1",
        status=IN_PROGRESS,
        started_at="2026-01-01T00:00:00+00:00",
        total_count=len(test.questions),
        answers={
            qid: Answer(
                question_id=qid,
                answer=text,
                is_correct=flags.get(qid, False),
                answered_at="2026-01-01T00:01:00+00:00",
            )
            for qid, text in answers.items()
        },
    )


def _small_test(n: int) -> Test:
    return Test(
        id="t1", name="t", variant=1, sheet_id="s1", created_at="",
        questions=[
            Question(id=f"q{i}", test_id="t1", word_id=f"w{i}", question_type="SPELLING",
                     question_text="?", correct_answer=f"word{i}", order_index=i)
            for i in range(n)
        ],
    )


class TestPercentage:
    @pytest.mark.parametrize("correct,total,expected", [
        (7, 10, 70),
        (2, 3, 67),
        (1, 3, 33),
        (1, 8, 13),
        (1, 2, 50),
        (0, 5, 0),
        (5, 5, 100),
    ])
    def test_rounding(self, correct, total, expected):
        assert percentage(correct, total) == expected

    def test_empty_test_scores_zero(self):
        assert percentage(0, 0) == 0


class TestIsCorrect:
    def test_exact_match(self):
        assert is_correct("terse", "terse")

    def test_case_sensitive(self):
        assert not is_correct("Terse", "terse")

    def test_whitespace_matters(self):
        assert not is_correct("terse ", "terse")


class TestScore:
    def test_seven_of_ten(self, sample_test):
        answers = {}
        for i, q in enumerate(sample_test.questions):
            answers[q.id] = q.correct_answer if i < 7 else "wrong"
        result = score(_attempt(sample_test, answers), sample_test)
        assert result.percentage == 70
        assert result.correct_count == 7
        assert result.total_count == 10

    def test_two_of_three(self):
        test = _small_test(3)
        result = score(_attempt(test, {"q0": "word0", "q1": "word1", "q2": "nope"}), test)
        assert result.percentage == 67

    def test_unanswered_count_as_wrong(self):
        test = _small_test(4)
        result = score(_attempt(test, {"q0": "word0"}), test)
        assert result.correct_count == 1
        assert result.total_count == 4
        assert result.percentage == 25
        assert result.per_question == {"q0": True, "q1": False, "q2": False, "q3": False}

    def test_stored_flag_ignored(self):
        test = _small_test(2)
        attempt = _attempt(
            test,
            {"q0": "wrong", "q1": "word1"},
            flags={"q0": True, "q1": False},
        )
        result = score(attempt, test)
        assert result.per_question == {"q0": False, "q1": True}
        assert result.correct_count == 1

    def test_answers_to_other_questions_ignored(self):
        test = _small_test(2)
        result = score(_attempt(test, {"q0": "word0", "elsewhere": "word1"}), test)
        assert result.correct_count == 1
        assert result.total_count == 2

    def test_pure(self, sample_test):
        attempt = _attempt(sample_test, {sample_test.questions[0].id: "x"})
        assert score(attempt, sample_test) == score(attempt, sample_test)

    def test_no_questions(self):
        result = score(_attempt(_small_test(0), {}), _small_test(0))
        assert result.percentage == 0
        assert result.total_count == 0

    def test_to_dict(self):
        test = _small_test(1)
        d = score(_attempt(test, {"q0": "word0"}), test).to_dict()
        assert d == {
            "percentage": 100,
            "correct_count": 1,
            "total_count": 1,
            "per_question": {"q0": True},
        }
