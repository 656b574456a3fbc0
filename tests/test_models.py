"""Tests for data model serialization."""
from __future__ import annotations

from vocab_sheets.models import (
    IN_PROGRESS,
    MULTIPLE_CHOICE,
    SUBMITTED,
    Answer,
    Attempt,
    Question,
    Test,
)


def _question(qid="q1"):
    return Question(
        id=qid,
        test_id="t1",
        word_id="w1",
        question_type=MULTIPLE_CHOICE,
        question_text='Which is the definition of "terse"?',
        correct_answer="brief",
        options=["long", "brief", "loud", "slow"],
    )


class TestQuestion:
    def test_to_dict(self):
        d = _question().to_dict()
        assert d["correct_answer"] == "brief"
        assert d["options"] == ["long", "brief", "loud", "slow"]

    def test_answer_hidden(self):
        d = _question().to_dict(include_answer=False)
        assert "correct_answer" not in d
        assert d["options"] == ["long", "brief", "loud", "slow"]


class TestTest:
    def test_to_dict_without_answers(self):
        t = Test(id="t1", name="n", variant=1, sheet_id="s1", created_at="",
                 questions=[_question()])
        d = t.to_dict(include_answers=False)
        assert d["variant"] == 1
        assert all("correct_answer" not in q for q in d["questions"])


class TestAttempt:
    def test_status(self):
        a = Attempt(id="a1", test_id="t1", student_id="s", status=IN_PROGRESS,
                    started_at="", total_count=3)
        assert not a.is_submitted
        a.status = SUBMITTED
        assert a.is_submitted

    def test_to_dict_lists_answers(self):
        a = Attempt(
            id="a1", test_id="t1", student_id="s", status=IN_PROGRESS,
            started_at="", total_count=2,
            answers={"q1": Answer("q1", "brief", True, "2026-01-01T00:00:00+00:00")},
        )
        d = a.to_dict()
        assert d["answers"] == [{
            "question_id": "q1",
            "answer": "brief",
            "is_correct": True,
            "answered_at": "2026-01-01T00:00:00+00:00",
        }]
        assert d["score"] is None
