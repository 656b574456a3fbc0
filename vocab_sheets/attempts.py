"""Attempt lifecycle: start (or resume), auto-save answers, submit.

States are ``IN_PROGRESS`` and ``SUBMITTED``; "no attempt" is simply the
absence of a row.  A student has at most one open attempt per test.  Every
mutation for a (test, student) pair runs under an advisory lock for that
pair, and the store backs the open-attempt rule with a partial unique index,
so a racing second ``start`` resumes instead of duplicating.

Submitted attempts are frozen.  A retake is a fresh attempt.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from vocab_sheets.assignments import is_assigned
from vocab_sheets.errors import (
    AttemptClosedError,
    AttemptNotFoundError,
    IndexOutOfRangeError,
    NotAssignedError,
    QuestionNotInTestError,
    TestNotFoundError,
)
from vocab_sheets.models import IN_PROGRESS, Answer, Attempt
from vocab_sheets.scoring import ScoreResult, is_correct, score

if TYPE_CHECKING:
    from vocab_sheets.db import Database

_log = logging.getLogger("vocab_sheets.attempts")

# Fixed table of pair locks; unrelated pairs may share a stripe.  Never hold two.
_LOCK_STRIPES = 64
_locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]


def _pair_lock(test_id: str, student_id: str) -> threading.Lock:
    return _locks[hash((test_id, student_id)) % _LOCK_STRIPES]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def load_attempt(db: Database, attempt_id: str) -> Attempt:
    """Current stored state: status, position and every saved answer."""
    attempt = db.get_attempt(attempt_id)
    if attempt is None:
        raise AttemptNotFoundError(attempt_id)
    return attempt


def _ensure_open(attempt: Attempt) -> None:
    if attempt.is_submitted:
        _log.warning("Rejected write to submitted attempt %s", attempt.id)
        raise AttemptClosedError(attempt.id)


def start_attempt(
    db: Database,
    test_id: str,
    student_id: str,
    require_assignment: bool = False,
) -> tuple[Attempt, bool]:
    """Start a test, or resume the open attempt if there is one.

    Returns ``(attempt, resumed)``.  Resuming changes nothing in the store.
    """
    test = db.get_test(test_id)
    if test is None:
        raise TestNotFoundError(test_id)
    if require_assignment and not is_assigned(db, test_id, student_id):
        raise NotAssignedError(test_id, student_id)

    with _pair_lock(test_id, student_id):
        existing = db.get_in_progress_attempt(test_id, student_id)
        if existing is not None:
            _log.info("Resumed attempt %s at question %d",
                      existing.id, existing.current_question_index)
            return existing, True

        attempt = Attempt(
            id=str(uuid.uuid4()),
            test_id=test_id,
            student_id=student_id,
            status=IN_PROGRESS,
            started_at=_now(),
            total_count=len(test.questions),
        )
        try:
            db.insert_attempt(attempt)
        except sqlite3.IntegrityError:
            # Another process got there first
            existing = db.get_in_progress_attempt(test_id, student_id)
            if existing is None:
                raise
            return existing, True

    _log.info("Started attempt %s (test %s, student %s)", attempt.id, test_id, student_id)
    return attempt, False


def _write_answer(
    db: Database,
    attempt_id: str,
    question_id: str,
    answer: str,
    question_index: int | None,
) -> Answer:
    """Validate everything first, then store the answer and position together."""
    attempt = load_attempt(db, attempt_id)
    with _pair_lock(attempt.test_id, attempt.student_id):
        attempt = load_attempt(db, attempt_id)
        _ensure_open(attempt)

        question = db.get_question(question_id)
        if question is None or question.test_id != attempt.test_id:
            raise QuestionNotInTestError(question_id, attempt.test_id)
        if question_index is not None and not 0 <= question_index < attempt.total_count:
            raise IndexOutOfRangeError(question_index, attempt.total_count)

        saved = Answer(
            question_id=question_id,
            answer=answer,
            is_correct=is_correct(answer, question.correct_answer),
            answered_at=_now(),
        )
        if not db.upsert_answer(attempt_id, saved, question_index):
            raise AttemptClosedError(attempt_id)

    _log.debug("Attempt %s: saved answer for %s", attempt_id, question_id)
    return saved


def record_answer(db: Database, attempt_id: str, question_id: str, answer: str) -> Answer:
    """Save (or overwrite) the answer to one question.

    Safe to repeat: the answer is keyed by question, so the latest call wins
    and no duplicate is ever created.
    """
    return _write_answer(db, attempt_id, question_id, answer, None)


def set_current_question_index(db: Database, attempt_id: str, index: int) -> None:
    attempt = load_attempt(db, attempt_id)
    with _pair_lock(attempt.test_id, attempt.student_id):
        attempt = load_attempt(db, attempt_id)
        _ensure_open(attempt)
        if not 0 <= index < attempt.total_count:
            raise IndexOutOfRangeError(index, attempt.total_count)
        if not db.set_current_question_index(attempt_id, index):
            raise AttemptClosedError(attempt_id)


def save_answer(
    db: Database,
    attempt_id: str,
    question_id: str,
    answer: str,
    question_index: int | None = None,
) -> Attempt:
    """Auto-save entry point: the answer and the position are stored together.

    A rejected position rejects the whole save, leaving no answer behind.
    """
    _write_answer(db, attempt_id, question_id, answer, question_index)
    return load_attempt(db, attempt_id)


def submit_attempt(db: Database, attempt_id: str) -> Attempt:
    """Close the attempt and store its score.

    Submitting twice is harmless: the second call finds the attempt already
    submitted and returns it with the score computed the first time.
    """
    attempt = load_attempt(db, attempt_id)
    with _pair_lock(attempt.test_id, attempt.student_id):
        attempt = load_attempt(db, attempt_id)
        if attempt.is_submitted:
            _log.info("Attempt %s already submitted (score %s)", attempt_id, attempt.score)
            return attempt

        test = db.get_test(attempt.test_id)
        if test is None:
            raise TestNotFoundError(attempt.test_id)
        result = score(attempt, test)
        if db.finalize_attempt(attempt_id, _now(), result.percentage, result.correct_count):
            _log.info("Submitted attempt %s: %d/%d (%d%%)", attempt_id,
                      result.correct_count, result.total_count, result.percentage)

    return load_attempt(db, attempt_id)


def attempt_results(db: Database, attempt_id: str) -> tuple[Attempt, ScoreResult]:
    """Attempt plus per-question correctness, recomputed from the answers."""
    attempt = load_attempt(db, attempt_id)
    test = db.get_test(attempt.test_id)
    if test is None:
        raise TestNotFoundError(attempt.test_id)
    return attempt, score(attempt, test)


def attempt_history(db: Database, student_id: str) -> list[Attempt]:
    """All attempts for a student, newest first."""
    return db.get_attempts_for_student(student_id)
