"""Bind tests to students."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from vocab_sheets.errors import (
    AssignmentNotFoundError,
    DuplicateAssignmentError,
    TestNotFoundError,
)
from vocab_sheets.models import Assignment

if TYPE_CHECKING:
    from vocab_sheets.db import Database

_log = logging.getLogger("vocab_sheets.assign")


def assign(
    db: Database,
    test_id: str,
    student_id: str,
    due_date: str | None = None,
) -> Assignment:
    """Assign a test to a student.

    Idempotent per (test, student): a repeat call returns the assignment that
    already exists, including its original due date.  The due date is only
    stored, never enforced.
    """
    if db.get_test(test_id) is None:
        raise TestNotFoundError(test_id)

    existing = db.find_assignment(test_id, student_id)
    if existing is not None:
        return existing

    assignment = Assignment(
        id=str(uuid.uuid4()),
        test_id=test_id,
        student_id=student_id,
        due_date=due_date,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    try:
        db.insert_assignment(assignment)
    except DuplicateAssignmentError:
        # Lost a race with a concurrent assign; the winner's row is the answer.
        return db.find_assignment(test_id, student_id)

    _log.info("Assigned test %s to student %s", test_id, student_id)
    return assignment


def unassign(db: Database, assignment_id: str) -> None:
    """Remove an assignment.  Attempts already made on the test are kept."""
    assignment = db.get_assignment(assignment_id)
    if assignment is None or not db.delete_assignment(assignment_id):
        raise AssignmentNotFoundError(assignment_id)
    _log.info("Unassigned test %s from student %s",
              assignment.test_id, assignment.student_id)


def list_for_student(db: Database, student_id: str) -> list[Assignment]:
    """Newest first."""
    return db.get_assignments_for_student(student_id)


def list_for_test(db: Database, test_id: str) -> list[Assignment]:
    if db.get_test(test_id) is None:
        raise TestNotFoundError(test_id)
    return db.get_assignments_for_test(test_id)


def is_assigned(db: Database, test_id: str, student_id: str) -> bool:
    return db.find_assignment(test_id, student_id) is not None
