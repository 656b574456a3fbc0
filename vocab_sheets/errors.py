"""Exceptions raised by the test generation and attempt lifecycle code."""
from __future__ import annotations


class VocabSheetsError(Exception):
    """Base class for all domain errors."""


# ── Corpus / generation ───────────────────────────────────────────────────

class CorpusError(VocabSheetsError):
    pass


class EmptyCorpusError(CorpusError):
    def __init__(self, sheet_id: str | None = None):
        self.sheet_id = sheet_id
        where = f" for sheet {sheet_id}" if sheet_id else ""
        super().__init__(f"No words available{where}")


class InsufficientCorpusError(CorpusError):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Multiple choice needs {required} distinct definitions, "
            f"corpus has {available}"
        )


class AnswerNotInOptionsError(VocabSheetsError):
    def __init__(self, correct_answer: str, options: list[str], question_id: str | None = None):
        self.correct_answer = correct_answer
        self.options = list(options)
        self.question_id = question_id
        super().__init__(
            f"Correct answer {correct_answer!r} not among options {self.options!r}"
            f" (question {question_id or '?'})"
        )


# ── Lookups ───────────────────────────────────────────────────────────────

class NotFoundError(VocabSheetsError):
    kind = "Record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.kind} not found: {record_id}")


class SheetNotFoundError(NotFoundError):
    kind = "Sheet"


class TestNotFoundError(NotFoundError):
    kind = "Test"
    __test__ = False  # keep pytest from collecting this class


class AttemptNotFoundError(NotFoundError):
    kind = "Attempt"


class AssignmentNotFoundError(NotFoundError):
    kind = "Assignment"


class WordNotFoundError(NotFoundError):
    kind = "Word"


# ── State ─────────────────────────────────────────────────────────────────

class QuestionNotInTestError(VocabSheetsError):
    def __init__(self, question_id: str, test_id: str):
        self.question_id = question_id
        self.test_id = test_id
        super().__init__(f"Question {question_id} does not belong to test {test_id}")


class AttemptClosedError(VocabSheetsError):
    def __init__(self, attempt_id: str):
        self.attempt_id = attempt_id
        super().__init__(f"Attempt {attempt_id} has already been submitted")


class DuplicateAssignmentError(VocabSheetsError):
    def __init__(self, test_id: str, student_id: str):
        self.test_id = test_id
        self.student_id = student_id
        super().__init__(f"Test {test_id} is already assigned to student {student_id}")


class NotAssignedError(VocabSheetsError):
    def __init__(self, test_id: str, student_id: str):
        self.test_id = test_id
        self.student_id = student_id
        super().__init__(f"Test {test_id} is not assigned to student {student_id}")


class IndexOutOfRangeError(VocabSheetsError):
    def __init__(self, index: int, question_count: int):
        self.index = index
        self.question_count = question_count
        super().__init__(f"Question index {index} outside [0, {question_count})")
