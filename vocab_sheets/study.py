"""Flashcard study: a student's self-rated confidence per word of a sheet.

Study is separate from tests.  Nothing here touches attempts or scores.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vocab_sheets.errors import SheetNotFoundError, WordNotFoundError
from vocab_sheets.scoring import percentage

if TYPE_CHECKING:
    from vocab_sheets.db import Database

_log = logging.getLogger("vocab_sheets.study")

NOT_SEEN = 0
NOT_YET = 1
GOT_IT = 2
CONFIDENCE_LEVELS = (NOT_YET, GOT_IT)


def record_confidence(db: Database, student_id: str, word_id: str, confidence: int) -> dict:
    """Store the student's rating for a word and bump its study count.

    Returns the stored progress row.
    """
    if isinstance(confidence, bool) or confidence not in CONFIDENCE_LEVELS:
        raise ValueError(f"confidence must be {NOT_YET} or {GOT_IT} (got {confidence!r})")
    if db.get_word(word_id) is None:
        raise WordNotFoundError(word_id)

    progress = db.upsert_study_progress(student_id, word_id, confidence)
    _log.debug("Student %s rated word %s: %d (studied %d times)",
               student_id, word_id, confidence, progress["study_count"])
    return progress


def study_stats(words: list[dict]) -> dict:
    total = len(words)
    mastered = sum(1 for w in words if w["confidence"] == GOT_IT)
    not_yet = sum(1 for w in words if w["confidence"] == NOT_YET)
    return {
        "total": total,
        "mastered": mastered,
        "not_yet": not_yet,
        "not_seen": total - mastered - not_yet,
        "progress_percent": percentage(mastered, total),
    }


def study_words(db: Database, sheet_id: str, student_id: str) -> tuple[list[dict], dict]:
    """Words of a sheet in alphabetical order with the student's progress."""
    if db.get_sheet(sheet_id) is None:
        raise SheetNotFoundError(sheet_id)
    words = db.get_study_words(sheet_id, student_id)
    return words, study_stats(words)
