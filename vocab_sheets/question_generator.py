"""Build test variants from a sheet's vocabulary corpus."""
from __future__ import annotations

import logging
import random
import string
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from vocab_sheets.errors import (
    AnswerNotInOptionsError,
    EmptyCorpusError,
    InsufficientCorpusError,
    SheetNotFoundError,
)
from vocab_sheets.models import (
    FILL_IN_BLANK,
    MULTIPLE_CHOICE,
    QUESTION_TYPES,
    SPELLING,
    Question,
    Test,
    Word,
)

if TYPE_CHECKING:
    from vocab_sheets.db import Database

_log = logging.getLogger("vocab_sheets.qgen")

DEFAULT_QUESTION_TYPES = (MULTIPLE_CHOICE, FILL_IN_BLANK, SPELLING)
DEFAULT_CHOICE_COUNT = 4
MAX_VARIANTS = 10


def variant_label(variant: int) -> str:
    """1 -> "A", 2 -> "B", ...; past "Z" the number is used as-is."""
    if 1 <= variant <= len(string.ascii_uppercase):
        return string.ascii_uppercase[variant - 1]
    return str(variant)


def _distinct(values: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def randomize_options(
    correct_answer: str,
    options: Sequence[str],
    rng: random.Random | None = None,
    question_id: str | None = None,
) -> list[str]:
    """Return a uniformly random permutation of *options*.

    Fisher-Yates, run once per call.  *correct_answer* must be one of the
    options before the shuffle and is checked again after it; either failure
    means a synthesis bug and raises :class:`AnswerNotInOptionsError`.
    """
    if correct_answer not in options:
        raise AnswerNotInOptionsError(correct_answer, list(options), question_id)

    rng = rng or random
    shuffled = list(options)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]

    if correct_answer not in shuffled or len(shuffled) != len(options):
        raise AnswerNotInOptionsError(correct_answer, shuffled, question_id)
    return shuffled


def _build_question(
    word: Word,
    question_type: str,
    position: int,
    test_id: str,
    definitions: list[str],
    choice_count: int,
    rng: random.Random,
) -> Question:
    options: list[str] = []
    if question_type == SPELLING:
        text = f"Spell the word that means: {word.definition}"
        answer = word.word
    elif question_type == MULTIPLE_CHOICE:
        text = f'Which is the definition of "{word.word}"?'
        answer = word.definition
        pool = [d for d in definitions if d != word.definition]
        options = [answer] + rng.sample(pool, choice_count - 1)
    else:
        text = f'What is the definition of "{word.word}"?'
        answer = word.definition

    return Question(
        id=str(uuid.uuid4()),
        test_id=test_id,
        word_id=word.id,
        question_type=question_type,
        question_text=text,
        correct_answer=answer,
        options=options,
        order_index=position,
    )


def synthesize(
    words: Sequence[Word],
    question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    choice_count: int = DEFAULT_CHOICE_COUNT,
    rng: random.Random | None = None,
    test_id: str = "",
) -> list[Question]:
    """Turn an ordered corpus into one question per word.

    The word at position ``i`` gets ``question_types[i % len(question_types)]``.
    Multiple-choice distractors are the definitions of other words, sampled
    without replacement from *rng*.  Options come back unshuffled (correct
    answer first); :func:`randomize_options` orders them.
    """
    if not words:
        raise EmptyCorpusError()
    if not question_types:
        raise ValueError("question_types must not be empty")
    unknown = [t for t in question_types if t not in QUESTION_TYPES]
    if unknown:
        raise ValueError(f"Unknown question type(s): {', '.join(unknown)}")

    ordered = sorted(words, key=lambda w: w.order_index)
    definitions = _distinct([w.definition for w in ordered])

    if MULTIPLE_CHOICE in question_types:
        if choice_count < 2:
            raise ValueError(f"choice_count must be at least 2 (got {choice_count})")
        if len(definitions) < choice_count:
            raise InsufficientCorpusError(len(definitions), choice_count)

    rng = rng or random.Random()
    return [
        _build_question(
            word,
            question_types[i % len(question_types)],
            i,
            test_id,
            definitions,
            choice_count,
            rng,
        )
        for i, word in enumerate(ordered)
    ]


def build_test(
    words: Sequence[Word],
    sheet_id: str,
    name: str,
    variant: int,
    question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    choice_count: int = DEFAULT_CHOICE_COUNT,
    rng: random.Random | None = None,
) -> Test:
    """Synthesize and shuffle one variant.  Nothing is persisted."""
    test_id = str(uuid.uuid4())
    questions = synthesize(words, question_types, choice_count, rng, test_id=test_id)
    for q in questions:
        if q.question_type == MULTIPLE_CHOICE:
            q.options = randomize_options(q.correct_answer, q.options, rng, q.id)
    return Test(
        id=test_id,
        name=name,
        variant=variant,
        sheet_id=sheet_id,
        created_at=datetime.now(timezone.utc).isoformat(),
        questions=questions,
    )


def generate_tests(
    db: Database,
    sheet_id: str,
    variant_count: int = 1,
    question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    choice_count: int = DEFAULT_CHOICE_COUNT,
    max_variants: int = MAX_VARIANTS,
    rng: random.Random | None = None,
) -> list[Test]:
    """Generate *variant_count* independent tests for a sheet and save them.

    Every variant is built in memory first and then written in a single
    transaction, so a failure leaves no partial test behind.  Variant numbers
    continue after the sheet's existing tests.  A SPELLING sheet gets
    spelling questions only, whatever *question_types* says.
    """
    sheet = db.get_sheet(sheet_id)
    if sheet is None:
        raise SheetNotFoundError(sheet_id)
    if variant_count < 1:
        raise ValueError(f"variant_count must be at least 1 (got {variant_count})")
    if variant_count > max_variants:
        _log.info("Clamping %d variants to %d", variant_count, max_variants)
        variant_count = max_variants

    words = db.get_sheet_words(sheet_id)
    if not words:
        raise EmptyCorpusError(sheet_id)
    if sheet.test_type == SPELLING:
        question_types = (SPELLING,)

    first = db.get_max_variant(sheet_id) + 1
    tests: list[Test] = []
    for variant in range(first, first + variant_count):
        name = f"{sheet.name} - Variant {variant_label(variant)}"
        tests.append(build_test(
            words, sheet_id, name, variant,
            question_types=question_types,
            choice_count=choice_count,
            rng=rng,
        ))

    db.save_tests(tests)
    for t in tests:
        _log.info("Created %s (%d questions)", t.name, len(t.questions))
    return tests
