"""Shared test fixtures."""
from __future__ import annotations

import random

import pytest

from vocab_sheets.db import Database
from vocab_sheets.models import FILL_IN_BLANK, MULTIPLE_CHOICE, SPELLING
from vocab_sheets.question_generator import generate_tests


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_pairs():
    """Ten (word, definition) pairs with distinct definitions."""
    return [
        ("perspicacious", "having keen insight"),
        ("sagacious", "having practical wisdom"),
        ("astute", "shrewd; quick to assess"),
        ("ebullient", "full of enthusiasm"),
        ("sanguine", "optimistic"),
        ("terse", "brief to the point of rudeness"),
        ("laconic", "using very few words"),
        ("verbose", "using more words than needed"),
        ("garrulous", "talking too much about trivial things"),
        ("pithy", "concise and forcefully meaningful"),
    ]


@pytest.fixture
def sheet(tmp_db, sample_pairs):
    """A stored ten-word sheet."""
    return tmp_db.create_sheet("Week 1", sample_pairs)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def sample_test(tmp_db, sheet, rng):
    """One generated, stored test over the ten-word sheet."""
    (test,) = generate_tests(
        tmp_db, sheet.id, 1,
        question_types=(MULTIPLE_CHOICE, FILL_IN_BLANK, SPELLING),
        rng=rng,
    )
    return test


@pytest.fixture
def vocab_md_content():
    """Minimal vocabulary sheet in markdown for parser testing."""
    return """\
# Week 1 Vocabulary

| Word | Definition | Example |
|------|------------|---------|
| **unpalatable** | difficult to accept | *The truth was unpalatable.* |
| **sprightly** | lively, energetic | *She remained sprightly.* |

## More words

| Word | Definition |
|:-----|:-----------|
| perspicacious | having keen insight; perceptive |
| sagacious | having keen practical wisdom |
| **astute** |  |
"""
