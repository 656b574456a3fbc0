"""Parse a vocabulary sheet written as a markdown table into (word, definition) pairs.

Accepts the usual table shapes:
  | Word | Definition |
  | Word | Definition | Example |   (extra columns ignored)

Words may be bold (``**word**``) or plain.  Header and separator rows are
skipped, as are rows with an empty word or definition.  Row order is kept,
since question order follows it.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path

_log = logging.getLogger("vocab_sheets.import")

_HEADER_WORDS = {"word", "words", "term"}


def parse_vocabulary_text(text: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []

    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("|"):
            continue

        cells = [c.strip() for c in line.strip("|").split("|")]
        if len(cells) < 2:
            continue
        # Separator row: |------|:---:|
        if all(re.fullmatch(r":?-+:?", c) for c in cells if c):
            continue

        word = re.sub(r"^\*\*(.+?)\*\*$", r"\1", cells[0]).strip()
        definition = cells[1]
        if word.lower() in _HEADER_WORDS:
            continue
        if not word or not definition:
            _log.debug("Skipping incomplete row: %s", line)
            continue
        pairs.append((word, definition))

    return pairs


def parse_vocabulary_file(path: Path) -> list[tuple[str, str]]:
    pairs = parse_vocabulary_text(path.read_text())
    _log.info("Parsed %d words from %s", len(pairs), path.name)
    return pairs
