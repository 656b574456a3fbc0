"""Tests for the vocabulary sheet parser."""
from __future__ import annotations

from vocab_sheets.parsers.vocabulary_parser import parse_vocabulary_file, parse_vocabulary_text


class TestVocabularyParser:
    def test_parse_basic(self, tmp_path, vocab_md_content):
        f = tmp_path / "vocabulary.md"
        f.write_text(vocab_md_content)
        pairs = parse_vocabulary_file(f)

        assert len(pairs) == 4
        assert pairs[0] == ("unpalatable", "difficult to accept")

    def test_order_preserved(self, vocab_md_content):
        words = [w for w, _ in parse_vocabulary_text(vocab_md_content)]
        assert words == ["unpalatable", "sprightly", "perspicacious", "sagacious"]

    def test_three_column_table(self, vocab_md_content):
        """Example column content should not leak into the definition."""
        pairs = dict(parse_vocabulary_text(vocab_md_content))
        assert pairs["sprightly"] == "lively, energetic"
        assert "The truth" not in pairs["unpalatable"]

    def test_plain_words(self, vocab_md_content):
        pairs = dict(parse_vocabulary_text(vocab_md_content))
        assert pairs["perspicacious"] == "having keen insight; perceptive"

    def test_incomplete_rows_skipped(self, vocab_md_content):
        words = [w for w, _ in parse_vocabulary_text(vocab_md_content)]
        assert "astute" not in words

    def test_no_table(self):
        assert parse_vocabulary_text("# Just a heading\n\nSome prose.\n") == []

    def test_alignment_separator(self):
        text = "| Term | Meaning |\n|:---:|---:|\n| terse | brief |\n"
        assert parse_vocabulary_text(text) == [("terse", "brief")]
