"""Tests for configuration loading and saving."""
from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from vocab_sheets.config import DEFAULTS, Settings, load_settings, save_settings


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.choice_count == 4
        assert s.question_types == ["MULTIPLE_CHOICE", "FILL_IN_BLANK", "SPELLING"]
        assert s.variants_per_sheet == 3
        assert s.max_variants == 10
        assert s.require_assignment is True

    def test_to_dict(self):
        d = Settings().to_dict()
        assert d["db_path"] == DEFAULTS["db_path"]
        assert isinstance(d["question_types"], list)
        assert len(d) == 6  # all fields present

    def test_to_dict_roundtrip(self):
        s = Settings(choice_count=5, require_assignment=False)
        s2 = Settings(**s.to_dict())
        assert s2.choice_count == 5
        assert s2.require_assignment is False

    def test_question_types_not_shared(self):
        a, b = Settings(), Settings()
        a.question_types.append("SPELLING")
        assert len(b.question_types) == 3

    def test_db_full_path(self):
        s = Settings(db_path="data/x.db")
        assert s.db_full_path == s.project_root / "data" / "x.db"


class TestLoadSaveSettings:
    def test_load_from_file(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"choice_count": 5, "max_variants": 4}))

        with patch("vocab_sheets.config.CONFIG_PATH", config_path):
            s = load_settings()
        assert s.choice_count == 5
        assert s.max_variants == 4
        # Defaults for unspecified fields
        assert s.variants_per_sheet == 3

    def test_load_missing_file(self, tmp_path):
        with patch("vocab_sheets.config.CONFIG_PATH", tmp_path / "nonexistent.json"):
            s = load_settings()
        assert s == Settings()

    def test_save_creates_file(self, tmp_path):
        config_path = tmp_path / "config.json"
        with patch("vocab_sheets.config.CONFIG_PATH", config_path):
            save_settings(Settings(require_assignment=False))

        data = json.loads(config_path.read_text())
        assert data["require_assignment"] is False

    def test_unknown_keys_ignored(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"choice_count": 3, "llm_provider": "ollama"}))

        with patch("vocab_sheets.config.CONFIG_PATH", config_path):
            s = load_settings()
        assert s.choice_count == 3
        assert not hasattr(s, "llm_provider")


class TestValidate:
    def test_defaults_valid(self):
        Settings().validate()

    @pytest.mark.parametrize("overrides", [
        {"question_types": []},
        {"question_types": ["ESSAY"]},
        {"choice_count": 1},
        {"choice_count": "4"},
        {"max_variants": 0},
        {"variants_per_sheet": True},
        {"require_assignment": "yes"},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            Settings(**overrides).validate()

    def test_single_choice_allowed_without_multiple_choice(self):
        Settings(question_types=["SPELLING"], choice_count=1).validate()

    def test_load_rejects_bad_file(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"question_types": ["ESSAY"]}))
        with patch("vocab_sheets.config.CONFIG_PATH", config_path):
            with pytest.raises(ValueError):
                load_settings()
