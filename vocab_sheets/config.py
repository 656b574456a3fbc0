from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from vocab_sheets.models import MULTIPLE_CHOICE, QUESTION_TYPES

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "db_path": "vocab_sheets.db",
    "choice_count": 4,
    "question_types": ["MULTIPLE_CHOICE", "FILL_IN_BLANK", "SPELLING"],
    "variants_per_sheet": 3,
    "max_variants": 10,
    "require_assignment": True,
}


@dataclass
class Settings:
    db_path: str = DEFAULTS["db_path"]
    choice_count: int = DEFAULTS["choice_count"]
    question_types: list[str] = field(default_factory=lambda: list(DEFAULTS["question_types"]))
    variants_per_sheet: int = DEFAULTS["variants_per_sheet"]
    max_variants: int = DEFAULTS["max_variants"]
    require_assignment: bool = DEFAULTS["require_assignment"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    def validate(self) -> None:
        """Raise ValueError naming the first field that cannot be used."""
        if not self.question_types:
            raise ValueError("question_types must not be empty")
        unknown = [t for t in self.question_types if t not in QUESTION_TYPES]
        if unknown:
            raise ValueError(f"Unknown question type(s): {', '.join(map(str, unknown))}")
        for name in ("choice_count", "variants_per_sheet", "max_variants"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer (got {value!r})")
        if MULTIPLE_CHOICE in self.question_types and self.choice_count < 2:
            raise ValueError("choice_count must be at least 2 for multiple choice")
        if not isinstance(self.require_assignment, bool):
            raise ValueError("require_assignment must be true or false")

    def to_dict(self) -> dict:
        return {
            "db_path": self.db_path,
            "choice_count": self.choice_count,
            "question_types": list(self.question_types),
            "variants_per_sheet": self.variants_per_sheet,
            "max_variants": self.max_variants,
            "require_assignment": self.require_assignment,
        }


def load_settings() -> Settings:
    if not CONFIG_PATH.exists():
        return Settings()
    raw = json.loads(CONFIG_PATH.read_text())
    known = Settings.__dataclass_fields__.keys()
    settings = Settings(**{k: v for k, v in raw.items() if k in known})
    settings.validate()
    return settings


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
