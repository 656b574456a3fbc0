from __future__ import annotations

from dataclasses import asdict, dataclass, field

MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
FILL_IN_BLANK = "FILL_IN_BLANK"
SPELLING = "SPELLING"
QUESTION_TYPES = (MULTIPLE_CHOICE, FILL_IN_BLANK, SPELLING)

# What a sheet is drilled on; SPELLING sheets only get spelling questions
VOCABULARY = "VOCABULARY"
SHEET_TEST_TYPES = (VOCABULARY, SPELLING)

IN_PROGRESS = "IN_PROGRESS"
SUBMITTED = "SUBMITTED"


@dataclass
class Sheet:
    id: str
    name: str
    created_at: str
    test_type: str = VOCABULARY


@dataclass
class Word:
    id: str
    sheet_id: str
    word: str
    definition: str
    order_index: int


@dataclass
class Question:
    id: str
    test_id: str
    word_id: str
    question_type: str  # MULTIPLE_CHOICE | FILL_IN_BLANK | SPELLING
    question_text: str
    correct_answer: str
    options: list[str] = field(default_factory=list)
    order_index: int = 0

    def to_dict(self, include_answer: bool = True) -> dict:
        d = asdict(self)
        if not include_answer:
            del d["correct_answer"]
        return d


@dataclass
class Test:
    __test__ = False  # keep pytest from collecting this class

    id: str
    name: str
    variant: int
    sheet_id: str
    created_at: str
    questions: list[Question] = field(default_factory=list)

    def to_dict(self, include_answers: bool = True) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "variant": self.variant,
            "sheet_id": self.sheet_id,
            "created_at": self.created_at,
            "questions": [q.to_dict(include_answers) for q in self.questions],
        }


@dataclass
class Assignment:
    id: str
    test_id: str
    student_id: str
    due_date: str | None
    created_at: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Answer:
    question_id: str
    answer: str
    is_correct: bool
    answered_at: str


@dataclass
class Attempt:
    id: str
    test_id: str
    student_id: str
    status: str  # IN_PROGRESS | SUBMITTED
    started_at: str
    total_count: int
    current_question_index: int = 0
    submitted_at: str | None = None
    score: int | None = None
    correct_count: int | None = None
    answers: dict[str, Answer] = field(default_factory=dict)

    @property
    def is_submitted(self) -> bool:
        return self.status == SUBMITTED

    def to_dict(self) -> dict:
        d = asdict(self)
        # Ordered list for clients; the mapping stays the source of truth.
        d["answers"] = [asdict(a) for a in self.answers.values()]
        return d
