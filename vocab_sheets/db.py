from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from vocab_sheets.errors import DuplicateAssignmentError
from vocab_sheets.models import (
    IN_PROGRESS,
    SHEET_TEST_TYPES,
    SUBMITTED,
    VOCABULARY,
    Answer,
    Assignment,
    Attempt,
    Question,
    Sheet,
    Test,
    Word,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sheets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    source_file TEXT,
    test_type TEXT NOT NULL DEFAULT 'VOCABULARY',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS words (
    id TEXT PRIMARY KEY,
    sheet_id TEXT NOT NULL REFERENCES sheets(id),
    word TEXT NOT NULL,
    definition TEXT NOT NULL,
    order_index INTEGER NOT NULL,
    UNIQUE (sheet_id, order_index)
);

CREATE TABLE IF NOT EXISTS tests (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    variant INTEGER NOT NULL,
    sheet_id TEXT NOT NULL REFERENCES sheets(id),
    created_at TEXT NOT NULL,
    UNIQUE (sheet_id, variant)
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    test_id TEXT NOT NULL REFERENCES tests(id),
    word_id TEXT NOT NULL REFERENCES words(id),
    question_type TEXT NOT NULL,
    question_text TEXT NOT NULL,
    correct_answer TEXT NOT NULL,
    options_json TEXT NOT NULL DEFAULT '[]',
    order_index INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS assignments (
    id TEXT PRIMARY KEY,
    test_id TEXT NOT NULL REFERENCES tests(id),
    student_id TEXT NOT NULL,
    due_date TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (test_id, student_id)
);

CREATE TABLE IF NOT EXISTS attempts (
    id TEXT PRIMARY KEY,
    test_id TEXT NOT NULL REFERENCES tests(id),
    student_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'IN_PROGRESS',
    started_at TEXT NOT NULL,
    submitted_at TEXT,
    current_question_index INTEGER NOT NULL DEFAULT 0,
    total_count INTEGER NOT NULL,
    correct_count INTEGER,
    score INTEGER
);

-- At most one open attempt per (test, student)
CREATE UNIQUE INDEX IF NOT EXISTS attempts_one_in_progress
    ON attempts (test_id, student_id) WHERE status = 'IN_PROGRESS';

CREATE TABLE IF NOT EXISTS answers (
    attempt_id TEXT NOT NULL REFERENCES attempts(id),
    question_id TEXT NOT NULL REFERENCES questions(id),
    answer TEXT NOT NULL,
    is_correct INTEGER NOT NULL,
    answered_at TEXT NOT NULL,
    PRIMARY KEY (attempt_id, question_id)
);

CREATE TABLE IF NOT EXISTS study_progress (
    student_id TEXT NOT NULL,
    word_id TEXT NOT NULL REFERENCES words(id),
    confidence INTEGER NOT NULL,
    study_count INTEGER NOT NULL DEFAULT 0,
    last_studied_at TEXT NOT NULL,
    PRIMARY KEY (student_id, word_id)
);
"""

# Columns added after the first release: (table, column, definition)
MIGRATIONS = [
    ("sheets", "test_type", "TEXT NOT NULL DEFAULT 'VOCABULARY'"),
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_question(row: sqlite3.Row) -> Question:
    return Question(
        id=row["id"],
        test_id=row["test_id"],
        word_id=row["word_id"],
        question_type=row["question_type"],
        question_text=row["question_text"],
        correct_answer=row["correct_answer"],
        options=json.loads(row["options_json"]),
        order_index=row["order_index"],
    )


def _row_to_assignment(row: sqlite3.Row) -> Assignment:
    return Assignment(
        id=row["id"],
        test_id=row["test_id"],
        student_id=row["student_id"],
        due_date=row["due_date"],
        created_at=row["created_at"],
    )


class Database:
    """One sqlite connection shared by every thread of the process.

    All access goes through ``_lock``, so a transaction opened by one thread
    is never committed early by a write from another.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self.conn.executescript(SCHEMA)
            for table, column, definition in MIGRATIONS:
                cols = {r["name"] for r in self.conn.execute(f"PRAGMA table_info({table})")}
                if column not in cols:
                    self.conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
            self.conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the connection for a group of writes.

        Commits when the block exits normally, rolls back if it raises.
        """
        with self._lock, self.conn:
            yield self.conn

    def _all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchall()

    def _one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self.conn.execute(sql, params).fetchone()

    # ── Sheets & words ────────────────────────────────────────────────────

    def create_sheet(
        self,
        name: str,
        words: Iterable[tuple[str, str]],
        source_file: str | None = None,
        test_type: str = VOCABULARY,
    ) -> Sheet:
        """Store a corpus: *words* is an ordered iterable of (word, definition)."""
        if test_type not in SHEET_TEST_TYPES:
            raise ValueError(f"Unknown test type: {test_type}")
        sheet = Sheet(id=str(uuid.uuid4()), name=name, created_at=_now(), test_type=test_type)
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO sheets (id, name, source_file, test_type, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (sheet.id, sheet.name, source_file, sheet.test_type, sheet.created_at),
            )
            for i, (word, definition) in enumerate(words):
                conn.execute(
                    "INSERT INTO words (id, sheet_id, word, definition, order_index) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (str(uuid.uuid4()), sheet.id, word, definition, i),
                )
        return sheet

    def get_sheet(self, sheet_id: str) -> Sheet | None:
        row = self._one(
            "SELECT id, name, created_at, test_type FROM sheets WHERE id = ?", (sheet_id,)
        )
        return Sheet(**dict(row)) if row else None

    def get_all_sheets(self) -> list[dict]:
        rows = self._all("""
            SELECT s.*, COUNT(w.id) AS word_count
            FROM sheets s
            LEFT JOIN words w ON w.sheet_id = s.id
            GROUP BY s.id
            ORDER BY s.created_at DESC
        """)
        return [dict(r) for r in rows]

    def get_sheet_words(self, sheet_id: str) -> list[Word]:
        rows = self._all(
            "SELECT * FROM words WHERE sheet_id = ? ORDER BY order_index ASC",
            (sheet_id,),
        )
        return [Word(**dict(r)) for r in rows]

    def get_word(self, word_id: str) -> Word | None:
        row = self._one("SELECT * FROM words WHERE id = ?", (word_id,))
        return Word(**dict(row)) if row else None

    # ── Tests & questions ─────────────────────────────────────────────────

    def get_max_variant(self, sheet_id: str) -> int:
        row = self._one(
            "SELECT COALESCE(MAX(variant), 0) FROM tests WHERE sheet_id = ?",
            (sheet_id,),
        )
        return row[0]

    def save_tests(self, tests: Iterable[Test]) -> None:
        """Write tests and their questions atomically (all or nothing)."""
        with self.transaction() as conn:
            for t in tests:
                conn.execute(
                    "INSERT INTO tests (id, name, variant, sheet_id, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (t.id, t.name, t.variant, t.sheet_id, t.created_at),
                )
                conn.executemany(
                    "INSERT INTO questions (id, test_id, word_id, question_type, "
                    "question_text, correct_answer, options_json, order_index) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            q.id,
                            t.id,
                            q.word_id,
                            q.question_type,
                            q.question_text,
                            q.correct_answer,
                            json.dumps(q.options),
                            q.order_index,
                        )
                        for q in t.questions
                    ],
                )

    def get_test(self, test_id: str) -> Test | None:
        with self._lock:
            row = self._one("SELECT * FROM tests WHERE id = ?", (test_id,))
            if row is None:
                return None
            rows = self._all(
                "SELECT * FROM questions WHERE test_id = ? ORDER BY order_index ASC",
                (test_id,),
            )
        return Test(**dict(row), questions=[_row_to_question(r) for r in rows])

    def get_tests_for_sheet(self, sheet_id: str) -> list[dict]:
        rows = self._all("""
            SELECT t.*, COUNT(q.id) AS question_count
            FROM tests t
            LEFT JOIN questions q ON q.test_id = t.id
            WHERE t.sheet_id = ?
            GROUP BY t.id
            ORDER BY t.variant ASC
        """, (sheet_id,))
        return [dict(r) for r in rows]

    def get_question(self, question_id: str) -> Question | None:
        row = self._one("SELECT * FROM questions WHERE id = ?", (question_id,))
        return _row_to_question(row) if row else None

    # ── Assignments ───────────────────────────────────────────────────────

    def insert_assignment(self, assignment: Assignment) -> None:
        try:
            with self.transaction() as conn:
                conn.execute(
                    "INSERT INTO assignments (id, test_id, student_id, due_date, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        assignment.id,
                        assignment.test_id,
                        assignment.student_id,
                        assignment.due_date,
                        assignment.created_at,
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "assignments.test_id, assignments.student_id" in str(e):
                raise DuplicateAssignmentError(assignment.test_id, assignment.student_id) from e
            raise

    def get_assignment(self, assignment_id: str) -> Assignment | None:
        row = self._one("SELECT * FROM assignments WHERE id = ?", (assignment_id,))
        return _row_to_assignment(row) if row else None

    def find_assignment(self, test_id: str, student_id: str) -> Assignment | None:
        row = self._one(
            "SELECT * FROM assignments WHERE test_id = ? AND student_id = ?",
            (test_id, student_id),
        )
        return _row_to_assignment(row) if row else None

    def delete_assignment(self, assignment_id: str) -> bool:
        with self.transaction() as conn:
            cur = conn.execute("DELETE FROM assignments WHERE id = ?", (assignment_id,))
        return cur.rowcount > 0

    def get_assignments_for_student(self, student_id: str) -> list[Assignment]:
        rows = self._all(
            "SELECT * FROM assignments WHERE student_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (student_id,),
        )
        return [_row_to_assignment(r) for r in rows]

    def get_assignments_for_test(self, test_id: str) -> list[Assignment]:
        rows = self._all(
            "SELECT * FROM assignments WHERE test_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (test_id,),
        )
        return [_row_to_assignment(r) for r in rows]

    # ── Attempts & answers ────────────────────────────────────────────────

    def insert_attempt(self, attempt: Attempt) -> None:
        """Raises sqlite3.IntegrityError if the pair already has an open attempt."""
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO attempts (id, test_id, student_id, status, started_at, "
                "current_question_index, total_count) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    attempt.id,
                    attempt.test_id,
                    attempt.student_id,
                    attempt.status,
                    attempt.started_at,
                    attempt.current_question_index,
                    attempt.total_count,
                ),
            )

    def _load_answers(self, attempt_id: str) -> dict[str, Answer]:
        rows = self._all(
            "SELECT a.question_id, a.answer, a.is_correct, a.answered_at "
            "FROM answers a JOIN questions q ON q.id = a.question_id "
            "WHERE a.attempt_id = ? ORDER BY q.order_index ASC",
            (attempt_id,),
        )
        return {
            r["question_id"]: Answer(
                question_id=r["question_id"],
                answer=r["answer"],
                is_correct=bool(r["is_correct"]),
                answered_at=r["answered_at"],
            )
            for r in rows
        }

    def _row_to_attempt(self, row: sqlite3.Row) -> Attempt:
        return Attempt(**dict(row), answers=self._load_answers(row["id"]))

    def get_attempt(self, attempt_id: str) -> Attempt | None:
        with self._lock:
            row = self._one("SELECT * FROM attempts WHERE id = ?", (attempt_id,))
            return self._row_to_attempt(row) if row else None

    def get_in_progress_attempt(self, test_id: str, student_id: str) -> Attempt | None:
        with self._lock:
            row = self._one(
                "SELECT * FROM attempts WHERE test_id = ? AND student_id = ? AND status = ?",
                (test_id, student_id, IN_PROGRESS),
            )
            return self._row_to_attempt(row) if row else None

    def get_attempts_for_student(self, student_id: str) -> list[Attempt]:
        with self._lock:
            rows = self._all(
                "SELECT * FROM attempts WHERE student_id = ? "
                "ORDER BY started_at DESC, rowid DESC",
                (student_id,),
            )
            return [self._row_to_attempt(r) for r in rows]

    def upsert_answer(
        self,
        attempt_id: str,
        answer: Answer,
        question_index: int | None = None,
    ) -> bool:
        """Insert or replace the answer for one question, and optionally move
        the attempt's position, in a single transaction.

        Returns False, writing nothing, when the attempt is missing or no
        longer in progress.  A write carrying an older ``answered_at`` than
        the stored one loses, so the server clock decides which of two racing
        saves survives.
        """
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT status FROM attempts WHERE id = ?", (attempt_id,)
            ).fetchone()
            if row is None or row["status"] != IN_PROGRESS:
                return False
            conn.execute(
                "INSERT INTO answers (attempt_id, question_id, answer, is_correct, answered_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT (attempt_id, question_id) DO UPDATE SET "
                "answer = excluded.answer, is_correct = excluded.is_correct, "
                "answered_at = excluded.answered_at "
                "WHERE excluded.answered_at >= answers.answered_at",
                (
                    attempt_id,
                    answer.question_id,
                    answer.answer,
                    1 if answer.is_correct else 0,
                    answer.answered_at,
                ),
            )
            if question_index is not None:
                conn.execute(
                    "UPDATE attempts SET current_question_index = ? WHERE id = ?",
                    (question_index, attempt_id),
                )
        return True

    def set_current_question_index(self, attempt_id: str, index: int) -> bool:
        """Returns False when the attempt is missing or no longer in progress."""
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE attempts SET current_question_index = ? WHERE id = ? AND status = ?",
                (index, attempt_id, IN_PROGRESS),
            )
        return cur.rowcount > 0

    def finalize_attempt(
        self,
        attempt_id: str,
        submitted_at: str,
        score: int,
        correct_count: int,
    ) -> bool:
        """Mark an attempt submitted.  Only the first caller gets True."""
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE attempts SET status = ?, submitted_at = ?, score = ?, correct_count = ? "
                "WHERE id = ? AND status = ?",
                (SUBMITTED, submitted_at, score, correct_count, attempt_id, IN_PROGRESS),
            )
        return cur.rowcount > 0

    # ── Study progress ────────────────────────────────────────────────────

    def upsert_study_progress(self, student_id: str, word_id: str, confidence: int) -> dict:
        """Set a student's confidence for a word and count the study."""
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO study_progress "
                "(student_id, word_id, confidence, study_count, last_studied_at) "
                "VALUES (?, ?, ?, 1, ?) "
                "ON CONFLICT (student_id, word_id) DO UPDATE SET "
                "confidence = excluded.confidence, "
                "study_count = study_progress.study_count + 1, "
                "last_studied_at = excluded.last_studied_at",
                (student_id, word_id, confidence, _now()),
            )
            row = conn.execute(
                "SELECT * FROM study_progress WHERE student_id = ? AND word_id = ?",
                (student_id, word_id),
            ).fetchone()
        return dict(row)

    def get_study_words(self, sheet_id: str, student_id: str) -> list[dict]:
        """Every word of a sheet, alphabetical, with the student's progress.

        Words never studied come back with confidence 0 and study_count 0.
        """
        rows = self._all("""
            SELECT w.id, w.word, w.definition,
                   COALESCE(sp.confidence, 0) AS confidence,
                   COALESCE(sp.study_count, 0) AS study_count,
                   sp.last_studied_at
            FROM words w
            LEFT JOIN study_progress sp
                ON sp.word_id = w.id AND sp.student_id = ?
            WHERE w.sheet_id = ?
            ORDER BY w.word ASC
        """, (student_id, sheet_id))
        return [dict(r) for r in rows]

    # ── Stats ─────────────────────────────────────────────────────────────

    def get_stats(self) -> dict:
        def count(sql: str, params: tuple = ()) -> int:
            return self._one(sql, params)[0]

        avg = self._one(
            "SELECT AVG(score) FROM attempts WHERE status = ?", (SUBMITTED,)
        )[0]
        return {
            "total_sheets": count("SELECT COUNT(*) FROM sheets"),
            "total_words": count("SELECT COUNT(*) FROM words"),
            "total_tests": count("SELECT COUNT(*) FROM tests"),
            "total_questions": count("SELECT COUNT(*) FROM questions"),
            "total_assignments": count("SELECT COUNT(*) FROM assignments"),
            "attempts_in_progress": count(
                "SELECT COUNT(*) FROM attempts WHERE status = ?", (IN_PROGRESS,)
            ),
            "attempts_submitted": count(
                "SELECT COUNT(*) FROM attempts WHERE status = ?", (SUBMITTED,)
            ),
            "average_score": round(avg, 1) if avg is not None else 0,
        }
