"""FastAPI application with all routes."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from vocab_sheets import assignments, attempts, study
from vocab_sheets.config import Settings, load_settings, save_settings
from vocab_sheets.db import Database
from vocab_sheets.errors import (
    AnswerNotInOptionsError,
    AttemptClosedError,
    CorpusError,
    DuplicateAssignmentError,
    IndexOutOfRangeError,
    NotAssignedError,
    NotFoundError,
    QuestionNotInTestError,
    SheetNotFoundError,
    TestNotFoundError,
    VocabSheetsError,
)
from vocab_sheets.models import VOCABULARY
from vocab_sheets.parsers.vocabulary_parser import parse_vocabulary_text
from vocab_sheets.question_generator import generate_tests

app = FastAPI(title="Vocab Sheets")

_log = logging.getLogger("vocab_sheets.api")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None

_STATUS_BY_ERROR: list[tuple[type[VocabSheetsError], int]] = [
    (NotFoundError, 404),
    (AttemptClosedError, 409),
    (DuplicateAssignmentError, 409),
    (NotAssignedError, 403),
    (QuestionNotInTestError, 400),
    (IndexOutOfRangeError, 400),
    (CorpusError, 422),
    (AnswerNotInOptionsError, 500),
]


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


@app.exception_handler(VocabSheetsError)
async def domain_error_handler(request: Request, exc: VocabSheetsError):
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    if status >= 500:
        _log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


async def _json_body(request: Request) -> dict:
    if not await request.body():
        return {}
    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    return body


def _require_str(body: dict, key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value:
        raise HTTPException(400, f"'{key}' is required")
    return value


def _optional_int(body: dict, key: str) -> int | None:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise HTTPException(400, f"'{key}' must be an integer")
    return value


# ── API: Stats ────────────────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


# ── API: Sheets (corpus) ──────────────────────────────────────────────────

@app.get("/api/sheets")
async def api_sheets():
    return {"sheets": get_db().get_all_sheets()}


@app.post("/api/sheets", status_code=201)
async def api_create_sheet(request: Request):
    """Store an extracted corpus.

    Body: ``{"name": ..., "words": [{"word": ..., "definition": ...}, ...]}``
    or ``{"name": ..., "markdown": "| Word | Definition |..."}``.  An optional
    ``"test_type"`` (``VOCABULARY`` or ``SPELLING``) picks the question mix.
    """
    body = await _json_body(request)
    name = _require_str(body, "name")

    if "markdown" in body:
        pairs = parse_vocabulary_text(str(body["markdown"]))
    else:
        raw = body.get("words")
        if not isinstance(raw, list):
            raise HTTPException(400, "'words' must be a list")
        pairs = []
        for item in raw:
            if not isinstance(item, dict):
                raise HTTPException(400, "Each word must be an object")
            word = str(item.get("word", "")).strip()
            definition = str(item.get("definition", "")).strip()
            if word and definition:
                pairs.append((word, definition))

    try:
        test_type = str(body.get("test_type", VOCABULARY))
        sheet = get_db().create_sheet(name, pairs, test_type=test_type)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"sheet": {"id": sheet.id, "name": sheet.name, "created_at": sheet.created_at,
                      "test_type": sheet.test_type},
            "word_count": len(pairs)}


@app.get("/api/sheets/{sheet_id}/words")
async def api_sheet_words(sheet_id: str):
    db = get_db()
    if db.get_sheet(sheet_id) is None:
        raise SheetNotFoundError(sheet_id)
    words = db.get_sheet_words(sheet_id)
    return {"words": [
        {"id": w.id, "word": w.word, "definition": w.definition, "order_index": w.order_index}
        for w in words
    ]}


# ── API: Tests ────────────────────────────────────────────────────────────

@app.get("/api/sheets/{sheet_id}/tests")
async def api_sheet_tests(sheet_id: str):
    db = get_db()
    if db.get_sheet(sheet_id) is None:
        raise SheetNotFoundError(sheet_id)
    return {"tests": db.get_tests_for_sheet(sheet_id)}


@app.post("/api/sheets/{sheet_id}/tests", status_code=201)
async def api_generate_tests(sheet_id: str, request: Request):
    body = await _json_body(request)
    s = get_settings()
    requested = _optional_int(body, "variant_count")
    variant_count = s.variants_per_sheet if requested is None else requested

    try:
        tests = generate_tests(
            get_db(),
            sheet_id,
            variant_count,
            question_types=s.question_types,
            choice_count=s.choice_count,
            max_variants=s.max_variants,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"tests": [t.to_dict() for t in tests]}


@app.get("/api/tests/{test_id}")
async def api_get_test(test_id: str, include_answers: bool = False):
    """Test content.  Correct answers are left out unless asked for."""
    test = get_db().get_test(test_id)
    if test is None:
        raise TestNotFoundError(test_id)
    return {"test": test.to_dict(include_answers=include_answers)}


# ── API: Assignments ──────────────────────────────────────────────────────

@app.post("/api/tests/{test_id}/assign")
async def api_assign(test_id: str, request: Request):
    body = await _json_body(request)
    student_id = _require_str(body, "student_id")
    due_date = body.get("due_date")
    if due_date is not None:
        try:
            datetime.fromisoformat(str(due_date).replace("Z", "+00:00"))
        except ValueError:
            raise HTTPException(400, "'due_date' must be an ISO-8601 datetime")

    a = assignments.assign(get_db(), test_id, student_id, due_date)
    return {"assignment": a.to_dict()}


@app.get("/api/tests/{test_id}/assignments")
async def api_test_assignments(test_id: str):
    rows = assignments.list_for_test(get_db(), test_id)
    return {"assignments": [a.to_dict() for a in rows]}


@app.delete("/api/assignments/{assignment_id}", status_code=204)
async def api_unassign(assignment_id: str):
    assignments.unassign(get_db(), assignment_id)
    return Response(status_code=204)


@app.get("/api/students/{student_id}/assignments")
async def api_student_assignments(student_id: str):
    rows = assignments.list_for_student(get_db(), student_id)
    return {"assignments": [a.to_dict() for a in rows]}


# ── API: Attempts ─────────────────────────────────────────────────────────

@app.post("/api/attempts/start")
async def api_start_attempt(request: Request):
    body = await _json_body(request)
    test_id = _require_str(body, "test_id")
    student_id = _require_str(body, "student_id")

    db = get_db()
    attempt, resumed = attempts.start_attempt(
        db, test_id, student_id,
        require_assignment=get_settings().require_assignment,
    )
    test = db.get_test(test_id)
    return JSONResponse(
        status_code=200 if resumed else 201,
        content={
            "attempt": attempt.to_dict(),
            "resumed": resumed,
            "test": test.to_dict(include_answers=False),
        },
    )


@app.get("/api/attempts/{attempt_id}")
async def api_get_attempt(attempt_id: str):
    return {"attempt": attempts.load_attempt(get_db(), attempt_id).to_dict()}


@app.post("/api/attempts/{attempt_id}/answer")
async def api_save_answer(attempt_id: str, request: Request):
    body = await _json_body(request)
    question_id = _require_str(body, "question_id")
    answer = body.get("answer")
    if not isinstance(answer, str):
        raise HTTPException(400, "'answer' must be a string")
    question_index = _optional_int(body, "question_index")

    attempt = attempts.save_answer(get_db(), attempt_id, question_id, answer, question_index)
    return {"attempt": attempt.to_dict()}


@app.post("/api/attempts/{attempt_id}/progress")
async def api_save_progress(attempt_id: str, request: Request):
    body = await _json_body(request)
    index = _optional_int(body, "question_index")
    if index is None:
        raise HTTPException(400, "'question_index' is required")

    db = get_db()
    attempts.set_current_question_index(db, attempt_id, index)
    return {"attempt": attempts.load_attempt(db, attempt_id).to_dict()}


@app.post("/api/attempts/{attempt_id}/submit")
async def api_submit_attempt(attempt_id: str):
    attempt = attempts.submit_attempt(get_db(), attempt_id)
    return {"attempt": attempt.to_dict()}


@app.get("/api/attempts/{attempt_id}/results")
async def api_attempt_results(attempt_id: str):
    attempt, result = attempts.attempt_results(get_db(), attempt_id)
    return {"attempt": attempt.to_dict(), "results": result.to_dict()}


@app.get("/api/students/{student_id}/attempts")
async def api_attempt_history(student_id: str):
    history = attempts.attempt_history(get_db(), student_id)
    return {"attempts": [a.to_dict() for a in history]}


# ── API: Study ────────────────────────────────────────────────────────────

@app.get("/api/study/sheets/{sheet_id}/words")
async def api_study_words(sheet_id: str, student_id: str):
    words, stats = study.study_words(get_db(), sheet_id, student_id)
    return {"words": words, "stats": stats}


@app.get("/api/study/sheets/{sheet_id}/stats")
async def api_study_stats(sheet_id: str, student_id: str):
    _, stats = study.study_words(get_db(), sheet_id, student_id)
    return stats


@app.post("/api/study/words/{word_id}/confidence")
async def api_study_confidence(word_id: str, request: Request):
    body = await _json_body(request)
    student_id = _require_str(body, "student_id")
    confidence = _optional_int(body, "confidence")
    if confidence is None:
        raise HTTPException(400, "'confidence' is required")
    try:
        progress = study.record_confidence(get_db(), student_id, word_id, confidence)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"progress": progress}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await _json_body(request)
    s = get_settings()
    known = Settings.__dataclass_fields__.keys()
    updated = replace(s, **{k: v for k, v in body.items() if k in known})
    try:
        updated.validate()
    except ValueError as e:
        raise HTTPException(400, str(e))

    for k in known:
        setattr(s, k, getattr(updated, k))
    save_settings(s)
    _log.info("Settings updated: %s", ", ".join(sorted(k for k in body if k in known)))
    return s.to_dict()
