"""CLI entry point for vocab-sheets.

Usage:
  python -m vocab_sheets serve [--port PORT] [--host HOST]
  python -m vocab_sheets stop
  python -m vocab_sheets status
  python -m vocab_sheets import FILE [--name NAME] [--type VOCABULARY|SPELLING]
  python -m vocab_sheets generate --sheet SHEET_ID [--variants N]
  python -m vocab_sheets assign --test TEST_ID --student STUDENT_ID [--due DATE]
  python -m vocab_sheets results ATTEMPT_ID
  python -m vocab_sheets stats
"""
from __future__ import annotations

import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print(f"Commands: {', '.join(COMMANDS)}")
        sys.exit(1)
    handler(args[1:])


def _flag(args: list[str], name: str, default: str = "") -> str:
    if name in args:
        i = args.index(name)
        if i + 1 < len(args):
            return args[i + 1]
    return default


def _fail(message: str):
    print(message)
    sys.exit(1)


def _open_db():
    from vocab_sheets.config import load_settings
    from vocab_sheets.db import Database

    settings = load_settings()
    return settings, Database(settings.db_full_path)


# ── Server process ────────────────────────────────────────────────────────

def _running_pid() -> int | None:
    """PID of the live server, or None.  A stale PID file is removed."""
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
    except FileNotFoundError:
        return None
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None
    return pid


def _cmd_stop(args: list[str]):
    pid = _running_pid()
    if pid is None:
        print("Server is not running.")
        return
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        print("Server exited before it could be stopped.")
    else:
        print(f"Stopped server (PID {pid}).")
    PID_FILE.unlink(missing_ok=True)


def _cmd_status(args: list[str]):
    pid = _running_pid()
    print("Server is not running." if pid is None else f"Server is running (PID {pid}).")


def _cmd_serve(args: list[str]):
    import uvicorn

    pid = _running_pid()
    if pid is not None:
        _fail(f"Server already running (PID {pid}). Use 'stop' first.")

    host = _flag(args, "--host", "127.0.0.1")
    port = int(_flag(args, "--port", "8766"))
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting Vocab Sheets on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "vocab_sheets.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)


# ── Corpus and tests ──────────────────────────────────────────────────────

def _cmd_import(args: list[str]):
    from vocab_sheets.parsers.vocabulary_parser import parse_vocabulary_file

    if not args or args[0].startswith("--"):
        _fail("Usage: import FILE [--name NAME] [--type VOCABULARY|SPELLING]")
    path = Path(args[0])
    if not path.is_file():
        _fail(f"File not found: {path}")

    pairs = parse_vocabulary_file(path)
    if not pairs:
        _fail(f"No words found in {path.name}.")

    _, db = _open_db()
    try:
        sheet = db.create_sheet(
            _flag(args, "--name", path.stem),
            pairs,
            source_file=path.name,
            test_type=_flag(args, "--type", "VOCABULARY").upper(),
        )
    except ValueError as e:
        _fail(f"Import failed: {e}")
    finally:
        db.close()
    print(f"Imported {len(pairs)} words as sheet '{sheet.name}' ({sheet.test_type})")
    print(f"Sheet id: {sheet.id}")


def _cmd_generate(args: list[str]):
    from vocab_sheets.errors import VocabSheetsError
    from vocab_sheets.question_generator import generate_tests

    sheet_id = _flag(args, "--sheet")
    if not sheet_id:
        _fail("Usage: generate --sheet SHEET_ID [--variants N]")

    settings, db = _open_db()
    try:
        tests = generate_tests(
            db,
            sheet_id,
            int(_flag(args, "--variants", str(settings.variants_per_sheet))),
            question_types=settings.question_types,
            choice_count=settings.choice_count,
            max_variants=settings.max_variants,
        )
    except (VocabSheetsError, ValueError) as e:
        _fail(f"Generation failed: {e}")
    finally:
        db.close()

    for t in tests:
        print(f"  {t.name}: {len(t.questions)} questions  ({t.id})")
    print(f"\nGenerated {len(tests)} tests")


# ── Students ──────────────────────────────────────────────────────────────

def _cmd_assign(args: list[str]):
    from vocab_sheets.assignments import assign
    from vocab_sheets.errors import VocabSheetsError

    test_id = _flag(args, "--test")
    student_id = _flag(args, "--student")
    if not test_id or not student_id:
        _fail("Usage: assign --test TEST_ID --student STUDENT_ID [--due DATE]")

    _, db = _open_db()
    try:
        a = assign(db, test_id, student_id, _flag(args, "--due") or None)
    except VocabSheetsError as e:
        _fail(f"Assign failed: {e}")
    finally:
        db.close()
    due = f", due {a.due_date}" if a.due_date else ""
    print(f"Test {a.test_id} assigned to {a.student_id}{due}  ({a.id})")


def _cmd_results(args: list[str]):
    from vocab_sheets.attempts import attempt_results
    from vocab_sheets.errors import VocabSheetsError

    if not args:
        _fail("Usage: results ATTEMPT_ID")

    _, db = _open_db()
    try:
        attempt, result = attempt_results(db, args[0])
        test = db.get_test(attempt.test_id)
    except VocabSheetsError as e:
        _fail(str(e))
    finally:
        db.close()

    print(f"{test.name}  student {attempt.student_id}  [{attempt.status}]")
    for q in test.questions:
        ans = attempt.answers.get(q.id)
        mark = "ok " if result.per_question[q.id] else "-- "
        given = ans.answer if ans else "(no answer)"
        print(f"  {mark}{q.order_index + 1:>2}. {given}")
    print(f"\nScore: {result.correct_count}/{result.total_count} ({result.percentage}%)")


def _cmd_stats(args: list[str]):
    _, db = _open_db()
    stats = db.get_stats()
    db.close()

    print("Vocab Sheets Stats")
    print("=" * 40)
    print(f"Sheets:               {stats['total_sheets']}")
    print(f"Words:                {stats['total_words']}")
    print(f"Tests:                {stats['total_tests']}")
    print(f"Questions:            {stats['total_questions']}")
    print(f"Assignments:          {stats['total_assignments']}")
    print(f"Attempts in progress: {stats['attempts_in_progress']}")
    print(f"Attempts submitted:   {stats['attempts_submitted']}")
    print(f"Average score:        {stats['average_score']}%")


COMMANDS = {
    "serve": _cmd_serve,
    "stop": _cmd_stop,
    "status": _cmd_status,
    "import": _cmd_import,
    "generate": _cmd_generate,
    "assign": _cmd_assign,
    "results": _cmd_results,
    "stats": _cmd_stats,
}


if __name__ == "__main__":
    main()
