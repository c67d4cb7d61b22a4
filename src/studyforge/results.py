"""Result ledger: append-only history of finished quiz and test sessions."""
import logging
import sqlite3

from studyforge.db import get_connection
from studyforge.models import SessionResult, parse_timestamp

logger = logging.getLogger(__name__)


def result_from_row(row: sqlite3.Row) -> SessionResult:
    return SessionResult(
        date=parse_timestamp(row["date"]),
        score=row["score"],
        total_questions=row["total_questions"],
        difficulty=row["difficulty"],
        mode=row["mode"],
    )


def insert_result(conn: sqlite3.Connection, set_id: str, result: SessionResult) -> None:
    conn.execute(
        """INSERT INTO session_results (set_id, date, score, total_questions, difficulty, mode)
        VALUES (?, ?, ?, ?, ?, ?)""",
        (set_id, result.date.isoformat(), result.score, result.total_questions,
         result.difficulty, result.mode),
    )


def record_session_result(db_path: str, set_id: str, result: SessionResult) -> None:
    """Append a finalized result to the set's history."""
    conn = get_connection(db_path)
    exists = conn.execute("SELECT 1 FROM study_sets WHERE id = ?", (set_id,)).fetchone()
    if not exists:
        conn.close()
        raise KeyError(f"Study set not found: {set_id}")
    insert_result(conn, set_id, result)
    conn.commit()
    conn.close()
    logger.info(
        "Recorded %s result for set %s: %d/%d",
        result.mode, set_id, result.score, result.total_questions,
    )


def get_session_results(db_path: str, set_id: str) -> list[SessionResult]:
    """All results for a set, oldest first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM session_results WHERE set_id = ? ORDER BY id", (set_id,)
    ).fetchall()
    conn.close()
    return [result_from_row(r) for r in rows]


def get_last_result(db_path: str, set_id: str) -> SessionResult | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM session_results WHERE set_id = ? ORDER BY id DESC LIMIT 1",
        (set_id,),
    ).fetchone()
    conn.close()
    return result_from_row(row) if row else None


def average_score(results: list[SessionResult]) -> float:
    """Share of questions answered correctly across results, as a percentage."""
    total = sum(r.total_questions for r in results)
    if not total:
        return 0.0
    return round(sum(r.score for r in results) / total * 100, 1)


def get_average_score(db_path: str, set_id: str) -> float:
    """Average score across all sessions of a set, as a percentage."""
    return average_score(get_session_results(db_path, set_id))
