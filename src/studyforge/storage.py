"""Study set repository backed by SQLite, plus JSON export/import."""
import json
import logging
import re
import sqlite3
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from studyforge.db import get_connection
from studyforge.models import (
    Flashcard, Question, SessionResult, StudySet, QUESTION_TYPES, MAX_MASTERY,
    new_id, parse_timestamp,
)
from studyforge.results import result_from_row, insert_result

logger = logging.getLogger(__name__)


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def card_from_row(row: sqlite3.Row) -> Flashcard:
    """Build a Flashcard from a row, rejecting out-of-range mastery levels."""
    level = row["mastery_level"]
    if not 0 <= level <= MAX_MASTERY:
        raise ValueError(f"Flashcard {row['id']} has invalid mastery level {level}")
    return Flashcard(
        id=row["id"],
        front=row["front"],
        back=row["back"],
        mastery_level=level,
        next_review_at=parse_timestamp(row["next_review_at"]),
        last_reviewed_at=parse_timestamp(row["last_reviewed_at"]),
    )


def question_from_row(row: sqlite3.Row) -> Question:
    if row["type"] not in QUESTION_TYPES:
        raise ValueError(f"Question {row['id']} has unknown type {row['type']!r}")
    return Question(
        id=row["id"],
        type=row["type"],
        prompt=row["prompt"],
        options=tuple(json.loads(row["options"] or "[]")),
        expected_answer=row["expected_answer"],
        explanation=row["explanation"] or "",
    )


def _load_children(conn: sqlite3.Connection, row: sqlite3.Row) -> StudySet:
    set_id = row["id"]
    cards = conn.execute(
        "SELECT * FROM flashcards WHERE set_id = ? ORDER BY position", (set_id,)
    ).fetchall()
    questions = conn.execute(
        "SELECT * FROM questions WHERE set_id = ? ORDER BY position", (set_id,)
    ).fetchall()
    results = conn.execute(
        "SELECT * FROM session_results WHERE set_id = ? ORDER BY id", (set_id,)
    ).fetchall()
    return StudySet(
        id=set_id,
        title=row["title"],
        description=row["description"] or "",
        tags=json.loads(row["tags"] or "[]"),
        source_text=row["source_text"],
        study_guide=row["study_guide"] or "",
        color=row["color"] or "blue",
        created_at=parse_timestamp(row["created_at"]),
        flashcards=[card_from_row(c) for c in cards],
        questions=[question_from_row(q) for q in questions],
        results=[result_from_row(r) for r in results],
    )


def load_sets(db_path: str) -> list[StudySet]:
    """All study sets, newest first."""
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM study_sets ORDER BY created_at DESC").fetchall()
    sets = [_load_children(conn, row) for row in rows]
    conn.close()
    return sets


def get_set(db_path: str, set_id: str) -> StudySet | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM study_sets WHERE id = ?", (set_id,)).fetchone()
    study_set = _load_children(conn, row) if row else None
    conn.close()
    return study_set


def _prune(conn: sqlite3.Connection, table: str, set_id: str, keep_ids: list[str]) -> None:
    placeholders = ", ".join("?" for _ in keep_ids)
    if keep_ids:
        conn.execute(
            f"DELETE FROM {table} WHERE set_id = ? AND id NOT IN ({placeholders})",
            (set_id, *keep_ids),
        )
    else:
        conn.execute(f"DELETE FROM {table} WHERE set_id = ?", (set_id,))


def save_set(db_path: str, study_set: StudySet) -> None:
    """Insert or replace a set with its flashcards and questions.

    Results are append-only and written through the result ledger, so they are
    not touched here.
    """
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO study_sets (id, title, description, tags, source_text, study_guide, color, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET title=excluded.title, description=excluded.description,
            tags=excluded.tags, source_text=excluded.source_text,
            study_guide=excluded.study_guide, color=excluded.color""",
        (study_set.id, study_set.title, study_set.description, json.dumps(study_set.tags),
         study_set.source_text, study_set.study_guide, study_set.color,
         study_set.created_at.isoformat()),
    )

    _prune(conn, "flashcards", study_set.id, [c.id for c in study_set.flashcards])
    for position, card in enumerate(study_set.flashcards):
        conn.execute(
            """INSERT INTO flashcards
                (id, set_id, position, front, back, mastery_level, next_review_at, last_reviewed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET position=excluded.position, front=excluded.front,
                back=excluded.back, mastery_level=excluded.mastery_level,
                next_review_at=excluded.next_review_at, last_reviewed_at=excluded.last_reviewed_at""",
            (card.id, study_set.id, position, card.front, card.back, card.mastery_level,
             card.next_review_at.isoformat(), _format_ts(card.last_reviewed_at)),
        )

    _prune(conn, "questions", study_set.id, [q.id for q in study_set.questions])
    for position, q in enumerate(study_set.questions):
        conn.execute(
            """INSERT INTO questions
                (id, set_id, position, type, prompt, options, expected_answer, explanation)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET position=excluded.position, type=excluded.type,
                prompt=excluded.prompt, options=excluded.options,
                expected_answer=excluded.expected_answer, explanation=excluded.explanation""",
            (q.id, study_set.id, position, q.type, q.prompt, json.dumps(list(q.options)),
             q.expected_answer, q.explanation),
        )
    conn.commit()
    conn.close()
    logger.info(
        "Saved set %s (%d cards, %d questions)",
        study_set.id, len(study_set.flashcards), len(study_set.questions),
    )


def delete_set(db_path: str, set_id: str) -> bool:
    """Delete a set and everything it owns. Returns False if it did not exist."""
    conn = get_connection(db_path)
    cursor = conn.execute("DELETE FROM study_sets WHERE id = ?", (set_id,))
    conn.commit()
    conn.close()
    if cursor.rowcount:
        logger.info("Deleted set %s", set_id)
    return cursor.rowcount > 0


# --- JSON export/import ---


def set_to_dict(study_set: StudySet) -> dict:
    return {
        "id": study_set.id,
        "title": study_set.title,
        "description": study_set.description,
        "tags": list(study_set.tags),
        "sourceText": study_set.source_text,
        "studyGuide": study_set.study_guide,
        "color": study_set.color,
        "createdAt": study_set.created_at.isoformat(),
        "flashcards": [
            {
                "id": c.id,
                "front": c.front,
                "back": c.back,
                "masteryLevel": c.mastery_level,
                "nextReviewAt": c.next_review_at.isoformat(),
                "lastReviewedAt": _format_ts(c.last_reviewed_at),
            }
            for c in study_set.flashcards
        ],
        "questions": [
            {
                "id": q.id,
                "type": q.type,
                "prompt": q.prompt,
                "options": list(q.options),
                "expectedAnswer": q.expected_answer,
                "explanation": q.explanation,
            }
            for q in study_set.questions
        ],
        "results": [
            {
                "date": r.date.isoformat(),
                "score": r.score,
                "totalQuestions": r.total_questions,
                "difficulty": r.difficulty,
                "mode": r.mode,
            }
            for r in study_set.results
        ],
    }


def set_from_dict(data: dict) -> StudySet:
    """Inverse of set_to_dict. Raises ValueError on malformed cards or questions."""
    cards = []
    for c in data.get("flashcards", []):
        level = int(c.get("masteryLevel", 0))
        if not 0 <= level <= MAX_MASTERY:
            raise ValueError(f"Flashcard {c.get('id')} has invalid mastery level {level}")
        cards.append(Flashcard(
            id=c["id"],
            front=c["front"],
            back=c["back"],
            mastery_level=level,
            next_review_at=parse_timestamp(c["nextReviewAt"]),
            last_reviewed_at=parse_timestamp(c.get("lastReviewedAt")),
        ))
    questions = []
    for q in data.get("questions", []):
        if q["type"] not in QUESTION_TYPES:
            raise ValueError(f"Question {q.get('id')} has unknown type {q['type']!r}")
        questions.append(Question(
            id=q["id"],
            type=q["type"],
            prompt=q["prompt"],
            options=tuple(q.get("options") or ()),
            expected_answer=q["expectedAnswer"],
            explanation=q.get("explanation", ""),
        ))
    results = [
        SessionResult(
            date=parse_timestamp(r["date"]),
            score=r["score"],
            total_questions=r["totalQuestions"],
            difficulty=r["difficulty"],
            mode=r["mode"],
        )
        for r in data.get("results", [])
    ]
    return StudySet(
        id=data["id"],
        title=data["title"],
        description=data.get("description", ""),
        tags=list(data.get("tags", [])),
        source_text=data.get("sourceText"),
        study_guide=data.get("studyGuide", ""),
        color=data.get("color", "blue"),
        created_at=parse_timestamp(data["createdAt"]),
        flashcards=cards,
        questions=questions,
        results=results,
    )


def export_filename(study_set: StudySet) -> str:
    return re.sub(r"\s+", "_", study_set.title) + "_studyforge.json"


def export_set(study_set: StudySet, path: str | None = None) -> str:
    """Write the set as JSON. Returns the path written."""
    target = Path(path) if path else Path.cwd() / export_filename(study_set)
    target.write_text(json.dumps(set_to_dict(study_set), indent=2))
    return str(target)


def import_set(db_path: str, path: str) -> StudySet:
    """Load an exported set and store it under fresh ids."""
    data = json.loads(Path(path).read_text())
    imported = set_from_dict(data)
    study_set = replace(
        imported,
        id=new_id(),
        flashcards=[replace(c, id=new_id()) for c in imported.flashcards],
        questions=[replace(q, id=new_id()) for q in imported.questions],
    )
    save_set(db_path, study_set)
    conn = get_connection(db_path)
    for result in study_set.results:
        insert_result(conn, study_set.id, result)
    conn.commit()
    conn.close()
    logger.info("Imported set %r from %s", study_set.title, path)
    return study_set
