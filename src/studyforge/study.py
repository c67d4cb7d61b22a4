"""Study set creation, editing and user settings."""
import logging
import random
from dataclasses import replace
from datetime import datetime

from studyforge.db import get_connection
from studyforge.generator import (
    DEFAULT_MODEL, GenerationError, generate_questions, generate_study_content, modify_card,
)
from studyforge.models import Flashcard, StudySet, HARD, MEDIUM, new_flashcard, new_id
from studyforge.quiz import QUIZ_SIZE, pick_questions
from studyforge.storage import save_set

logger = logging.getLogger(__name__)

SET_COLORS = ("blue", "purple", "green", "magenta")


def get_setting(db_path: str, key: str, default: str | None = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def get_model_name(db_path: str) -> str:
    return get_setting(db_path, "model", DEFAULT_MODEL)


def get_quiz_size(db_path: str) -> int:
    return int(get_setting(db_path, "quiz_size", str(QUIZ_SIZE)))


def create_study_set(
    db_path: str,
    title: str,
    text: str,
    now: datetime,
    difficulty: str = MEDIUM,
    generate=generate_study_content,
    rng: random.Random | None = None,
) -> StudySet:
    """Generate content for the notes and store it as a new set.

    GenerationError propagates and nothing is saved.
    """
    if not title.strip() or not text.strip():
        raise ValueError("Please provide both a title and study notes (or uploaded content).")
    content = generate(text, difficulty)
    rng = rng or random.Random()
    study_set = StudySet(
        id=new_id(),
        title=title.strip(),
        description=content.description,
        tags=list(content.tags),
        source_text=text,
        study_guide=content.study_guide,
        color=rng.choice(SET_COLORS),
        created_at=now,
        flashcards=[new_flashcard(front, back, now) for front, back in content.flashcards],
        questions=list(content.questions),
    )
    save_set(db_path, study_set)
    logger.info("Created set %r with %d cards", study_set.title, len(study_set.flashcards))
    return study_set


# --- Editor ---


def _card_index(study_set: StudySet, card_id: str) -> int:
    for i, card in enumerate(study_set.flashcards):
        if card.id == card_id:
            return i
    raise KeyError(f"Flashcard not found: {card_id}")


def add_card(study_set: StudySet, front: str, back: str, now: datetime) -> Flashcard:
    card = new_flashcard(front, back, now)
    study_set.flashcards.append(card)
    return card


def update_card(study_set: StudySet, card_id: str, front: str | None = None, back: str | None = None) -> Flashcard:
    """Edit a card's text. Scheduling state is kept."""
    index = _card_index(study_set, card_id)
    card = study_set.flashcards[index]
    updated = replace(
        card,
        front=card.front if front is None else front,
        back=card.back if back is None else back,
    )
    study_set.flashcards[index] = updated
    return updated


def delete_card(study_set: StudySet, card_id: str) -> None:
    del study_set.flashcards[_card_index(study_set, card_id)]


def ai_modify_card(
    study_set: StudySet, card_id: str, instruction: str, modify=modify_card
) -> Flashcard:
    """Rewrite a card with the generator. The card is unchanged on failure."""
    card = study_set.flashcards[_card_index(study_set, card_id)]
    front, back = modify(card.front, card.back, instruction)
    return update_card(study_set, card_id, front=front, back=back)


# --- Question sourcing ---


def regenerate_questions(
    study_set: StudySet, count: int, difficulty: str = MEDIUM, generate=generate_questions
) -> list:
    """Fresh questions from the set's source text."""
    if not study_set.source_text:
        raise GenerationError("Cannot generate new questions because the source text is missing.")
    return generate(study_set.source_text, count, difficulty)


def build_test_questions(
    study_set: StudySet,
    count: int,
    generate=generate_questions,
    rng: random.Random | None = None,
) -> tuple[list, bool]:
    """Questions for a test: freshly generated when possible, else sampled.

    Returns the questions and whether the fallback to existing questions was used.
    """
    if study_set.source_text:
        try:
            return regenerate_questions(study_set, count, HARD, generate), False
        except GenerationError as e:
            logger.warning("Test generation failed, using existing questions: %s", e)
            return pick_questions(study_set.questions, count, rng), True
    return pick_questions(study_set.questions, count, rng), False
