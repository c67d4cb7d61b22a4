"""Flashcard session selection and review recording."""
import random
from datetime import datetime

from studyforge.db import get_connection
from studyforge.models import Flashcard
from studyforge.scheduler import review_card
from studyforge.storage import card_from_row

STANDARD = "Standard"
LEARN = "Learn"
REVIEW = "Review"
MODES = (STANDARD, LEARN, REVIEW)


def shuffle_cards(cards: list, rng: random.Random | None = None) -> list:
    """Uniformly permuted copy of cards. Pass a seeded Random for reproducible order."""
    rng = rng or random.Random()
    shuffled = list(cards)
    rng.shuffle(shuffled)
    return shuffled


def is_due(card: Flashcard, now: datetime) -> bool:
    return card.next_review_at <= now


def select_cards(
    cards: list,
    mode: str,
    now: datetime,
    shuffle: bool = False,
    rng: random.Random | None = None,
) -> list:
    """Cards to study in the given mode.

    Standard returns everything, Learn returns due cards plus any card still at
    level 0, Review returns only level-0 cards. Input order is kept unless
    shuffle is set. An empty list is a normal result.
    """
    if mode == STANDARD:
        selected = list(cards)
    elif mode == LEARN:
        selected = [c for c in cards if is_due(c, now) or c.mastery_level == 0]
    elif mode == REVIEW:
        selected = [c for c in cards if c.mastery_level == 0]
    else:
        raise ValueError(f"Unknown study mode: {mode!r}")

    if shuffle:
        return shuffle_cards(selected, rng)
    return selected


def record_flashcard_review(db_path: str, card_id: str, was_correct: bool, now: datetime) -> Flashcard:
    """Schedule a card after a review and commit it immediately."""
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,)).fetchone()
    if row is None:
        conn.close()
        raise KeyError(f"Flashcard not found: {card_id}")
    updated = review_card(card_from_row(row), was_correct, now)
    conn.execute(
        """UPDATE flashcards SET mastery_level=?, next_review_at=?, last_reviewed_at=?
        WHERE id=?""",
        (updated.mastery_level, updated.next_review_at.isoformat(),
         updated.last_reviewed_at.isoformat(), card_id),
    )
    conn.execute(
        "INSERT INTO flashcard_reviews (flashcard_id, was_correct, reviewed_at) VALUES (?, ?, ?)",
        (card_id, int(was_correct), now.isoformat()),
    )
    conn.commit()
    conn.close()
    return updated


def get_review_count(db_path: str, set_id: str) -> int:
    conn = get_connection(db_path)
    count = conn.execute(
        """SELECT COUNT(*) FROM flashcard_reviews r
        JOIN flashcards f ON r.flashcard_id = f.id
        WHERE f.set_id = ?""",
        (set_id,),
    ).fetchone()[0]
    conn.close()
    return count
