"""Box-based spaced repetition scheduling."""
from dataclasses import replace
from datetime import datetime, timedelta

from studyforge.models import Flashcard, MAX_MASTERY

# Days until the next review, indexed by the mastery level reached.
INTERVAL_DAYS = (0, 1, 3, 7, 14, 30)


def interval_days(mastery_level: int) -> int:
    return INTERVAL_DAYS[mastery_level]


def review_card(card: Flashcard, was_correct: bool, now: datetime) -> Flashcard:
    """Calculate the card's next review state.

    Args:
        card: Card being reviewed (mastery level 0-5)
        was_correct: Whether the learner recalled the back of the card
        now: Review time, never earlier than the card's last review

    Returns:
        A new Flashcard; the input card is left untouched.
    """
    if was_correct:
        level = min(card.mastery_level + 1, MAX_MASTERY)
    else:
        # A single miss sends the card back to box 0
        level = 0

    return replace(
        card,
        mastery_level=level,
        next_review_at=now + timedelta(days=interval_days(level)),
        last_reviewed_at=now,
    )
