# tests/test_flashcards.py
import random
from dataclasses import replace
from datetime import timedelta

import pytest

from studyforge.db import init_db, get_connection
from studyforge.flashcards import (
    LEARN, REVIEW, STANDARD, get_review_count, record_flashcard_review, select_cards,
    shuffle_cards,
)
from studyforge.models import Flashcard
from studyforge.storage import get_set, save_set


def card(card_id, level, due, now):
    return Flashcard(id=card_id, front=card_id, back="", mastery_level=level,
                     next_review_at=now + timedelta(days=due))


@pytest.fixture
def deck(now):
    return [
        card("new-future", 0, 1, now),     # level 0, not yet due
        card("due", 2, -1, now),           # due yesterday
        card("due-now", 3, 0, now),        # due exactly now
        card("later", 4, 5, now),          # not due
        card("new-due", 0, 0, now),
    ]


def ids(cards):
    return [c.id for c in cards]


def test_standard_returns_everything_in_order(deck, now):
    assert ids(select_cards(deck, STANDARD, now)) == ids(deck)


def test_learn_includes_due_and_new(deck, now):
    assert ids(select_cards(deck, LEARN, now)) == ["new-future", "due", "due-now", "new-due"]


def test_review_returns_only_level_zero(deck, now):
    assert ids(select_cards(deck, REVIEW, now)) == ["new-future", "new-due"]


def test_empty_result_is_valid(now):
    mastered = [card("m", 5, 30, now)]
    assert select_cards(mastered, REVIEW, now) == []
    assert select_cards(mastered, LEARN, now) == []
    assert select_cards([], STANDARD, now) == []


def test_unknown_mode_raises(deck, now):
    with pytest.raises(ValueError):
        select_cards(deck, "Cram", now)


def test_select_is_pure(deck, now):
    snapshot = [replace(c) for c in deck]
    first = select_cards(deck, LEARN, now)
    second = select_cards(deck, LEARN, now)
    assert first == second
    assert deck == snapshot


def test_select_returns_new_list(deck, now):
    result = select_cards(deck, STANDARD, now)
    result.pop()
    assert len(deck) == 5


def test_shuffle_is_seedable(deck):
    first = shuffle_cards(deck, random.Random(42))
    second = shuffle_cards(deck, random.Random(42))
    assert ids(first) == ids(second)
    assert sorted(ids(first)) == sorted(ids(deck))


def test_shuffle_does_not_touch_input(deck):
    before = ids(deck)
    shuffle_cards(deck, random.Random(1))
    assert ids(deck) == before


def test_select_with_shuffle_keeps_membership(deck, now):
    result = select_cards(deck, LEARN, now, shuffle=True, rng=random.Random(7))
    assert sorted(ids(result)) == sorted(["new-future", "due", "due-now", "new-due"])
    assert all(c.mastery_level == orig.mastery_level
               for c in result for orig in deck if orig.id == c.id)


def test_record_flashcard_review_commits_immediately(tmp_db, sample_set, now):
    init_db(tmp_db)
    save_set(tmp_db, sample_set)
    card_id = sample_set.flashcards[0].id
    later = now + timedelta(hours=1)

    updated = record_flashcard_review(tmp_db, card_id, True, later)
    assert updated.mastery_level == 1
    assert updated.next_review_at == later + timedelta(days=1)

    stored = get_set(tmp_db, sample_set.id).flashcards[0]
    assert stored.mastery_level == 1
    assert stored.last_reviewed_at == later

    conn = get_connection(tmp_db)
    row = conn.execute("SELECT * FROM flashcard_reviews WHERE flashcard_id = ?", (card_id,)).fetchone()
    assert row["was_correct"] == 1
    conn.close()


def test_record_flashcard_review_miss_resets(tmp_db, sample_set, now):
    init_db(tmp_db)
    sample_set.flashcards[1] = replace(sample_set.flashcards[1], mastery_level=4)
    save_set(tmp_db, sample_set)
    updated = record_flashcard_review(tmp_db, sample_set.flashcards[1].id, False, now)
    assert updated.mastery_level == 0
    assert get_set(tmp_db, sample_set.id).flashcards[1].mastery_level == 0


def test_record_flashcard_review_unknown_card(tmp_db, now):
    init_db(tmp_db)
    with pytest.raises(KeyError):
        record_flashcard_review(tmp_db, "missing", True, now)


def test_get_review_count(tmp_db, sample_set, now):
    init_db(tmp_db)
    save_set(tmp_db, sample_set)
    for c in sample_set.flashcards:
        record_flashcard_review(tmp_db, c.id, True, now)
    assert get_review_count(tmp_db, sample_set.id) == 3
