# tests/test_integration.py
"""End-to-end test of the core workflow."""
from datetime import timedelta

from studyforge.dashboard import get_set_stats
from studyforge.db import init_db
from studyforge.flashcards import LEARN, REVIEW, record_flashcard_review, select_cards
from studyforge.generator import GeneratedContent, GenerationError
from studyforge.models import MODE_QUIZ, MODE_TEST, HARD, MEDIUM
from studyforge.quiz import SessionScorer
from studyforge.results import get_average_score, record_session_result
from studyforge.storage import delete_set, get_set, load_sets
from studyforge.study import build_test_questions, create_study_set


def test_full_study_workflow(tmp_db, questions, now):
    """Create a set, drill flashcards over several days, take a quiz and a test."""
    init_db(tmp_db)
    content = GeneratedContent(
        title="", description="Paris facts", study_guide="# Paris", tags=["geo"],
        flashcards=[("Capital of France?", "Paris"), ("River?", "Seine"), ("Tower?", "Eiffel")],
        questions=questions,
    )
    study_set = create_study_set(tmp_db, "Paris", "Paris notes", now,
                                 generate=lambda text, difficulty: content)

    # Day 1: every new card is up for learning
    cards = select_cards(study_set.flashcards, LEARN, now)
    assert len(cards) == 3
    record_flashcard_review(tmp_db, cards[0].id, True, now)
    record_flashcard_review(tmp_db, cards[1].id, True, now)
    record_flashcard_review(tmp_db, cards[2].id, False, now)

    study_set = get_set(tmp_db, study_set.id)
    assert [c.id for c in select_cards(study_set.flashcards, REVIEW, now)] == [cards[2].id]
    # Level-1 cards are not due again until tomorrow
    assert [c.id for c in select_cards(study_set.flashcards, LEARN, now)] == [cards[2].id]

    # Day 2: the two learned cards come back
    tomorrow = now + timedelta(days=1)
    due = select_cards(study_set.flashcards, LEARN, tomorrow)
    assert len(due) == 3
    for c in due:
        record_flashcard_review(tmp_db, c.id, True, tomorrow)
    study_set = get_set(tmp_db, study_set.id)
    assert [c.mastery_level for c in study_set.flashcards] == [2, 2, 1]

    # Quiz: 2 of 3 correct
    quiz = SessionScorer(study_set.questions, MODE_QUIZ, MEDIUM,
                         ledger=lambda r: record_session_result(tmp_db, study_set.id, r))
    for answer in ["Paris", "False", "seine"]:
        quiz.answer(quiz.current_question.id, answer)
        quiz.advance(tomorrow)
    assert quiz.result.score == 2

    # Test: generation fails, falls back to stored questions; one override
    def unavailable(text, count, difficulty):
        raise GenerationError("Failed to generate new questions.")

    test_questions, fell_back = build_test_questions(study_set, 3, generate=unavailable)
    assert fell_back
    test = SessionScorer(test_questions, MODE_TEST, HARD,
                         ledger=lambda r: record_session_result(tmp_db, study_set.id, r))
    expected = {q.id: q.expected_answer for q in questions}
    for q in test_questions:
        test.answer(q.id, expected[q.id] if q.id != "q1" else "Rome")
    test.submit()
    assert test.get_score() == 2
    test.override("q1")
    test.finalize(tomorrow)

    study_set = get_set(tmp_db, study_set.id)
    assert [(r.mode, r.score) for r in study_set.results] == [(MODE_QUIZ, 2), (MODE_TEST, 3)]
    assert get_average_score(tmp_db, study_set.id) == 83.3

    stats = get_set_stats(study_set, tomorrow)
    assert stats["quizzes_taken"] == 1
    assert stats["tests_taken"] == 1

    # Deleting the set removes everything it owns
    assert delete_set(tmp_db, study_set.id)
    assert load_sets(tmp_db) == []
