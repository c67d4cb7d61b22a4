from datetime import datetime

import pytest

from studyforge.models import (
    Question, StudySet, MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER, new_flashcard,
)

NOW = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_studyforge.db")
    return db_path


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def questions():
    return [
        Question(id="q1", type=MULTIPLE_CHOICE, prompt="Capital of France?",
                 options=("Berlin", "Paris", "Rome", "Madrid"), expected_answer="Paris",
                 explanation="Paris has been the capital since 987."),
        Question(id="q2", type=TRUE_FALSE, prompt="The Seine flows through Paris.",
                 expected_answer="True"),
        Question(id="q3", type=SHORT_ANSWER, prompt="Which river flows through Paris?",
                 expected_answer="Seine"),
    ]


@pytest.fixture
def sample_set(questions):
    cards = [
        new_flashcard("Capital of France?", "Paris", NOW),
        new_flashcard("Capital of Italy?", "Rome", NOW),
        new_flashcard("Capital of Spain?", "Madrid", NOW),
    ]
    return StudySet(
        id="set-1",
        title="European Capitals",
        description="Capitals of Europe",
        tags=["geography", "europe"],
        source_text="Paris is the capital of France. Rome is the capital of Italy.",
        study_guide="# Capitals\n\n- Paris\n- Rome",
        created_at=NOW,
        flashcards=cards,
        questions=list(questions),
    )
