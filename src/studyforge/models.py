"""Data classes for the study domain model."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

MULTIPLE_CHOICE = "multiple-choice"
TRUE_FALSE = "true-false"
SHORT_ANSWER = "short-answer"
QUESTION_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER)

EASY = "Easy"
MEDIUM = "Medium"
HARD = "Hard"
DIFFICULTIES = (EASY, MEDIUM, HARD)

MODE_QUIZ = "Quiz"
MODE_TEST = "Test"

MAX_MASTERY = 5


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp into naive local time.

    Values with an offset (including a trailing "Z") are converted to local time
    and the offset is dropped, so they compare cleanly with `datetime.now()`.
    """
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


@dataclass
class Flashcard:
    id: str
    front: str
    back: str
    next_review_at: datetime
    mastery_level: int = 0
    last_reviewed_at: Optional[datetime] = None


@dataclass(frozen=True)
class Question:
    id: str
    type: str
    prompt: str
    expected_answer: str
    explanation: str = ""
    options: tuple = ()


@dataclass(frozen=True)
class SessionResult:
    date: datetime
    score: int
    total_questions: int
    difficulty: str
    mode: str


@dataclass
class StudySet:
    id: str
    title: str
    created_at: datetime
    description: str = ""
    tags: list = field(default_factory=list)
    flashcards: list = field(default_factory=list)
    questions: list = field(default_factory=list)
    results: list = field(default_factory=list)
    source_text: Optional[str] = None
    study_guide: str = ""
    color: str = "blue"


def new_flashcard(front: str, back: str, now: datetime) -> Flashcard:
    """A fresh card: level 0 and due immediately."""
    return Flashcard(id=new_id(), front=front, back=back, next_review_at=now)
