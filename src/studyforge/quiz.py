"""Quiz and test session scoring."""
import random
from datetime import datetime
from typing import Callable, Optional

from studyforge.evaluator import is_correct
from studyforge.models import Question, SessionResult, MODE_QUIZ, MODE_TEST, MEDIUM

IN_PROGRESS = "in_progress"
AWAITING_OVERRIDE_REVIEW = "awaiting_override_review"
FINALIZED = "finalized"

QUIZ_SIZE = 6
TEST_SIZES = (5, 10, 15, 20)


class SessionError(Exception):
    """An action the learner attempted is not allowed right now."""


class SessionStateError(SessionError):
    pass


class IncompleteSubmissionError(SessionError):
    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"Please answer all questions. {remaining} remaining.")


def pick_questions(questions: list, count: int, rng: random.Random | None = None) -> list:
    """Random sample of up to count questions in random order."""
    rng = rng or random.Random()
    return rng.sample(list(questions), min(count, len(questions)))


class SessionScorer:
    """Tracks answers, reveals and overrides for one quiz or test attempt.

    Quiz: each answer is judged and revealed at once, advance() moves on and
    finalizes after the last question. Test: answers are collected in any order,
    submit() reveals them all, finalize() records the result.
    """

    def __init__(
        self,
        questions: list,
        mode: str = MODE_QUIZ,
        difficulty: str = MEDIUM,
        ledger: Optional[Callable[[SessionResult], None]] = None,
    ):
        if mode not in (MODE_QUIZ, MODE_TEST):
            raise ValueError(f"Unknown session mode: {mode!r}")
        self.mode = mode
        self.difficulty = difficulty
        self.ledger = ledger
        self.result: SessionResult | None = None
        self._start(questions)

    def _start(self, questions: list) -> None:
        self.questions = list(questions)
        self.state = IN_PROGRESS
        self.cursor = 0
        self.answers: dict[str, str] = {}
        self.revealed: set[str] = set()
        self.overrides: set[str] = set()

    def _question(self, question_id: str) -> Question:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise KeyError(f"Question not in session: {question_id}")

    @property
    def current_question(self) -> Question | None:
        if self.state != IN_PROGRESS or self.cursor >= len(self.questions):
            return None
        return self.questions[self.cursor]

    @property
    def is_finalized(self) -> bool:
        return self.state == FINALIZED

    def answer(self, question_id: str, text: str) -> bool | None:
        """Record an answer. In Quiz mode the verdict is revealed and returned."""
        if self.state != IN_PROGRESS:
            raise SessionStateError("Answers can no longer be changed.")
        question = self._question(question_id)
        if self.mode == MODE_TEST:
            self.answers[question_id] = text
            return None

        if question is not self.current_question:
            raise SessionStateError("Only the current question can be answered.")
        if question_id in self.revealed:
            raise SessionStateError("This question has already been answered.")
        self.answers[question_id] = text
        self.revealed.add(question_id)
        return is_correct(question, text)

    def advance(self, now: datetime) -> SessionResult | None:
        """Quiz only: move past the revealed current question."""
        if self.mode != MODE_QUIZ or self.state != IN_PROGRESS:
            raise SessionStateError("Nothing to advance.")
        current = self.current_question
        if current is not None and current.id not in self.revealed:
            raise SessionStateError("Answer the current question first.")
        self.cursor += 1
        if self.cursor >= len(self.questions):
            return self._finish(now)
        return None

    def unanswered_count(self) -> int:
        return sum(1 for q in self.questions if not (self.answers.get(q.id) or "").strip())

    def submit(self) -> None:
        """Test only: reveal all answers for review."""
        if self.mode != MODE_TEST or self.state != IN_PROGRESS:
            raise SessionStateError("This session cannot be submitted.")
        remaining = self.unanswered_count()
        if remaining:
            raise IncompleteSubmissionError(remaining)
        self.revealed = {q.id for q in self.questions}
        self.state = AWAITING_OVERRIDE_REVIEW

    def verdict(self, question_id: str) -> bool:
        """Counted verdict for a question, overrides included."""
        if question_id in self.overrides:
            return True
        return is_correct(self._question(question_id), self.answers.get(question_id, ""))

    def override(self, question_id: str) -> bool:
        """Mark a revealed wrong answer as correct. Returns whether anything changed."""
        if self.state == FINALIZED or question_id not in self.revealed:
            return False
        if self.verdict(question_id):
            return False
        self.overrides.add(question_id)
        return True

    def get_score(self) -> int:
        return sum(1 for q in self.questions if self.verdict(q.id))

    def finalize(self, now: datetime) -> SessionResult:
        """Test only: close the review and record the result."""
        if self.state != AWAITING_OVERRIDE_REVIEW:
            raise SessionStateError("Submit the test before finishing.")
        return self._finish(now)

    def _finish(self, now: datetime) -> SessionResult:
        self.result = SessionResult(
            date=now,
            score=self.get_score(),
            total_questions=len(self.questions),
            difficulty=self.difficulty,
            mode=self.mode,
        )
        self.state = FINALIZED
        if self.ledger is not None:
            self.ledger(self.result)
        return self.result

    def reset(self, questions: list) -> None:
        """Swap in a new question list and start over. Only before submission."""
        if self.state != IN_PROGRESS:
            raise SessionStateError("Questions can only be replaced before submission.")
        self._start(questions)
