"""Answer correctness rules per question type."""
from studyforge.models import Question, SHORT_ANSWER


def is_correct(question: Question, submitted: str | None) -> bool:
    """Whether a submitted answer counts as correct.

    Multiple-choice and true-false answers come from a closed set of option
    strings and must match exactly. Short answers are compared case-insensitively
    and accepted when either side contains the other; a blank answer always fails.
    """
    submitted = submitted or ""
    if question.type != SHORT_ANSWER:
        return submitted == question.expected_answer

    given = submitted.strip().lower()
    if not given:
        return False
    expected = question.expected_answer.strip().lower()
    return given in expected or expected in given
