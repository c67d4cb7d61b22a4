"""Per-set progress statistics."""
from datetime import datetime

from studyforge.flashcards import LEARN, REVIEW, select_cards
from studyforge.models import StudySet, MAX_MASTERY, MODE_QUIZ, MODE_TEST
from studyforge.results import average_score


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "READY"
    elif score >= 65:
        return "LIKELY"
    elif score >= 50:
        return "NEEDS WORK"
    return "NOT READY"


def get_readiness_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def _mastery_percent(study_set: StudySet) -> float:
    if not study_set.flashcards:
        return 0.0
    total = sum(c.mastery_level for c in study_set.flashcards)
    return round(total / (len(study_set.flashcards) * MAX_MASTERY) * 100, 1)


def get_set_stats(study_set: StudySet, now: datetime) -> dict:
    cards = study_set.flashcards
    distribution = {level: 0 for level in range(MAX_MASTERY + 1)}
    for card in cards:
        distribution[card.mastery_level] += 1
    return {
        "cards": len(cards),
        "due": len(select_cards(cards, LEARN, now)),
        "struggling": len(select_cards(cards, REVIEW, now)),
        "mastered": distribution[MAX_MASTERY],
        "distribution": distribution,
        "mastery_percent": _mastery_percent(study_set),
        "quizzes_taken": sum(1 for r in study_set.results if r.mode == MODE_QUIZ),
        "tests_taken": sum(1 for r in study_set.results if r.mode == MODE_TEST),
        "last_result": study_set.results[-1] if study_set.results else None,
        "avg_score": average_score(study_set.results),
    }
