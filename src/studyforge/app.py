"""Interactive CLI application."""
import logging
import os
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from studyforge.dashboard import get_readiness_color, get_readiness_label, get_set_stats
from studyforge.db import init_db, DEFAULT_DB_PATH
from studyforge.evaluator import is_correct
from studyforge.flashcards import (
    LEARN, MODES, REVIEW, STANDARD, get_review_count, record_flashcard_review, select_cards,
)
from studyforge.generator import (
    CARD_ACTIONS, GenerationError, generate_questions, generate_study_content, modify_card,
)
from studyforge.importer import read_file_content, snippet
from studyforge.models import (
    MODE_QUIZ, MODE_TEST, MULTIPLE_CHOICE, TRUE_FALSE, DIFFICULTIES, HARD, MEDIUM,
)
from studyforge.quiz import (
    IncompleteSubmissionError, SessionScorer, TEST_SIZES, pick_questions,
)
from studyforge.results import (
    get_average_score, get_last_result, get_session_results, record_session_result,
)
from studyforge.storage import delete_set, export_set, import_set, load_sets, save_set
from studyforge.study import (
    add_card, ai_modify_card, build_test_questions, create_study_set, delete_card,
    get_model_name, get_quiz_size, regenerate_questions, set_setting, update_card,
)

console = Console()

EXIT_WORDS = ("q", "menu")
# Typed answers may legitimately be "q" or "menu"
FREE_TEXT_EXIT_WORDS = (":q", ":menu")


class SessionExitRequested(Exception):
    """The learner asked to leave the current session."""


def session_prompt(
    prompt: str, choices: list | None = None, default=None, free_text: bool = False,
) -> str:
    """Prompt that lets the learner bail out with 'q' or 'menu'.

    With free_text=True the answer is open-ended and only ':q' or ':menu' leave.
    """
    exit_words = FREE_TEXT_EXIT_WORDS if free_text else EXIT_WORDS
    kwargs = {}
    if choices is not None:
        kwargs["choices"] = list(choices) + list(exit_words)
        kwargs["show_choices"] = False
    if default is not None:
        kwargs["default"] = default
        kwargs["show_default"] = default != ""
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in exit_words:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list) -> int:
    return int(session_prompt(prompt, choices=choices))


def setup_logging() -> None:
    level = logging.INFO if os.environ.get("STUDYFORGE_DEBUG") else logging.WARNING
    logging.basicConfig(
        level=level, format="%(message)s", handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]StudyForge[/bold]\n[dim]Flashcards, quizzes and tests from your notes[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("sets", "List study sets"),
        ("create", "Create a set from notes"),
        ("flashcards", "Flashcard session"),
        ("quiz", "Quick quiz"),
        ("test", "Full test with review"),
        ("guide", "Read a study guide"),
        ("edit", "Edit a set's flashcards"),
        ("stats", "Progress for a set"),
        ("history", "Quiz and test history"),
        ("settings", "Model and quiz size"),
        ("export", "Export a set to JSON"),
        ("import", "Import a set from JSON"),
        ("delete", "Delete a set"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_sets(sets: list) -> None:
    table = Table(title="Study Sets")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Tags")
    table.add_column("Cards", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Last Score", justify="right")
    for i, s in enumerate(sets, 1):
        last = s.results[-1] if s.results else None
        table.add_row(
            str(i),
            f"[{s.color}]{s.title}[/{s.color}]",
            ", ".join(s.tags[:3]),
            str(len(s.flashcards)),
            str(len(s.questions)),
            f"{last.score}/{last.total_questions}" if last else "",
        )
    console.print(table)


def choose_set(db_path: str):
    sets = load_sets(db_path)
    if not sets:
        console.print("[yellow]No study sets yet. Use 'create' to make one.[/yellow]")
        return None
    show_sets(sets)
    index = IntPrompt.ask("Select set", choices=[str(i) for i in range(1, len(sets) + 1)])
    return sets[index - 1]


# --- Flashcards ---


def run_flashcard_session(db_path: str, cards: list, mode: str = STANDARD) -> int:
    """Walk through cards. In Learn mode each self-rating is saved right away."""
    if not cards:
        if mode == LEARN:
            console.print("[yellow]No cards due for review right now.[/yellow]")
        elif mode == REVIEW:
            console.print("[yellow]No difficult cards found for review.[/yellow]")
        else:
            console.print("[yellow]This set has no flashcards.[/yellow]")
        return 0
    console.print(f"\n[bold]{mode} Session[/bold] — {len(cards)} cards\n")
    reviewed = 0
    for i, card in enumerate(cards, 1):
        console.print(Panel(card.front, title=f"Card {i}/{len(cards)}", border_style="cyan"))
        session_prompt("[dim]Press Enter to reveal answer[/dim]", default="")
        console.print(Panel(card.back, border_style="green"))
        if mode == LEARN:
            knew = session_prompt("Did you know it?", choices=["y", "n"])
            record_flashcard_review(db_path, card.id, knew == "y", datetime.now())
            reviewed += 1
        else:
            session_prompt("[dim]Press Enter for the next card[/dim]", default="")
        console.print()
    console.print("[green]Session complete![/green]")
    return reviewed


def cmd_flashcards(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    mode = Prompt.ask("Mode", choices=list(MODES), default=LEARN)
    shuffle = Prompt.ask("Shuffle?", choices=["y", "n"], default="n") == "y"
    cards = select_cards(study_set.flashcards, mode, datetime.now(), shuffle=shuffle)
    try:
        run_flashcard_session(db_path, cards, mode)
    except SessionExitRequested:
        console.print("[dim]Session ended. Your ratings so far are saved.[/dim]")


# --- Questions ---


def ask_question(question, number: int, total: int, allow_blank: bool = False) -> str:
    console.print(f"[bold]Q{number}/{total}.[/bold] {question.prompt}\n")
    if question.type == MULTIPLE_CHOICE:
        letters = [chr(ord("a") + i) for i in range(len(question.options))]
        for letter, option in zip(letters, question.options):
            console.print(f"  [cyan]{letter})[/cyan] {option}")
        choices = letters + ([""] if allow_blank else [])
        letter = session_prompt("\nYour answer", choices=choices)
        return question.options[letters.index(letter)] if letter else ""
    if question.type == TRUE_FALSE:
        choices = ["True", "False"] + ([""] if allow_blank else [])
        return session_prompt("Your answer (True/False)", choices=choices)
    while True:
        answer = session_prompt("Your answer [dim](:q to leave)[/dim]", default="", free_text=True)
        if answer.strip() or allow_blank:
            return answer
        console.print("[red]Please type an answer.[/red]")


def show_explanation(question) -> None:
    if question.explanation:
        console.print(f"[dim]{question.explanation}[/dim]")


def run_quiz_session(scorer: SessionScorer, regenerate=None) -> None:
    """Ask each question in turn with immediate feedback.

    When regenerate is given, the learner may swap in fresh questions after any
    answer; the quiz then starts over with them.
    """
    console.print(f"\n[bold]Quiz[/bold] — {len(scorer.questions)} questions\n")
    while scorer.current_question is not None:
        q = scorer.current_question
        total = len(scorer.questions)
        answer = ask_question(q, scorer.cursor + 1, total)
        if scorer.answer(q.id, answer):
            console.print("[green]Correct![/green]")
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{q.expected_answer}[/green]")
            if session_prompt("Mark as correct?", choices=["y", "n"], default="n") == "y":
                scorer.override(q.id)
                console.print("[cyan]Marked correct by you.[/cyan]")
        show_explanation(q)
        console.print()
        if regenerate is not None:
            step = session_prompt("Next", choices=["next", "regenerate"], default="next")
            if step == "regenerate":
                try:
                    with console.status("Generating new questions..."):
                        fresh = regenerate()
                    scorer.reset(fresh)
                    console.print(f"[cyan]New quiz: {len(fresh)} questions.[/cyan]\n")
                    continue
                except GenerationError as e:
                    console.print(f"[red]{e}[/red] Keeping the current questions.")
        scorer.advance(datetime.now())
    total = len(scorer.questions)
    score = scorer.get_score()
    percent = score / total * 100 if total else 0
    console.print(f"[bold]Score: {score}/{total} ({percent:.0f}%)[/bold]\n")


def cmd_quiz(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    if not study_set.questions and not study_set.source_text:
        console.print("[yellow]No questions available![/yellow]")
        return

    def ledger(result):
        record_session_result(db_path, study_set.id, result)

    size = get_quiz_size(db_path)

    def regenerate():
        return regenerate_questions(
            study_set, size, MEDIUM,
            generate=lambda t, c, d: generate_questions(t, c, d, get_model_name(db_path)),
        )

    can_regenerate = bool(study_set.source_text)
    while True:
        scorer = SessionScorer(
            pick_questions(study_set.questions, size), MODE_QUIZ, MEDIUM, ledger=ledger,
        )
        start = "start"
        if can_regenerate:
            start = "regenerate" if not scorer.questions else Prompt.ask(
                "Start quiz", choices=["start", "regenerate"], default="start",
            )
        if start == "regenerate":
            try:
                with console.status("Generating new questions..."):
                    scorer.reset(regenerate())
            except GenerationError as e:
                console.print(f"[red]{e}[/red] Keeping the current questions.")
        if not scorer.questions:
            console.print("[yellow]No questions available![/yellow]")
            return
        try:
            run_quiz_session(scorer, regenerate if can_regenerate else None)
        except SessionExitRequested:
            console.print("[dim]Quiz abandoned. No score recorded.[/dim]")
            return
        if Prompt.ask("Another quiz?", choices=["y", "n"], default="n") != "y":
            return


def show_test_review(scorer: SessionScorer) -> None:
    table = Table(title="Test Results")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Your Answer")
    table.add_column("Correct Answer")
    table.add_column("Result")
    for i, q in enumerate(scorer.questions, 1):
        answer = scorer.answers.get(q.id, "")
        if q.id in scorer.overrides:
            status = "[cyan]Marked correct[/cyan]"
        elif is_correct(q, answer):
            status = "[green]Correct[/green]"
        else:
            status = "[red]Incorrect[/red]"
        table.add_row(str(i), q.prompt, answer, q.expected_answer, status)
    console.print(table)
    score = scorer.get_score()
    total = len(scorer.questions)
    percent = round(score / total * 100) if total else 0
    color = get_readiness_color(percent)
    console.print(f"\n  Score: [bold]{score}/{total}[/bold] [{color}]{percent}%[/{color}]\n")


def run_test_session(scorer: SessionScorer, now=datetime.now) -> None:
    total = len(scorer.questions)
    console.print(f"\n[bold]Test[/bold] — {total} questions. Press Enter to skip a question.\n")
    pending = list(scorer.questions)
    while True:
        for q in pending:
            scorer.answer(q.id, ask_question(q, scorer.questions.index(q) + 1, total, allow_blank=True))
            console.print()
        try:
            scorer.submit()
            break
        except IncompleteSubmissionError as e:
            console.print(f"[red]{e}[/red]")
            pending = [q for q in scorer.questions if not scorer.answers.get(q.id, "").strip()]

    while True:
        show_test_review(scorer)
        numbers = [str(i) for i, q in enumerate(scorer.questions, 1) if not scorer.verdict(q.id)]
        if not numbers:
            break
        pick = session_prompt(
            "Mark a question correct (number) or 'done'", choices=numbers + ["done"], default="done",
        )
        if pick == "done":
            break
        scorer.override(scorer.questions[int(pick) - 1].id)
    result = scorer.finalize(now())
    console.print(f"[green]Test recorded: {result.score}/{result.total_questions}[/green]")


def cmd_test(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    count = int(Prompt.ask("Number of questions", choices=[str(n) for n in TEST_SIZES], default="10"))
    with console.status("Preparing your test..."):
        questions, fell_back = build_test_questions(
            study_set, count,
            generate=lambda t, c, d: generate_questions(t, c, d, get_model_name(db_path)),
        )
    if fell_back:
        console.print("[yellow]Failed to generate test. Using existing questions.[/yellow]")
    if not questions:
        console.print("[yellow]No questions available![/yellow]")
        return
    scorer = SessionScorer(
        questions, MODE_TEST, HARD,
        ledger=lambda result: record_session_result(db_path, study_set.id, result),
    )
    try:
        run_test_session(scorer)
    except SessionExitRequested:
        console.print("[dim]Test abandoned. No score recorded.[/dim]")


# --- Sets ---


def read_notes() -> str:
    source = Prompt.ask("Notes source", choices=["file", "paste"], default="file")
    if source == "file":
        file_path = Prompt.ask("File path")
        if not Path(file_path).exists():
            console.print(f"[red]File not found: {file_path}[/red]")
            return ""
        with console.status("Reading file..."):
            return read_file_content(file_path)
    console.print("[dim]Paste your notes. Finish with an empty line.[/dim]")
    lines = []
    while True:
        line = console.input()
        if not line:
            break
        lines.append(line)
    return "\n".join(lines)


def cmd_create(db_path: str):
    title = Prompt.ask("Title")
    text = read_notes()
    difficulty = Prompt.ask("Difficulty", choices=list(DIFFICULTIES), default=MEDIUM)
    model = get_model_name(db_path)
    with console.status("Generating study set..."):
        study_set = create_study_set(
            db_path, title, text, datetime.now(), difficulty,
            generate=lambda t, d: generate_study_content(t, d, model),
        )
    console.print(Panel(
        f"{study_set.description}\n\n[dim]{snippet(text)}[/dim]",
        title=f"Created: {study_set.title}", border_style=study_set.color,
    ))
    console.print(
        f"[green]{len(study_set.flashcards)} flashcards, "
        f"{len(study_set.questions)} questions[/green]"
    )


def cmd_sets(db_path: str):
    sets = load_sets(db_path)
    if not sets:
        console.print("[yellow]No study sets yet. Use 'create' to make one.[/yellow]")
        return
    show_sets(sets)


def cmd_guide(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    if not study_set.study_guide:
        console.print("[yellow]This set has no study guide.[/yellow]")
        return
    console.print(Panel(Markdown(study_set.study_guide), title=f"{study_set.title}: Study Guide"))


def cmd_stats(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    stats = get_set_stats(study_set, datetime.now())
    score = stats["mastery_percent"]
    color = get_readiness_color(score)
    console.print(Panel(f"[bold]{study_set.title}[/bold]", title="Progress", border_style="blue"))

    bar_filled = int(score / 5)
    bar = f"[{color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{color}]"
    console.print(
        f"\n  Mastery: [bold]{score}%[/bold] {bar} [{color}]{get_readiness_label(score)}[/{color}]\n"
    )

    table = Table(title="Cards by Mastery Level")
    table.add_column("Level", justify="right")
    table.add_column("Cards", justify="right")
    for level, count in stats["distribution"].items():
        table.add_row(str(level), str(count))
    console.print(table)

    console.print(f"\n  Due: [bold]{stats['due']}[/bold]  |  "
                  f"Struggling: [bold]{stats['struggling']}[/bold]  |  "
                  f"Mastered: [bold]{stats['mastered']}[/bold]  |  "
                  f"Quizzes: [bold]{stats['quizzes_taken']}[/bold]  |  "
                  f"Tests: [bold]{stats['tests_taken']}[/bold]  |  "
                  f"Avg Score: [bold]{stats['avg_score']}%[/bold]")
    console.print(f"  Card reviews logged: [bold]{get_review_count(db_path, study_set.id)}[/bold]")


def cmd_history(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    results = get_session_results(db_path, study_set.id)
    if not results:
        console.print("[yellow]No quizzes or tests taken yet.[/yellow]")
        return
    table = Table(title=f"{study_set.title}: History")
    table.add_column("Date")
    table.add_column("Mode")
    table.add_column("Difficulty")
    table.add_column("Score", justify="right")
    for r in results:
        table.add_row(
            r.date.strftime("%Y-%m-%d %H:%M"), r.mode, r.difficulty,
            f"{r.score}/{r.total_questions}",
        )
    console.print(table)
    last = get_last_result(db_path, study_set.id)
    avg = get_average_score(db_path, study_set.id)
    color = get_readiness_color(avg)
    console.print(
        f"\n  Last: [bold]{last.mode} {last.score}/{last.total_questions}[/bold]  |  "
        f"Average: [{color}]{avg}%[/{color}]"
    )


def cmd_settings(db_path: str):
    console.print(f"  Gemini model: [bold]{get_model_name(db_path)}[/bold]")
    console.print(f"  Quiz size:    [bold]{get_quiz_size(db_path)}[/bold]")
    key = Prompt.ask("Change", choices=["model", "quiz_size", "done"], default="done")
    if key == "model":
        model = Prompt.ask("Gemini model", default=get_model_name(db_path)).strip()
        if model:
            set_setting(db_path, "model", model)
    elif key == "quiz_size":
        size = IntPrompt.ask("Questions per quiz", default=get_quiz_size(db_path))
        if size < 1:
            console.print("[red]Quiz size must be at least 1.[/red]")
            return
        set_setting(db_path, "quiz_size", str(size))
    else:
        return
    console.print("[green]Setting saved.[/green]")


def show_cards(study_set) -> None:
    table = Table(title=f"{study_set.title}: Flashcards")
    table.add_column("#", justify="right")
    table.add_column("Front")
    table.add_column("Back")
    table.add_column("Level", justify="right")
    for i, card in enumerate(study_set.flashcards, 1):
        table.add_row(str(i), card.front, card.back, str(card.mastery_level))
    console.print(table)


def cmd_edit(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    model = get_model_name(db_path)
    while True:
        show_cards(study_set)
        action = Prompt.ask("Action", choices=["add", "edit", "delete", "ai", "save", "cancel"])
        if action == "save":
            save_set(db_path, study_set)
            console.print("[green]Changes saved.[/green]")
            return
        if action == "cancel":
            console.print("[dim]Changes discarded.[/dim]")
            return
        if action == "add":
            add_card(study_set, Prompt.ask("Front"), Prompt.ask("Back"), datetime.now())
            continue
        if not study_set.flashcards:
            console.print("[yellow]No cards to change.[/yellow]")
            continue
        index = IntPrompt.ask(
            "Card number", choices=[str(i) for i in range(1, len(study_set.flashcards) + 1)],
        )
        card = study_set.flashcards[index - 1]
        if action == "edit":
            update_card(
                study_set, card.id,
                front=Prompt.ask("Front", default=card.front),
                back=Prompt.ask("Back", default=card.back),
            )
        elif action == "delete":
            delete_card(study_set, card.id)
        elif action == "ai":
            instruction = Prompt.ask("Instruction", choices=list(CARD_ACTIONS))
            try:
                with console.status("Rewriting card..."):
                    ai_modify_card(
                        study_set, card.id, instruction,
                        modify=lambda f, b, i: modify_card(f, b, i, model),
                    )
            except GenerationError as e:
                console.print(f"[red]{e}[/red]")


def cmd_export(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    path = export_set(study_set)
    console.print(f"[green]Exported to {path}[/green]")


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    study_set = import_set(db_path, file_path)
    console.print(f"[green]Imported {study_set.title} ({len(study_set.flashcards)} cards)[/green]")


def cmd_delete(db_path: str):
    study_set = choose_set(db_path)
    if not study_set:
        return
    confirm = Prompt.ask(f"Delete '{study_set.title}'?", choices=["y", "n"], default="n")
    if confirm == "y" and delete_set(db_path, study_set.id):
        console.print("[green]Deleted.[/green]")


COMMANDS = {
    "sets": cmd_sets,
    "create": cmd_create,
    "flashcards": cmd_flashcards,
    "quiz": cmd_quiz,
    "test": cmd_test,
    "guide": cmd_guide,
    "edit": cmd_edit,
    "stats": cmd_stats,
    "history": cmd_history,
    "settings": cmd_settings,
    "export": cmd_export,
    "import": cmd_import,
    "delete": cmd_delete,
}


def main():
    setup_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="sets").strip().lower()
        try:
            if choice in COMMANDS:
                COMMANDS[choice](db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Happy studying![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
