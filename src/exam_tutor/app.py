"""Interactive CLI application."""
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from exam_tutor.backend import BackendError, reset_exam_data
from exam_tutor.dashboard import get_exam_activity, get_level_up_overview, get_readiness_color, get_study_stats
from exam_tutor.db import init_db
from exam_tutor.levelup import LevelUpContext, LevelUpMachine, MachineState, NoExamSelected
from exam_tutor.log import setup_logging
from exam_tutor.models import CUSTOM, DAILY, FINAL_STAGE, MISSED, QUICK_10, STAGES, TIMED, WEAKEST
from exam_tutor.quiz import (
    QUIZ_TITLES, complete_quiz, format_time, get_questions_for_mode, is_time_up, time_remaining,
)
from exam_tutor.review import get_reviewed_questions, get_session_history, get_weak_domains
from exam_tutor.seed import import_exam_file, is_seeded, list_exams, question_counts, seed_sample
from exam_tutor.settings import get_current_exam, get_db_path, get_int_setting, get_user_id, set_current_exam

console = Console()

LETTERS = "abcdefgh"
EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """User asked to leave the running session and go back to the menu."""


def session_prompt(prompt: str, choices: list[str] | None = None, **kwargs) -> str:
    if choices is not None:
        choices = [*choices, "q"]
    value = Prompt.ask(prompt, choices=choices, **kwargs)
    if value.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return value


def session_int_prompt(prompt: str, choices: list[str] | None = None, **kwargs) -> int:
    return int(session_prompt(prompt, choices=choices, **kwargs))


def show_welcome():
    console.print(Panel(
        "[bold]Exam Tutor[/bold]\n[dim]Certification Practice & Level Up[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("levelup", "Level Up: easy → medium → hard"),
        ("quiz", "Practice quiz"),
        ("stats", "Accuracy + progress"),
        ("review", "Weak areas and history"),
        ("exam", "Choose exam"),
        ("import", "Import a question bank"),
        ("reset", "Erase all data for the current exam"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_alerts(alerts) -> None:
    for alert in alerts:
        console.print(Panel(alert.message, title=alert.title, border_style="red"))


def show_question(question, number: int, total: int, selected: str | None = None) -> dict:
    """Print a question and return the letter → option id mapping used on screen."""
    console.print(f"\n[bold]Q{number}/{total}.[/bold] [dim]{question.domain}[/dim]")
    console.print(f"{question.question_text}\n")
    letters = {}
    for letter, option in zip(LETTERS, question.options):
        letters[letter] = option.id
        marker = "[reverse]" if option.id == selected else ""
        end = "[/reverse]" if marker else ""
        console.print(f"  [cyan]{letter})[/cyan] {marker}{option.option_text}{end}")
    return letters


# --- Level Up ---


def _level_up_question(machine: LevelUpMachine) -> None:
    question = machine.current_question
    console.print(f"[dim]{machine.progress:.0%} of the {machine.difficulty} stage[/dim]")
    letters = show_question(question, machine.current_index + 1, machine.total)
    while True:
        letter = session_prompt("\nYour answer", choices=list(letters))
        machine.select_option(letters[letter])
        show_question(question, machine.current_index + 1, machine.total, selected=machine.selected_option_id)
        if session_prompt("Submit this answer?", choices=["y", "n"], default="y") == "y":
            break
    if machine.submit():
        console.print("[green]Correct![/green]")
    else:
        correct = question.correct_option()
        right = next((k for k, v in letters.items() if correct and v == correct.id), "?")
        console.print(f"[red]Incorrect.[/red] Answer: [green]{right}[/green]")
    if question.explanation:
        console.print(Panel(question.explanation, title="Explanation", border_style="dim"))


def _level_up_result(machine: LevelUpMachine) -> bool:
    result = machine.result
    stats = result.stats
    color = "green" if result.passed else "red"
    console.print(Panel(
        f"This attempt: [bold]{result.score}/{result.total}[/bold] in {format_time(result.time_taken_seconds)}\n"
        f"Overall {result.difficulty} accuracy: [{color}]{stats.accuracy}%[/{color}] "
        f"({stats.correct}/{stats.total})",
        title=f"{result.difficulty.title()} stage {'passed' if result.passed else 'not passed'}",
        border_style=color,
    ))
    if result.passed:
        choice = session_prompt("Next", choices=["next", "back"], default="next")
        if choice == "back":
            return False
        machine.next_stage()
    else:
        choice = session_prompt("Try again?", choices=["retry", "back"], default="retry")
        if choice == "back":
            return False
        machine.retry()
    return True


def _level_up_reset(machine: LevelUpMachine) -> None:
    machine.request_reset()
    console.print("[red]This deletes all Level Up history for this exam.[/red]")
    if session_prompt("Are you sure?", choices=["yes", "no"], default="no") == "yes":
        machine.confirm_reset()
    else:
        machine.cancel_reset()


def run_level_up(machine: LevelUpMachine) -> MachineState:
    """Drive the machine from its current state until the user goes back."""
    if machine.state is MachineState.LOADING:
        machine.start()
    while True:
        show_alerts(machine.pop_alerts())
        state = machine.state
        if state is MachineState.ALL_STAGES_COMPLETE:
            console.print(Panel("You've completed every stage!", title="Level Up", border_style="green"))
            if session_prompt("Choose", choices=["back", "reset"], default="back") == "back":
                return state
            _level_up_reset(machine)
        elif state is MachineState.EMPTY_STAGE:
            console.print(f"[yellow]There are no questions left for the {machine.difficulty} stage.[/yellow]")
            choice = session_prompt("Choose", choices=["skip", "back", "reset"], default="skip")
            if choice == "back":
                return state
            if choice == "skip":
                machine.skip_stage()
            else:
                _level_up_reset(machine)
        elif state is MachineState.IN_PROGRESS:
            if machine.current_index == 0:
                console.print(f"\n[bold]{machine.difficulty.title()} stage[/bold] "
                              f"(stage {machine.stage_index + 1} of {FINAL_STAGE})")
            _level_up_question(machine)
        elif state is MachineState.ANSWER_REVEALED:
            session_prompt("[dim]Press Enter to continue[/dim]", default="")
            machine.advance()
        elif state is MachineState.STAGE_RESULT:
            if not _level_up_result(machine):
                return state
        else:
            return state


def cmd_levelup(db_path: str):
    try:
        context = LevelUpContext.from_settings(db_path)
    except NoExamSelected:
        console.print("[yellow]Choose an exam first with 'exam'.[/yellow]")
        return
    run_level_up(LevelUpMachine(context))


# --- Other quiz modes ---


def run_quiz_session(db_path: str, user_id: str, exam_id: str, mode: str, questions: list,
                     time_limit: int | None = None) -> tuple[int, int]:
    if not questions:
        console.print("[yellow]No questions available![/yellow]")
        return 0, 0
    console.print(f"\n[bold]{QUIZ_TITLES.get(mode, 'Quiz')}[/bold] — {len(questions)} questions\n")
    started = time.monotonic()
    selections = {}
    correct = 0
    for i, q in enumerate(questions, 1):
        if time_limit is not None:
            if is_time_up(started, time_limit):
                console.print("[red]Time's up![/red]")
                break
            console.print(f"[dim]Time left: {format_time(time_remaining(started, time_limit))}[/dim]")
        letters = show_question(q, i, len(questions))
        letter = session_prompt("\nYour answer", choices=list(letters))
        selections[q.id] = letters[letter]
        right = q.correct_option()
        if right and selections[q.id] == right.id:
            console.print("[green]Correct![/green]")
            correct += 1
        else:
            answer = next((k for k, v in letters.items() if right and v == right.id), "?")
            console.print(f"[red]Incorrect.[/red] Answer: [green]{answer}[/green]")
        if q.explanation:
            console.print(f"[dim]{q.explanation}[/dim]")
        console.print()
    elapsed = int(time.monotonic() - started)
    try:
        complete_quiz(db_path, user_id, exam_id, mode, questions, selections, elapsed)
    except BackendError as e:
        console.print(f"[red]Failed to save quiz results: {e}[/red]")
    console.print(f"[bold]Score: {correct}/{len(questions)} ({correct/len(questions)*100:.0f}%)[/bold]\n")
    return correct, len(questions)


def cmd_quiz(db_path: str):
    exam_id = get_current_exam(db_path)
    if not exam_id:
        console.print("[yellow]Choose an exam first with 'exam'.[/yellow]")
        return
    user_id = get_user_id(db_path)
    console.print("\n[bold]Practice Quiz[/bold]")
    mode = Prompt.ask("Quiz mode", choices=[QUICK_10, TIMED, MISSED, WEAKEST, CUSTOM, DAILY], default=QUICK_10)
    filters = {}
    count = None
    if mode == CUSTOM:
        difficulty = Prompt.ask("Difficulty", choices=["any", *STAGES], default="any")
        if difficulty != "any":
            filters["difficulties"] = [difficulty]
        count = int(Prompt.ask("Number of questions", default="10"))
    questions = get_questions_for_mode(db_path, mode, exam_id, user_id, count=count, **filters)
    if not questions and mode == MISSED:
        console.print("[green]You have no currently missed questions![/green]")
        return
    time_limit = get_int_setting(db_path, "timed_quiz_seconds") if mode == TIMED else None
    run_quiz_session(db_path, user_id, exam_id, mode, questions, time_limit=time_limit)


# --- Stats, review, setup ---


def cmd_stats(db_path: str):
    exam_id = get_current_exam(db_path)
    user_id = get_user_id(db_path)
    stats = get_study_stats(db_path, user_id, exam_id)
    console.print(f"\n  Sessions: [bold]{stats['sessions_completed']}[/bold]  |  "
                  f"Answered: [bold]{stats['questions_answered']}[/bold]  |  "
                  f"Avg Score: [bold]{stats['avg_quiz_score']}%[/bold]  |  "
                  f"Streak: [bold]{stats['study_streak']}[/bold] days")
    if stats["sessions_by_type"]:
        modes = ", ".join(f"{QUIZ_TITLES.get(t, t)}: {n}" for t, n in sorted(stats["sessions_by_type"].items()))
        console.print(f"  [dim]{modes}[/dim]")
    if not exam_id:
        return

    activity = get_exam_activity(db_path, user_id, exam_id)
    peak = max(activity["weekly_progress"]) or 1
    week = " ".join("▁▂▃▄▅▆▇█"[min(7, n * 7 // peak)] for n in activity["weekly_progress"])
    console.print(f"  This exam: streak [bold]{activity['streak']}[/bold] days  |  "
                  f"study time [bold]{activity['study_time']}[/bold]  |  last 7 days [cyan]{week}[/cyan]")

    overview = get_level_up_overview(db_path, user_id, exam_id)
    table = Table(title=f"Level Up — current stage: {overview['stage_name']}")
    table.add_column("Difficulty", style="cyan")
    table.add_column("Accuracy", justify="right")
    table.add_column("Correct / Pool", justify="right")
    table.add_column("Progress")
    table.add_column("Readiness")
    for row in overview["difficulties"]:
        color = get_readiness_color(row["accuracy"])
        filled = min(20, int(row["accuracy"] / 5))
        bar = f"[{color}]{'█' * filled}{'░' * (20 - filled)}[/{color}]"
        status = " [green]✓[/green]" if row["passed"] else ""
        table.add_row(
            row["difficulty"], f"{row['accuracy']}%", f"{row['correct']}/{row['total']}", bar + status,
            f"[{color}]{row['label']}[/{color}]",
        )
    console.print(table)


def cmd_reset(db_path: str):
    exam_id = get_current_exam(db_path)
    if not exam_id:
        console.print("[yellow]Choose an exam first with 'exam'.[/yellow]")
        return
    console.print(Panel(
        "This permanently erases, for the current exam:\n"
        "  • your quiz history and results\n"
        "  • all performance statistics and study time\n"
        "  • your Level Up progress",
        title="Reset All Data", border_style="red",
    ))
    if Prompt.ask(f"Type [bold]{exam_id}[/bold] to confirm", default="") != exam_id:
        console.print("[dim]Nothing was deleted.[/dim]")
        return
    try:
        deleted = reset_exam_data(db_path, get_user_id(db_path), exam_id)
    except BackendError as e:
        console.print(f"[red]Failed to reset data: {e}[/red]")
        return
    console.print(f"[green]All data for {exam_id} has been reset ({deleted} sessions removed).[/green]")


def cmd_review(db_path: str):
    exam_id = get_current_exam(db_path)
    user_id = get_user_id(db_path)
    console.print("\n[bold]Weak Area Review[/bold]\n")
    weak = get_weak_domains(db_path, user_id, exam_id) if exam_id else []
    if not weak:
        console.print("[green]No weak areas detected! Keep up the good work.[/green]")
    else:
        table = Table(title="Weak Domains")
        table.add_column("Domain")
        table.add_column("Score", justify="right")
        table.add_column("Answers", justify="right")
        for wd in weak:
            table.add_row(wd["domain"], f"{wd['score']}%", str(wd["total"]))
        console.print(table)

    history = get_session_history(db_path, user_id, exam_id, limit=10)
    if history:
        table = Table(title="Recent Sessions")
        table.add_column("When")
        table.add_column("Mode")
        table.add_column("Score", justify="right")
        table.add_column("Time", justify="right")
        for h in history:
            table.add_row(
                (h["completed_at"] or "")[:16].replace("T", " "),
                QUIZ_TITLES.get(h["quiz_type"], h["quiz_type"]),
                f"{h['score']}/{h['total']} ({h['percent']}%)",
                format_time(h["time_taken_seconds"] or 0),
            )
        console.print(table)

    reviewed = get_reviewed_questions(db_path, user_id, exam_id) if exam_id else []
    if reviewed:
        console.print(f"\n[bold]Reviewed Questions[/bold] [dim]({len(reviewed)}, latest answer each)[/dim]")
        for r in reviewed[:15]:
            mark = "[green]✓[/green]" if r["is_correct"] else "[red]✗[/red]"
            console.print(f"\n{mark} [dim]{r['date']} · {r['difficulty']} · {r['domain']}[/dim]")
            console.print(f"  {r['question']}")
            if not r["is_correct"]:
                console.print(f"  Your answer: [red]{r['user_answer'] or '(none)'}[/red]")
            console.print(f"  Correct answer: [green]{r['correct_answer']}[/green]")
            if r["explanation"]:
                console.print(f"  [dim]{r['explanation']}[/dim]")


def cmd_exam(db_path: str):
    exams = list_exams(db_path)
    if not exams:
        console.print("[yellow]No exams loaded. Use 'import' to add one.[/yellow]")
        return
    current = get_current_exam(db_path)
    for i, exam in enumerate(exams, 1):
        marker = " ←" if exam.id == current else ""
        counts = question_counts(db_path, exam.id)
        sizes = " / ".join(str(counts[d]) for d in STAGES)
        console.print(f"  [cyan]{i}[/cyan]) {exam.title} [dim]({exam.short_name}, {sizes} questions)[/dim]{marker}")
    choice = Prompt.ask("Select exam", choices=[str(i) for i in range(1, len(exams) + 1)])
    exam = exams[int(choice) - 1]
    set_current_exam(db_path, exam.id)
    console.print(f"[green]Now studying {exam.title}.[/green]")


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_exam_file(db_path, file_path)
    console.print(f"[green]Imported {result['questions_added']} questions → {result['exam_id']}[/green]")


def main():
    setup_logging()
    db_path = get_db_path()
    init_db(db_path)
    if not is_seeded(db_path):
        console.print("[dim]Setting up for first use...[/dim]")
        seed_sample(db_path)
        console.print("[green]Ready![/green]\n")
    if not get_current_exam(db_path):
        exams = list_exams(db_path)
        if exams:
            set_current_exam(db_path, exams[0].id)

    show_welcome()

    commands = {
        "levelup": cmd_levelup,
        "quiz": cmd_quiz,
        "stats": cmd_stats,
        "review": cmd_review,
        "exam": cmd_exam,
        "import": cmd_import,
        "reset": cmd_reset,
    }
    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="levelup").strip().lower()
        try:
            if choice in commands:
                commands[choice](db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("\n[dim]Back to menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
