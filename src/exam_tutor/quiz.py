"""Quiz engine for the practice modes other than Level Up."""
import logging
import time
from datetime import date, datetime
from typing import Optional

from exam_tutor import backend
from exam_tutor.backend import transaction
from exam_tutor.models import CUSTOM, DAILY, MISSED, QUICK_10, TIMED, WEAKEST, Question, UserAnswer
from exam_tutor.progress import update_progress
from exam_tutor.review import get_weak_domains

logger = logging.getLogger(__name__)

QUIZ_SIZES = {
    QUICK_10: 10,
    TIMED: 20,
    MISSED: 10,
    WEAKEST: 10,
    CUSTOM: 10,
    DAILY: 1,
}

QUIZ_TITLES = {
    QUICK_10: "Quick 10 Quiz",
    TIMED: "Timed Quiz",
    MISSED: "Missed Questions",
    WEAKEST: "Weakest Domain",
    CUSTOM: "Custom Quiz",
    DAILY: "Question of the Day",
}


def get_quiz_questions(db_path: str, exam_id: str, count: int = 10) -> list[Question]:
    return backend.query_questions(db_path, "exam_id = ?", (exam_id,), limit=count)


def get_practice_questions(db_path: str, user_id: str, exam_id: str, count: int = 10) -> list[Question]:
    """Questions the user has not yet answered correctly, or any questions once all are mastered."""
    questions = backend.fetch_unique_random_questions(db_path, exam_id, count, user_id)
    if not questions:
        logger.info("every question of %s is mastered; drawing from the full bank", exam_id)
        questions = get_quiz_questions(db_path, exam_id, count)
    return questions


def get_missed_question_ids(db_path: str, user_id: str, exam_id: str) -> list[str]:
    """Questions whose most recent answer by the user was wrong."""
    with transaction(db_path) as conn:
        rows = conn.execute(
            """SELECT a.question_id, a.is_correct
            FROM user_answers a JOIN questions q ON a.question_id = q.id
            WHERE a.user_id = ? AND q.exam_id = ?
            ORDER BY a.answered_at DESC, a.id DESC""",
            (user_id, exam_id),
        ).fetchall()
    latest = {}
    for row in rows:
        latest.setdefault(row["question_id"], row["is_correct"])
    return [qid for qid, is_correct in latest.items() if not is_correct]


def get_missed_questions(db_path: str, user_id: str, exam_id: str, count: int = 10) -> list[Question]:
    missed = get_missed_question_ids(db_path, user_id, exam_id)
    return backend.get_questions(db_path, missed[:count])


def get_daily_question(db_path: str, exam_id: str, today: Optional[date] = None) -> Optional[Question]:
    """The question flagged for today, or a stable pick that changes once a day."""
    today = today or date.today()
    flagged = backend.query_questions(
        db_path, "exam_id = ? AND is_daily_question = 1 AND daily_question_date = ?",
        (exam_id, today.isoformat()), order="id", limit=1,
    )
    if flagged:
        return flagged[0]
    questions = backend.query_questions(db_path, "exam_id = ?", (exam_id,), order="id")
    if not questions:
        return None
    return questions[today.toordinal() % len(questions)]


def get_custom_questions(db_path: str, exam_id: str, difficulties: Optional[list[str]] = None,
                         domains: Optional[list[str]] = None, count: int = 10) -> list[Question]:
    where = "exam_id = ?"
    params: tuple = (exam_id,)
    if difficulties:
        where += f" AND difficulty IN ({', '.join('?' for _ in difficulties)})"
        params += tuple(difficulties)
    if domains:
        where += f" AND domain IN ({', '.join('?' for _ in domains)})"
        params += tuple(domains)
    return backend.query_questions(db_path, where, params, limit=count)


def get_weakest_domain_questions(db_path: str, user_id: str, exam_id: str, count: int = 10) -> list[Question]:
    weak = get_weak_domains(db_path, user_id, exam_id, threshold=101)
    if not weak:
        return []
    return get_custom_questions(db_path, exam_id, domains=[weak[0]["domain"]], count=count)


def get_questions_for_mode(db_path: str, mode: str, exam_id: str, user_id: str,
                           count: Optional[int] = None, **filters) -> list[Question]:
    count = count or QUIZ_SIZES.get(mode, 10)
    if mode in (QUICK_10, TIMED):
        return get_practice_questions(db_path, user_id, exam_id, count)
    if mode == MISSED:
        return get_missed_questions(db_path, user_id, exam_id, count)
    if mode == WEAKEST:
        return get_weakest_domain_questions(db_path, user_id, exam_id, count)
    if mode == CUSTOM:
        return get_custom_questions(db_path, exam_id, count=count, **filters)
    if mode == DAILY:
        question = get_daily_question(db_path, exam_id)
        return [question] if question else []
    raise ValueError(f"Unknown quiz mode: {mode}")


def score_answers(questions: list[Question], selections: dict[str, str]) -> tuple[int, list[UserAnswer]]:
    """Grade selected option ids against each question's correct option.

    Unanswered questions count as wrong and are recorded with no selection.
    """
    now = datetime.now().isoformat()
    score = 0
    answers = []
    for q in questions:
        selected = selections.get(q.id)
        correct = q.correct_option()
        is_correct = selected is not None and correct is not None and selected == correct.id
        score += is_correct
        answers.append(UserAnswer(q.id, selected, is_correct, now))
    return score, answers


def complete_quiz(db_path: str, user_id: str, exam_id: str, mode: str, questions: list[Question],
                  selections: dict[str, str], time_taken_seconds: int) -> int:
    """Save a finished quiz and fold it into the user's progress. Returns the session id."""
    score, answers = score_answers(questions, selections)
    session_id = backend.create_quiz_session(
        db_path, user_id, exam_id, mode, score, len(questions), time_taken_seconds,
    )
    backend.insert_answers(db_path, session_id, user_id, answers)
    update_progress(db_path, user_id, len(questions), score)
    logger.info("%s quiz saved as session %d (%d/%d)", mode, session_id, score, len(questions))
    return session_id


def time_remaining(started_at: float, limit_seconds: int, clock=time.monotonic) -> int:
    return max(0, limit_seconds - int(clock() - started_at))


def is_time_up(started_at: float, limit_seconds: int, clock=time.monotonic) -> bool:
    return time_remaining(started_at, limit_seconds, clock) == 0


def format_time(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"
