"""Per-user totals and study streak."""
import json
from datetime import date, datetime, timedelta

from exam_tutor.backend import transaction
from exam_tutor.models import UserProgress


def get_user_progress(db_path: str, user_id: str) -> UserProgress:
    with transaction(db_path) as conn:
        row = conn.execute("SELECT * FROM user_progress WHERE user_id = ?", (user_id,)).fetchone()
    if not row:
        return UserProgress(user_id=user_id)
    return UserProgress(
        user_id=user_id,
        level_up_stage=json.loads(row["level_up_stage"] or "{}"),
        questions_answered=row["questions_answered"] or 0,
        questions_correct=row["questions_correct"] or 0,
        last_studied=row["last_studied"],
        study_streak=row["study_streak"] or 0,
    )


def next_streak(last_studied: str | None, streak: int, today: date) -> int:
    """Studying again the day after extends the streak; a gap restarts it."""
    if not last_studied:
        return 1
    last = datetime.fromisoformat(last_studied).date()
    if last == today - timedelta(days=1):
        return streak + 1
    if last == today:
        return streak or 1
    return 1


def update_progress(db_path: str, user_id: str, questions_answered: int, correct_answers: int,
                    today: date | None = None) -> UserProgress:
    today = today or date.today()
    current = get_user_progress(db_path, user_id)
    streak = next_streak(current.last_studied, current.study_streak, today)
    now = datetime.now().isoformat()
    with transaction(db_path) as conn:
        conn.execute(
            """INSERT INTO user_progress
            (user_id, questions_answered, questions_correct, last_studied, study_streak, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                questions_answered = excluded.questions_answered,
                questions_correct = excluded.questions_correct,
                last_studied = excluded.last_studied,
                study_streak = excluded.study_streak,
                updated_at = excluded.updated_at""",
            (
                user_id,
                current.questions_answered + questions_answered,
                current.questions_correct + correct_answers,
                today.isoformat(),
                streak,
                now,
            ),
        )
    return get_user_progress(db_path, user_id)
