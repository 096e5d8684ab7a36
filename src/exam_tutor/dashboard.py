"""Statistics for the stats screen."""
import math
from datetime import date, timedelta
from typing import Optional

from exam_tutor.accuracy import get_level_up_accuracy_by_difficulty
from exam_tutor.backend import get_level_up_stage, transaction
from exam_tutor.models import FINAL_STAGE, STAGES
from exam_tutor.progress import get_user_progress


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


def stage_name(stage_index: int) -> str:
    if stage_index >= FINAL_STAGE:
        return "complete"
    return STAGES[stage_index]


def get_study_stats(db_path: str, user_id: str, exam_id: str | None = None) -> dict:
    sql_filter = "WHERE user_id = ?"
    params: tuple = (user_id,)
    if exam_id is not None:
        sql_filter += " AND exam_id = ?"
        params += (exam_id,)
    with transaction(db_path) as conn:
        row = conn.execute(
            f"""SELECT COUNT(*) as sessions, SUM(score) as correct, SUM(total_questions) as answered
            FROM quiz_sessions {sql_filter}""",
            params,
        ).fetchone()
        by_type = conn.execute(
            f"SELECT quiz_type, COUNT(*) as n FROM quiz_sessions {sql_filter} GROUP BY quiz_type",
            params,
        ).fetchall()
    progress = get_user_progress(db_path, user_id)
    answered = row["answered"] or 0
    correct = row["correct"] or 0
    return {
        "sessions_completed": row["sessions"],
        "questions_answered": answered,
        "questions_correct": correct,
        "avg_quiz_score": round(correct / answered * 100, 1) if answered else 0.0,
        "sessions_by_type": {r["quiz_type"]: r["n"] for r in by_type},
        "study_streak": progress.study_streak,
    }


def get_level_up_overview(db_path: str, user_id: str, exam_id: str) -> dict:
    stage = get_level_up_stage(db_path, user_id, exam_id)
    stats = get_level_up_accuracy_by_difficulty(db_path, user_id, exam_id)
    return {
        "stage_index": stage,
        "stage_name": stage_name(stage),
        "difficulties": [
            {
                "difficulty": d,
                "accuracy": stats[d].accuracy,
                "correct": stats[d].correct,
                "total": stats[d].total,
                "label": get_readiness_label(stats[d].accuracy),
                "passed": i < stage,
            }
            for i, d in enumerate(STAGES)
        ],
    }


def format_study_time(seconds: int) -> str:
    minutes = math.floor(seconds / 60 + 0.5)
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes / 60:.1f}h"


def get_exam_activity(db_path: str, user_id: str, exam_id: str, today: Optional[date] = None) -> dict:
    """Streak, study time and answers per day over the last week, for one exam."""
    today = today or date.today()
    week = [today - timedelta(days=6 - i) for i in range(7)]
    with transaction(db_path) as conn:
        sessions = conn.execute(
            "SELECT completed_at, time_taken_seconds FROM quiz_sessions WHERE user_id = ? AND exam_id = ?",
            (user_id, exam_id),
        ).fetchall()
        per_day = conn.execute(
            """SELECT substr(a.answered_at, 1, 10) as day, COUNT(*) as n
            FROM user_answers a JOIN questions q ON a.question_id = q.id
            WHERE a.user_id = ? AND q.exam_id = ? AND a.answered_at >= ?
            GROUP BY day""",
            (user_id, exam_id, week[0].isoformat()),
        ).fetchall()

    days = {(s["completed_at"] or "")[:10] for s in sessions}
    streak = 0
    day = today
    while day.isoformat() in days:
        streak += 1
        day -= timedelta(days=1)

    seconds = sum(s["time_taken_seconds"] or 0 for s in sessions)
    counts = {r["day"]: r["n"] for r in per_day}
    return {
        "streak": streak,
        "study_seconds": seconds,
        "study_time": format_study_time(seconds),
        "weekly_progress": [counts.get(d.isoformat(), 0) for d in week],
    }
