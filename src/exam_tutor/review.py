"""Weak area identification and answer history."""
from exam_tutor.backend import transaction


def get_weak_domains(db_path: str, user_id: str, exam_id: str, threshold: float = 70.0) -> list[dict]:
    """Get domains where the user's score is below threshold (worst first)."""
    with transaction(db_path) as conn:
        rows = conn.execute(
            """SELECT q.domain,
                COUNT(*) as total,
                SUM(a.is_correct) as correct
            FROM user_answers a
            JOIN questions q ON a.question_id = q.id
            WHERE a.user_id = ? AND q.exam_id = ?
            GROUP BY q.domain
            HAVING (CAST(correct AS REAL) / total) * 100 < ?
            ORDER BY (CAST(correct AS REAL) / total) ASC, total DESC""",
            (user_id, exam_id, threshold),
        ).fetchall()
    return [
        {
            "domain": r["domain"] or "General",
            "total": r["total"],
            "correct": r["correct"],
            "score": round((r["correct"] / r["total"]) * 100, 1),
        }
        for r in rows
    ]


def get_session_history(db_path: str, user_id: str, exam_id: str | None = None, limit: int = 20) -> list[dict]:
    """Most recent completed sessions, newest first."""
    sql = "SELECT * FROM quiz_sessions WHERE user_id = ?"
    params: tuple = (user_id,)
    if exam_id is not None:
        sql += " AND exam_id = ?"
        params += (exam_id,)
    sql += " ORDER BY completed_at DESC, id DESC LIMIT ?"
    with transaction(db_path) as conn:
        rows = conn.execute(sql, (*params, limit)).fetchall()
    return [
        {
            "session_id": r["id"],
            "quiz_type": r["quiz_type"],
            "score": r["score"],
            "total": r["total_questions"],
            "percent": round(r["score"] / r["total_questions"] * 100) if r["total_questions"] else 0,
            "time_taken_seconds": r["time_taken_seconds"],
            "completed_at": r["completed_at"],
        }
        for r in rows
    ]


def get_reviewed_questions(db_path: str, user_id: str, exam_id: str, limit_sessions: int = 50) -> list[dict]:
    """Latest answer per question across the user's most recent sessions, newest first."""
    with transaction(db_path) as conn:
        rows = conn.execute(
            """WITH recent AS (
                SELECT id, completed_at FROM quiz_sessions
                WHERE user_id = ?
                ORDER BY completed_at DESC, id DESC
                LIMIT ?
            )
            SELECT a.id, a.question_id, a.is_correct, r.completed_at,
                q.question_text, q.explanation, q.difficulty, q.domain,
                chosen.option_text as chosen_text, keyed.option_text as correct_text
            FROM user_answers a
            JOIN recent r ON a.quiz_session_id = r.id
            JOIN questions q ON a.question_id = q.id
            LEFT JOIN question_options chosen ON chosen.id = a.selected_option_id
            LEFT JOIN question_options keyed ON keyed.question_id = q.id AND keyed.is_correct = 1
            WHERE q.exam_id = ? AND TRIM(q.question_text) != ''
            ORDER BY a.answered_at DESC, a.id DESC""",
            (user_id, limit_sessions, exam_id),
        ).fetchall()
    latest = {}
    for r in rows:
        latest.setdefault(r["question_id"], r)
    return [
        {
            "answer_id": r["id"],
            "question_id": r["question_id"],
            "question": r["question_text"],
            "user_answer": r["chosen_text"] or "",
            "correct_answer": r["correct_text"] or "",
            "is_correct": bool(r["is_correct"]),
            "domain": r["domain"] or "",
            "difficulty": r["difficulty"],
            "date": (r["completed_at"] or "")[:10],
            "explanation": r["explanation"] or "",
        }
        for r in latest.values()
    ]
