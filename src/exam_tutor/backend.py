"""Data collaborator: the table and procedure operations the quiz flows rely on.

Every function opens its own connection, performs one logical operation and
commits it as a single transaction. Any ``sqlite3.Error`` is re-raised as
``BackendError`` so callers only ever deal with one failure type.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Optional

from exam_tutor.db import get_connection
from exam_tutor.models import LEVEL_UP, QUIZ_TYPES, Option, Question, UserAnswer

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A read or write against the data collaborator failed."""


@contextmanager
def transaction(db_path: str):
    try:
        conn = get_connection(db_path)
    except sqlite3.Error as exc:
        raise BackendError(f"could not open {db_path}: {exc}") from exc
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        raise BackendError(str(exc)) from exc
    finally:
        conn.close()


def _placeholders(values) -> str:
    return ", ".join("?" for _ in values)


def _load_questions(conn: sqlite3.Connection, rows) -> list[Question]:
    questions = []
    for row in rows:
        options = conn.execute(
            "SELECT * FROM question_options WHERE question_id = ? ORDER BY option_letter",
            (row["id"],),
        ).fetchall()
        questions.append(Question(
            id=row["id"],
            exam_id=row["exam_id"],
            question_text=row["question_text"],
            difficulty=row["difficulty"],
            explanation=row["explanation"] or "",
            domain=row["domain"] or "",
            options=[
                Option(
                    id=o["id"],
                    question_id=o["question_id"],
                    option_text=o["option_text"],
                    option_letter=o["option_letter"],
                    is_correct=bool(o["is_correct"]),
                )
                for o in options
            ],
        ))
    return questions


def query_questions(db_path: str, where: str = "1 = 1", params: tuple = (),
                    order: str = "RANDOM()", limit: Optional[int] = None) -> list[Question]:
    """Fetch questions with their options for an arbitrary WHERE clause."""
    sql = f"SELECT * FROM questions WHERE {where} ORDER BY {order}"
    if limit is not None:
        sql += " LIMIT ?"
        params = (*params, limit)
    with transaction(db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
        return _load_questions(conn, rows)


def get_questions(db_path: str, question_ids: Iterable[str]) -> list[Question]:
    ids = list(question_ids)
    if not ids:
        return []
    return query_questions(db_path, f"id IN ({_placeholders(ids)})", tuple(ids), order="id")


# --- Level-Up stage ---


def _parse_stages(raw: Optional[str], user_id: str) -> dict[str, int]:
    if not raw:
        return {}
    try:
        return {k: int(v) for k, v in json.loads(raw).items()}
    except (ValueError, TypeError, AttributeError) as exc:
        raise BackendError(f"corrupt level_up_stage for {user_id}") from exc


def get_level_up_stages(db_path: str, user_id: str) -> dict[str, int]:
    """Per-exam stage mapping for a user; empty when the user has no progress row."""
    with transaction(db_path) as conn:
        row = conn.execute(
            "SELECT level_up_stage FROM user_progress WHERE user_id = ?", (user_id,)
        ).fetchone()
    return _parse_stages(row["level_up_stage"] if row else None, user_id)


def get_level_up_stage(db_path: str, user_id: str, exam_id: str) -> int:
    return get_level_up_stages(db_path, user_id).get(exam_id, 0)


def _write_stage(conn: sqlite3.Connection, user_id: str, exam_id: str, stage: int) -> None:
    row = conn.execute(
        "SELECT level_up_stage FROM user_progress WHERE user_id = ?", (user_id,)
    ).fetchone()
    stages = _parse_stages(row["level_up_stage"] if row else None, user_id)
    stages[exam_id] = stage
    conn.execute(
        """INSERT INTO user_progress (user_id, level_up_stage, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET level_up_stage = excluded.level_up_stage,
            updated_at = excluded.updated_at""",
        (user_id, json.dumps(stages), datetime.now().isoformat()),
    )


def advance_stage(db_path: str, user_id: str, exam_id: str, new_stage: int) -> None:
    """Set the exam's stage for the user. Applying the same value twice is a no-op."""
    with transaction(db_path) as conn:
        _write_stage(conn, user_id, exam_id, new_stage)
    logger.info("stage for %s/%s set to %d", user_id, exam_id, new_stage)


def reset_level_up_progress(db_path: str, user_id: str, exam_id: str) -> int:
    """Delete the user's level-up sessions for an exam and put the stage back to 0.

    Answers go with their sessions through the foreign key cascade. Returns the
    number of sessions deleted.
    """
    with transaction(db_path) as conn:
        deleted = conn.execute(
            "DELETE FROM quiz_sessions WHERE user_id = ? AND exam_id = ? AND quiz_type = ?",
            (user_id, exam_id, LEVEL_UP),
        ).rowcount
        _write_stage(conn, user_id, exam_id, 0)
    logger.warning("level-up progress reset for %s/%s (%d sessions removed)", user_id, exam_id, deleted)
    return deleted


def reset_exam_data(db_path: str, user_id: str, exam_id: str) -> int:
    """Delete every session and answer the user has for an exam and put the stage back to 0.

    Returns the number of sessions deleted.
    """
    with transaction(db_path) as conn:
        deleted = conn.execute(
            "DELETE FROM quiz_sessions WHERE user_id = ? AND exam_id = ?", (user_id, exam_id),
        ).rowcount
        conn.execute(
            """DELETE FROM user_answers
            WHERE user_id = ? AND question_id IN (SELECT id FROM questions WHERE exam_id = ?)""",
            (user_id, exam_id),
        )
        _write_stage(conn, user_id, exam_id, 0)
    logger.warning("all data for %s/%s reset (%d sessions removed)", user_id, exam_id, deleted)
    return deleted


# --- Question sets ---


def get_mastered_question_ids(db_path: str, user_id: str, exam_id: str,
                              quiz_type: Optional[str] = LEVEL_UP) -> set[str]:
    """Questions of the exam the user has answered correctly at least once.

    With ``quiz_type=None`` every session type counts.
    """
    sql = """SELECT DISTINCT a.question_id
        FROM user_answers a
        JOIN quiz_sessions s ON a.quiz_session_id = s.id
        JOIN questions q ON a.question_id = q.id
        WHERE s.user_id = ? AND q.exam_id = ? AND a.is_correct = 1"""
    params: tuple = (user_id, exam_id)
    if quiz_type is not None:
        sql += " AND s.quiz_type = ?"
        params += (quiz_type,)
    with transaction(db_path) as conn:
        return {row["question_id"] for row in conn.execute(sql, params).fetchall()}


def fetch_stage_questions(db_path: str, exam_id: str, difficulty: str,
                          exclude_ids: Iterable[str], limit: int) -> list[Question]:
    exclude = list(exclude_ids)
    where = "exam_id = ? AND difficulty = ?"
    params: tuple = (exam_id, difficulty)
    if exclude:
        where += f" AND id NOT IN ({_placeholders(exclude)})"
        params += tuple(exclude)
    return query_questions(db_path, where, params, limit=limit)


def fetch_unique_random_questions(db_path: str, exam_id: str, limit: int, user_id: str,
                                  quiz_mode: Optional[str] = None) -> list[Question]:
    """Random questions for an exam, skipping any the user already has right."""
    mastered = get_mastered_question_ids(db_path, user_id, exam_id, quiz_type=quiz_mode)
    where = "exam_id = ?"
    params: tuple = (exam_id,)
    if mastered:
        where += f" AND id NOT IN ({_placeholders(mastered)})"
        params += tuple(mastered)
    return query_questions(db_path, where, params, limit=limit)


# --- Sessions and answers ---


def create_quiz_session(db_path: str, user_id: str, exam_id: Optional[str], quiz_type: str,
                        score: int, total_questions: int, time_taken_seconds: int,
                        completed_at: Optional[str] = None) -> int:
    if quiz_type not in QUIZ_TYPES:
        raise ValueError(f"Unknown quiz type: {quiz_type}")
    completed_at = completed_at or datetime.now().isoformat()
    with transaction(db_path) as conn:
        cursor = conn.execute(
            """INSERT INTO quiz_sessions
            (user_id, exam_id, quiz_type, score, total_questions, time_taken_seconds, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (user_id, exam_id, quiz_type, score, total_questions, time_taken_seconds, completed_at),
        )
        session_id = cursor.lastrowid
    logger.debug("created %s session %d (%d/%d)", quiz_type, session_id, score, total_questions)
    return session_id


def insert_answers(db_path: str, session_id: int, user_id: str, answers: list[UserAnswer]) -> None:
    """Insert all answers of a session in one transaction; none are kept on failure."""
    if not answers:
        return
    with transaction(db_path) as conn:
        conn.executemany(
            """INSERT INTO user_answers
            (user_id, question_id, selected_option_id, is_correct, quiz_session_id, answered_at)
            VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (user_id, a.question_id, a.selected_option_id, int(a.is_correct), session_id, a.answered_at)
                for a in answers
            ],
        )


def delete_quiz_session(db_path: str, session_id: int) -> None:
    with transaction(db_path) as conn:
        conn.execute("DELETE FROM quiz_sessions WHERE id = ?", (session_id,))
