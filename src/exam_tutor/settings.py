"""User settings stored in the database, plus environment overrides."""
import os

from exam_tutor.db import DEFAULT_DB_PATH, get_connection

DEFAULTS = {
    "user_id": "local",
    "level_up_question_count": "10",
    "level_up_pass_threshold": "70",
    "compensate_orphan_sessions": "0",
    "timed_quiz_seconds": "1800",
}


def get_db_path() -> str:
    return os.environ.get("EXAM_TUTOR_DB", DEFAULT_DB_PATH)


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    if row:
        return row["value"]
    return default if default is not None else DEFAULTS.get(key)


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def get_int_setting(db_path: str, key: str) -> int:
    return int(get_setting(db_path, key))


def get_bool_setting(db_path: str, key: str) -> bool:
    value = get_setting(db_path, key) or ""
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_user_id(db_path: str) -> str:
    return get_setting(db_path, "user_id")


def get_current_exam(db_path: str) -> str | None:
    return get_setting(db_path, "current_exam")


def set_current_exam(db_path: str, exam_id: str) -> None:
    set_setting(db_path, "current_exam", exam_id)
