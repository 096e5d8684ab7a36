"""Tests for database initialization and connection management."""
import sqlite3

import pytest

from exam_tutor.db import init_db, get_connection


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "exams", "questions", "question_options", "quiz_sessions",
        "user_answers", "user_progress", "user_settings",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO user_settings (key, value) VALUES ('test', 'val')")
    row = conn.execute("SELECT key, value FROM user_settings WHERE key='test'").fetchone()
    assert row["key"] == "test"
    conn.close()


def test_foreign_keys_enabled(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    conn.close()


def test_difficulty_is_checked(exam_db):
    conn = get_connection(exam_db)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO questions (id, exam_id, question_text, difficulty) VALUES ('x', 'exam-1', '?', 'expert')"
        )
    conn.close()
