"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".exam_tutor" / "tutor.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS exams (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    short_name TEXT,
    description TEXT,
    category TEXT,
    passing_score INTEGER DEFAULT 70,
    duration_minutes INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    exam_id TEXT NOT NULL REFERENCES exams(id),
    question_text TEXT NOT NULL,
    explanation TEXT,
    difficulty TEXT NOT NULL CHECK (difficulty IN ('easy', 'medium', 'hard')),
    domain TEXT,
    question_type TEXT DEFAULT 'multiple_choice',
    is_daily_question INTEGER DEFAULT 0,
    daily_question_date TEXT
);

CREATE TABLE IF NOT EXISTS question_options (
    id TEXT PRIMARY KEY,
    question_id TEXT NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
    option_text TEXT NOT NULL,
    option_letter TEXT NOT NULL,
    is_correct INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS quiz_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    exam_id TEXT REFERENCES exams(id),
    quiz_type TEXT NOT NULL,
    score INTEGER DEFAULT 0,
    total_questions INTEGER DEFAULT 0,
    time_taken_seconds INTEGER DEFAULT 0,
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS user_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    question_id TEXT NOT NULL REFERENCES questions(id),
    selected_option_id TEXT,
    is_correct INTEGER NOT NULL,
    quiz_session_id INTEGER REFERENCES quiz_sessions(id) ON DELETE CASCADE,
    answered_at TEXT
);

CREATE TABLE IF NOT EXISTS user_progress (
    user_id TEXT PRIMARY KEY,
    level_up_stage TEXT DEFAULT '{}',  -- JSON {exam_id: stage}
    questions_answered INTEGER DEFAULT 0,
    questions_correct INTEGER DEFAULT 0,
    last_studied TEXT,
    study_streak INTEGER DEFAULT 0,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_questions_exam_difficulty ON questions(exam_id, difficulty);
CREATE INDEX IF NOT EXISTS idx_answers_session ON user_answers(quiz_session_id);
CREATE INDEX IF NOT EXISTS idx_sessions_user_type ON quiz_sessions(user_id, quiz_type);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
