"""Load exams and their question banks into the database."""
import json
import logging
from pathlib import Path

from exam_tutor.backend import transaction
from exam_tutor.models import STAGES, Exam

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"
SAMPLE_EXAM = CONTENT_DIR / "sample_exam.json"


def is_seeded(db_path: str) -> bool:
    """Check whether any exam has been loaded."""
    with transaction(db_path) as conn:
        count = conn.execute("SELECT COUNT(*) FROM exams").fetchone()[0]
    return count > 0


def load_exam_file(path: str | Path) -> dict:
    data = json.loads(Path(path).read_text())
    if "exam" not in data or "questions" not in data:
        raise ValueError(f"{path}: expected 'exam' and 'questions' keys")
    return data


def seed_exam(db_path: str, data: dict) -> dict:
    """Insert an exam and its questions. Questions already present are left untouched."""
    exam = data["exam"]
    added = 0
    with transaction(db_path) as conn:
        conn.execute(
            """INSERT OR IGNORE INTO exams
            (id, title, short_name, description, category, passing_score, duration_minutes)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                exam["id"], exam["title"], exam.get("short_name", ""), exam.get("description", ""),
                exam.get("category", ""), exam.get("passing_score", 70), exam.get("duration_minutes", 0),
            ),
        )
        for q in data["questions"]:
            if q["difficulty"] not in STAGES:
                raise ValueError(f"question {q['id']}: unknown difficulty {q['difficulty']!r}")
            correct = sum(1 for o in q["options"] if o.get("correct"))
            if correct != 1:
                logger.warning("question %s has %d correct options", q["id"], correct)
            cursor = conn.execute(
                """INSERT OR IGNORE INTO questions
                (id, exam_id, question_text, explanation, difficulty, domain,
                 question_type, is_daily_question, daily_question_date)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    q["id"], exam["id"], q["question_text"], q.get("explanation", ""),
                    q["difficulty"], q.get("domain", ""), q.get("question_type", "multiple_choice"),
                    int(bool(q.get("daily_question_date"))), q.get("daily_question_date"),
                ),
            )
            if cursor.rowcount == 0:
                continue
            added += 1
            for o in q["options"]:
                conn.execute(
                    """INSERT INTO question_options (id, question_id, option_text, option_letter, is_correct)
                    VALUES (?, ?, ?, ?, ?)""",
                    (f"{q['id']}-{o['letter']}", q["id"], o["text"], o["letter"], int(bool(o.get("correct")))),
                )
    logger.info("exam %s: %d new questions", exam["id"], added)
    return {"exam_id": exam["id"], "questions_added": added}


def import_exam_file(db_path: str, path: str | Path) -> dict:
    return seed_exam(db_path, load_exam_file(path))


def seed_sample(db_path: str) -> dict:
    return import_exam_file(db_path, SAMPLE_EXAM)


def list_exams(db_path: str) -> list[Exam]:
    with transaction(db_path) as conn:
        rows = conn.execute("SELECT * FROM exams WHERE is_active = 1 ORDER BY title").fetchall()
    return [
        Exam(
            id=r["id"],
            title=r["title"],
            short_name=r["short_name"] or "",
            description=r["description"] or "",
            category=r["category"] or "",
            passing_score=r["passing_score"],
            duration_minutes=r["duration_minutes"],
            is_active=bool(r["is_active"]),
        )
        for r in rows
    ]


def question_counts(db_path: str, exam_id: str) -> dict[str, int]:
    with transaction(db_path) as conn:
        rows = conn.execute(
            "SELECT difficulty, COUNT(*) as n FROM questions WHERE exam_id = ? GROUP BY difficulty",
            (exam_id,),
        ).fetchall()
    counts = dict.fromkeys(STAGES, 0)
    counts.update({r["difficulty"]: r["n"] for r in rows})
    return counts
