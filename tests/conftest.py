import pytest

from exam_tutor.db import init_db
from exam_tutor.seed import seed_exam


def build_exam(exam_id: str, easy: int = 10, medium: int = 10, hard: int = 10) -> dict:
    """A question bank where option 'b' is always the right answer."""
    questions = []
    for difficulty, n in (("easy", easy), ("medium", medium), ("hard", hard)):
        for i in range(1, n + 1):
            qid = f"{exam_id}-{difficulty}-{i:02d}"
            questions.append({
                "id": qid,
                "difficulty": difficulty,
                "domain": "Networking" if i % 2 else "Storage",
                "question_text": f"{difficulty} question {i}",
                "explanation": f"Explanation {i}",
                "options": [
                    {"letter": letter, "text": f"Option {letter}", "correct": letter == "b"}
                    for letter in "abcd"
                ],
            })
    return {
        "exam": {"id": exam_id, "title": f"Exam {exam_id}", "short_name": exam_id.upper()},
        "questions": questions,
    }


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutor.db")
    return db_path


@pytest.fixture
def exam_db(tmp_db):
    """Database with exam-1 (10 questions per difficulty) and exam-2 (3 easy only)."""
    init_db(tmp_db)
    seed_exam(tmp_db, build_exam("exam-1"))
    seed_exam(tmp_db, build_exam("exam-2", easy=3, medium=0, hard=0))
    return tmp_db
