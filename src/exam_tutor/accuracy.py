"""Per-difficulty accuracy across a user's Level-Up history."""
import logging
import math

from exam_tutor.backend import transaction
from exam_tutor.models import LEVEL_UP, STAGES, AccuracyStats

logger = logging.getLogger(__name__)


def empty_stats() -> dict[str, AccuracyStats]:
    return {difficulty: AccuracyStats() for difficulty in STAGES}


def calculate_stats(correct: int, total: int) -> AccuracyStats:
    # halves round up: 12.5% reads as 13
    accuracy = math.floor(correct / total * 100 + 0.5) if total > 0 else 0
    return AccuracyStats(accuracy=accuracy, correct=correct, total=total)


def get_level_up_accuracy_by_difficulty(db_path: str, user_id: str, exam_id: str) -> dict[str, AccuracyStats]:
    """Recompute easy/medium/hard accuracy from scratch.

    The numerator counts every correct answer row, so answering the same
    question correctly in two sessions counts twice. The denominator is the
    size of the exam's question bank for that difficulty, not the number of
    questions attempted. Both are kept as-is; callers comparing against the
    pass threshold rely on this arithmetic.

    Raises BackendError when any of the reads fails.
    """
    with transaction(db_path) as conn:
        sessions = conn.execute(
            "SELECT id FROM quiz_sessions WHERE user_id = ? AND quiz_type = ?",
            (user_id, LEVEL_UP),
        ).fetchall()
        session_ids = [row["id"] for row in sessions]
        if not session_ids:
            return empty_stats()

        marks = ", ".join("?" for _ in session_ids)
        answers = conn.execute(
            f"SELECT question_id, is_correct FROM user_answers WHERE user_id = ? AND quiz_session_id IN ({marks})",
            (user_id, *session_ids),
        ).fetchall()

        answered_ids = sorted({a["question_id"] for a in answers})
        difficulty_of = {}
        if answered_ids:
            marks = ", ".join("?" for _ in answered_ids)
            rows = conn.execute(
                f"SELECT id, difficulty FROM questions WHERE exam_id = ? AND id IN ({marks})",
                (exam_id, *answered_ids),
            ).fetchall()
            difficulty_of = {row["id"]: row["difficulty"] for row in rows}

        all_questions = conn.execute(
            "SELECT difficulty FROM questions WHERE exam_id = ?", (exam_id,)
        ).fetchall()

    correct_counts = dict.fromkeys(STAGES, 0)
    for answer in answers:
        difficulty = difficulty_of.get(answer["question_id"])
        if difficulty is None:
            continue  # question belongs to another exam
        if answer["is_correct"]:
            correct_counts[difficulty] += 1

    total_counts = dict.fromkeys(STAGES, 0)
    for row in all_questions:
        if row["difficulty"] in total_counts:
            total_counts[row["difficulty"]] += 1

    result = {d: calculate_stats(correct_counts[d], total_counts[d]) for d in STAGES}
    logger.debug("level-up accuracy for %s/%s: %s", user_id, exam_id, result)
    return result
