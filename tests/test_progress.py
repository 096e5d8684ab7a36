from datetime import date

from exam_tutor import backend
from exam_tutor.progress import get_user_progress, next_streak, update_progress


def test_next_streak():
    today = date(2026, 3, 10)
    assert next_streak(None, 0, today) == 1
    assert next_streak("2026-03-09", 4, today) == 5
    assert next_streak("2026-03-10", 4, today) == 4
    assert next_streak("2026-03-10", 0, today) == 1
    assert next_streak("2026-03-07", 4, today) == 1
    assert next_streak("2026-03-09T22:15:00", 2, today) == 3


def test_progress_for_new_user(exam_db):
    progress = get_user_progress(exam_db, "nobody")
    assert progress.questions_answered == 0
    assert progress.level_up_stage == {}


def test_update_progress_accumulates(exam_db):
    update_progress(exam_db, "u1", 10, 7, today=date(2026, 3, 9))
    progress = update_progress(exam_db, "u1", 5, 5, today=date(2026, 3, 10))
    assert progress.questions_answered == 15
    assert progress.questions_correct == 12
    assert progress.study_streak == 2
    assert progress.last_studied == "2026-03-10"


def test_update_progress_same_day_keeps_streak(exam_db):
    update_progress(exam_db, "u1", 1, 1, today=date(2026, 3, 9))
    progress = update_progress(exam_db, "u1", 1, 0, today=date(2026, 3, 9))
    assert progress.study_streak == 1


def test_update_progress_gap_restarts_streak(exam_db):
    update_progress(exam_db, "u1", 1, 1, today=date(2026, 3, 1))
    update_progress(exam_db, "u1", 1, 1, today=date(2026, 3, 2))
    progress = update_progress(exam_db, "u1", 1, 1, today=date(2026, 3, 9))
    assert progress.study_streak == 1


def test_update_progress_keeps_level_up_stage(exam_db):
    backend.advance_stage(exam_db, "u1", "exam-1", 2)
    update_progress(exam_db, "u1", 3, 2)
    assert get_user_progress(exam_db, "u1").level_up_stage == {"exam-1": 2}
    assert backend.get_level_up_stage(exam_db, "u1", "exam-1") == 2
