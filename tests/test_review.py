# tests/test_review.py
from exam_tutor import backend
from exam_tutor.models import UserAnswer
from exam_tutor.review import get_reviewed_questions, get_session_history, get_weak_domains


def save(db_path, quiz_type, answers, exam_id="exam-1", completed_at=None):
    score = sum(1 for _, ok in answers if ok)
    session_id = backend.create_quiz_session(
        db_path, "u1", exam_id, quiz_type, score, len(answers), 60, completed_at=completed_at,
    )
    backend.insert_answers(db_path, session_id, "u1", [
        UserAnswer(qid, None, ok, "2026-02-01T09:00:00") for qid, ok in answers
    ])
    return session_id


def test_get_weak_domains_empty(exam_db):
    assert get_weak_domains(exam_db, "u1", "exam-1") == []


def test_get_weak_domains(exam_db):
    save(exam_db, "quick_10", [
        ("exam-1-easy-01", False),  # Networking
        ("exam-1-easy-03", True),   # Networking
        ("exam-1-easy-02", True),   # Storage
        ("exam-1-easy-04", True),   # Storage
    ])
    weak = get_weak_domains(exam_db, "u1", "exam-1")
    assert weak == [{"domain": "Networking", "total": 2, "correct": 1, "score": 50.0}]


def test_get_weak_domains_threshold_and_order(exam_db):
    save(exam_db, "quick_10", [
        ("exam-1-easy-01", False),
        ("exam-1-easy-02", True),
        ("exam-1-easy-04", False),
    ])
    weak = get_weak_domains(exam_db, "u1", "exam-1", threshold=101)
    assert [w["domain"] for w in weak] == ["Networking", "Storage"]


def test_get_weak_domains_scoped_to_exam(exam_db):
    save(exam_db, "quick_10", [("exam-2-easy-01", False)], exam_id="exam-2")
    assert get_weak_domains(exam_db, "u1", "exam-1") == []
    assert len(get_weak_domains(exam_db, "u1", "exam-2")) == 1


def test_get_session_history_newest_first(exam_db):
    first = save(exam_db, "quick_10", [("exam-1-easy-01", True)], completed_at="2026-02-01T09:00:00")
    second = save(exam_db, "level_up", [("exam-1-easy-02", False), ("exam-1-easy-03", True)],
                  completed_at="2026-02-02T09:00:00")
    history = get_session_history(exam_db, "u1", "exam-1")
    assert [h["session_id"] for h in history] == [second, first]
    assert history[0]["quiz_type"] == "level_up"
    assert history[0]["percent"] == 50
    assert history[1]["percent"] == 100


def test_get_session_history_limit_and_exam(exam_db):
    for _ in range(3):
        save(exam_db, "quick_10", [("exam-1-easy-01", True)])
    save(exam_db, "quick_10", [("exam-2-easy-01", True)], exam_id="exam-2")
    assert len(get_session_history(exam_db, "u1", limit=2)) == 2
    assert len(get_session_history(exam_db, "u1")) == 4
    assert len(get_session_history(exam_db, "u1", "exam-2")) == 1


def answer_once(db_path, qid, letter, answered_at, quiz_type="quick_10", exam_id="exam-1"):
    is_correct = letter == "b"
    session_id = backend.create_quiz_session(
        db_path, "u1", exam_id, quiz_type, int(is_correct), 1, 20, completed_at=answered_at,
    )
    backend.insert_answers(db_path, session_id, "u1", [
        UserAnswer(qid, f"{qid}-{letter}", is_correct, answered_at),
    ])


def test_reviewed_questions_empty(exam_db):
    assert get_reviewed_questions(exam_db, "u1", "exam-1") == []


def test_reviewed_questions_keep_latest_answer(exam_db):
    answer_once(exam_db, "exam-1-easy-01", "a", "2026-03-01T10:00:00")
    answer_once(exam_db, "exam-1-easy-01", "b", "2026-03-02T10:00:00", quiz_type="level_up")
    answer_once(exam_db, "exam-1-hard-02", "c", "2026-03-03T10:00:00")
    reviewed = get_reviewed_questions(exam_db, "u1", "exam-1")
    assert [r["question_id"] for r in reviewed] == ["exam-1-hard-02", "exam-1-easy-01"]
    hard, easy = reviewed
    assert hard == {
        "answer_id": hard["answer_id"],
        "question_id": "exam-1-hard-02",
        "question": "hard question 2",
        "user_answer": "Option c",
        "correct_answer": "Option b",
        "is_correct": False,
        "domain": "Storage",
        "difficulty": "hard",
        "date": "2026-03-03",
        "explanation": "Explanation 2",
    }
    assert easy["is_correct"] is True
    assert easy["user_answer"] == "Option b"
    assert easy["date"] == "2026-03-02"


def test_reviewed_questions_only_recent_sessions(exam_db):
    answer_once(exam_db, "exam-1-easy-01", "a", "2026-03-01T10:00:00")
    answer_once(exam_db, "exam-1-easy-02", "b", "2026-03-02T10:00:00")
    answer_once(exam_db, "exam-1-easy-03", "b", "2026-03-03T10:00:00")
    reviewed = get_reviewed_questions(exam_db, "u1", "exam-1", limit_sessions=2)
    assert [r["question_id"] for r in reviewed] == ["exam-1-easy-03", "exam-1-easy-02"]


def test_reviewed_questions_scoped_to_exam(exam_db):
    answer_once(exam_db, "exam-2-easy-01", "a", "2026-03-01T10:00:00", exam_id="exam-2")
    assert get_reviewed_questions(exam_db, "u1", "exam-1") == []
    assert len(get_reviewed_questions(exam_db, "u1", "exam-2")) == 1
