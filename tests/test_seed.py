import json

import pytest

from exam_tutor.db import get_connection, init_db
from exam_tutor.seed import (
    SAMPLE_EXAM, import_exam_file, is_seeded, list_exams, load_exam_file, question_counts, seed_exam,
    seed_sample,
)
from conftest import build_exam


def test_is_seeded(tmp_db):
    init_db(tmp_db)
    assert not is_seeded(tmp_db)
    seed_sample(tmp_db)
    assert is_seeded(tmp_db)


def test_seed_sample(tmp_db):
    init_db(tmp_db)
    result = seed_sample(tmp_db)
    assert result == {"exam_id": "gcp-ace", "questions_added": 15}
    assert question_counts(tmp_db, "gcp-ace") == {"easy": 5, "medium": 5, "hard": 5}


def test_sample_questions_have_one_correct_option(tmp_db):
    init_db(tmp_db)
    seed_sample(tmp_db)
    conn = get_connection(tmp_db)
    rows = conn.execute(
        "SELECT question_id, SUM(is_correct) as n FROM question_options GROUP BY question_id"
    ).fetchall()
    conn.close()
    assert len(rows) == 15
    assert all(r["n"] == 1 for r in rows)


def test_seed_is_idempotent(tmp_db):
    init_db(tmp_db)
    seed_sample(tmp_db)
    assert seed_sample(tmp_db)["questions_added"] == 0
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0] == 15
    assert conn.execute("SELECT COUNT(*) FROM exams").fetchone()[0] == 1
    conn.close()


def test_seed_exam_option_ids(tmp_db):
    init_db(tmp_db)
    seed_exam(tmp_db, build_exam("x", easy=1, medium=0, hard=0))
    conn = get_connection(tmp_db)
    ids = [r["id"] for r in conn.execute("SELECT id FROM question_options ORDER BY option_letter")]
    conn.close()
    assert ids == ["x-easy-01-a", "x-easy-01-b", "x-easy-01-c", "x-easy-01-d"]


def test_seed_exam_rejects_unknown_difficulty(tmp_db):
    init_db(tmp_db)
    data = build_exam("x", easy=2, medium=0, hard=0)
    data["questions"][1]["difficulty"] = "expert"
    with pytest.raises(ValueError):
        seed_exam(tmp_db, data)
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0] == 0
    conn.close()


def test_seed_exam_daily_question(tmp_db):
    init_db(tmp_db)
    data = build_exam("x", easy=1, medium=0, hard=0)
    data["questions"][0]["daily_question_date"] = "2026-04-01"
    seed_exam(tmp_db, data)
    conn = get_connection(tmp_db)
    row = conn.execute("SELECT is_daily_question, daily_question_date FROM questions").fetchone()
    conn.close()
    assert row["is_daily_question"] == 1
    assert row["daily_question_date"] == "2026-04-01"


def test_import_exam_file(tmp_db, tmp_path):
    init_db(tmp_db)
    path = tmp_path / "bank.json"
    path.write_text(json.dumps(build_exam("custom", easy=2, medium=1, hard=0)))
    result = import_exam_file(tmp_db, path)
    assert result == {"exam_id": "custom", "questions_added": 3}
    assert question_counts(tmp_db, "custom") == {"easy": 2, "medium": 1, "hard": 0}


def test_load_exam_file_requires_keys(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"questions": []}))
    with pytest.raises(ValueError):
        load_exam_file(path)


def test_load_sample_file():
    data = load_exam_file(SAMPLE_EXAM)
    assert data["exam"]["id"] == "gcp-ace"


def test_list_exams(exam_db):
    exams = list_exams(exam_db)
    assert [e.id for e in exams] == ["exam-1", "exam-2"]
    assert exams[0].short_name == "EXAM-1"
