# tests/test_integration.py
"""End-to-end test of the core workflow."""
from exam_tutor import backend
from exam_tutor.accuracy import get_level_up_accuracy_by_difficulty
from exam_tutor.dashboard import get_level_up_overview, get_study_stats
from exam_tutor.db import get_connection, init_db
from exam_tutor.levelup import LevelUpContext, LevelUpMachine, MachineState
from exam_tutor.quiz import complete_quiz, get_missed_question_ids, get_questions_for_mode
from exam_tutor.seed import list_exams, seed_sample
from exam_tutor.settings import set_current_exam, set_setting


def answer_stage(machine, right):
    for _ in range(machine.total):
        q = machine.current_question
        option = q.correct_option() if right(q) else next(o for o in q.options if not o.is_correct)
        machine.select_option(option.id)
        machine.submit()
        machine.advance()


def test_level_up_workflow(tmp_db):
    """Fail a stage, retry it on the shrunken pool, then climb to the end and reset."""
    init_db(tmp_db)
    seed_sample(tmp_db)
    set_current_exam(tmp_db, list_exams(tmp_db)[0].id)
    set_setting(tmp_db, "level_up_question_count", "5")

    machine = LevelUpMachine(LevelUpContext.from_settings(tmp_db))
    assert machine.start() is MachineState.IN_PROGRESS
    assert machine.difficulty == "easy"
    assert machine.total == 5

    # Two right out of five: 40% of the easy bank
    first_two = {q.id for q in machine.questions[:2]}
    answer_stage(machine, lambda q: q.id in first_two)
    assert machine.state is MachineState.STAGE_RESULT
    assert not machine.result.passed
    assert machine.result.stats.accuracy == 40

    # The retry only offers the three still unmastered questions
    machine.retry()
    assert machine.total == 3
    assert not first_two & {q.id for q in machine.questions}
    answer_stage(machine, lambda q: True)
    assert machine.result.passed
    assert machine.result.stats.accuracy == 100

    for difficulty in ("medium", "hard"):
        machine.next_stage()
        assert machine.difficulty == difficulty
        answer_stage(machine, lambda q: True)
        assert machine.result.passed
    machine.next_stage()
    assert machine.state is MachineState.ALL_STAGES_COMPLETE

    user_id, exam_id = machine.context.user_id, machine.context.exam_id
    overview = get_level_up_overview(tmp_db, user_id, exam_id)
    assert overview["stage_name"] == "complete"
    assert all(d["passed"] and d["accuracy"] == 100 for d in overview["difficulties"])
    assert get_study_stats(tmp_db, user_id, exam_id)["sessions_by_type"] == {"level_up": 4}

    # Everything is mastered, so unique random questions run dry
    assert backend.fetch_unique_random_questions(tmp_db, exam_id, 10, user_id) == []
    assert get_questions_for_mode(tmp_db, "quick_10", exam_id, user_id)

    machine.request_reset()
    assert machine.confirm_reset() is MachineState.IN_PROGRESS
    assert machine.total == 5
    stats = get_level_up_accuracy_by_difficulty(tmp_db, user_id, exam_id)
    assert all(s.total == 0 for s in stats.values())
    assert backend.get_level_up_stage(tmp_db, user_id, exam_id) == 0


def test_practice_quiz_workflow(tmp_db):
    """Quick quiz answers feed the missed-questions mode."""
    init_db(tmp_db)
    seed_sample(tmp_db)
    questions = get_questions_for_mode(tmp_db, "quick_10", "gcp-ace", "local")
    assert len(questions) == 10

    wrong = questions[0]
    selections = {q.id: q.correct_option().id for q in questions[1:]}
    selections[wrong.id] = next(o.id for o in wrong.options if not o.is_correct)
    complete_quiz(tmp_db, "local", "gcp-ace", "quick_10", questions, selections, 120)

    assert get_missed_question_ids(tmp_db, "local", "gcp-ace") == [wrong.id]
    missed = get_questions_for_mode(tmp_db, "missed", "gcp-ace", "local")
    assert [q.id for q in missed] == [wrong.id]

    # Practice answers never count toward Level Up
    stats = get_level_up_accuracy_by_difficulty(tmp_db, "local", "gcp-ace")
    assert all(s.correct == 0 for s in stats.values())

    conn = get_connection(tmp_db)
    row = conn.execute("SELECT questions_answered, questions_correct FROM user_progress").fetchone()
    conn.close()
    assert (row["questions_answered"], row["questions_correct"]) == (10, 9)
