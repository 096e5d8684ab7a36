"""Level Up mode: work through easy, medium and hard questions in order.

A stage is passed when the user's cumulative accuracy for that difficulty,
recomputed from every Level-Up session they have saved, reaches the pass
threshold. Questions the user has already answered correctly in Level-Up are
never offered again, so each retry draws from a smaller pool.

The machine does not talk to a screen. The terminal UI (or a test) drives it
through its methods and reads ``state``, ``current_question``, ``result`` and
``alerts`` back.
"""
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from exam_tutor import backend
from exam_tutor.accuracy import get_level_up_accuracy_by_difficulty
from exam_tutor.backend import BackendError
from exam_tutor.models import FINAL_STAGE, LEVEL_UP, PASS_THRESHOLD, STAGES, AccuracyStats, Question, UserAnswer
from exam_tutor.settings import get_bool_setting, get_current_exam, get_int_setting, get_user_id
from exam_tutor.shuffle import shuffle_questions

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    """The requested action is not allowed in the machine's current state."""


class NoExamSelected(Exception):
    """Level Up needs a current exam and none is set."""


class MachineState(Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    ANSWER_REVEALED = "answer_revealed"
    STAGE_EVALUATING = "stage_evaluating"
    STAGE_RESULT = "stage_result"
    EMPTY_STAGE = "empty_stage"
    ALL_STAGES_COMPLETE = "all_stages_complete"
    ABORTED = "aborted"


class AnswerState(Enum):
    UNANSWERED = "unanswered"
    SELECTED = "selected"
    REVEALED = "revealed"


@dataclass
class Alert:
    title: str
    message: str


@dataclass
class LevelUpContext:
    db_path: str
    user_id: str
    exam_id: str
    question_count: int = 10
    pass_threshold: int = PASS_THRESHOLD
    compensate_orphan_sessions: bool = False
    rng: random.Random = field(default_factory=random.SystemRandom)
    clock: Callable[[], float] = time.monotonic
    now: Callable[[], datetime] = datetime.now

    @classmethod
    def from_settings(cls, db_path: str, user_id: Optional[str] = None,
                      exam_id: Optional[str] = None) -> "LevelUpContext":
        exam_id = exam_id or get_current_exam(db_path)
        if not exam_id:
            raise NoExamSelected("no exam selected")
        return cls(
            db_path=db_path,
            user_id=user_id or get_user_id(db_path),
            exam_id=exam_id,
            question_count=get_int_setting(db_path, "level_up_question_count"),
            pass_threshold=get_int_setting(db_path, "level_up_pass_threshold"),
            compensate_orphan_sessions=get_bool_setting(db_path, "compensate_orphan_sessions"),
        )


@dataclass
class StageResult:
    difficulty: str
    score: int
    total: int
    time_taken_seconds: int
    stats: AccuracyStats
    passed: bool
    session_id: Optional[int] = None
    answers_saved: bool = True
    stage_saved: bool = False


class LevelUpMachine:
    def __init__(self, context: LevelUpContext):
        self.context = context
        self.state = MachineState.LOADING
        self.stage_index = 0
        self.questions: list[Question] = []
        self.current_index = 0
        self.score = 0
        self.answers: list[UserAnswer] = []
        self.answer_state = AnswerState.UNANSWERED
        self.selected_option_id: Optional[str] = None
        self.last_answer_correct: Optional[bool] = None
        self.result: Optional[StageResult] = None
        self.alerts: list[Alert] = []
        self.reset_armed = False
        self._started_at: Optional[float] = None

    # --- read-only views ---

    @property
    def difficulty(self) -> Optional[str]:
        return STAGES[self.stage_index] if self.stage_index < FINAL_STAGE else None

    @property
    def current_question(self) -> Optional[Question]:
        if self.state in (MachineState.IN_PROGRESS, MachineState.ANSWER_REVEALED):
            return self.questions[self.current_index]
        return None

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def progress(self) -> float:
        return (self.current_index + 1) / self.total if self.total else 0.0

    def pop_alerts(self) -> list[Alert]:
        alerts, self.alerts = self.alerts, []
        return alerts

    # --- internals ---

    def _require(self, *states: MachineState) -> None:
        self.reset_armed = False
        if self.state not in states:
            raise InvalidTransition(f"not allowed while {self.state.value}")

    def _alert(self, title: str, message: str, exc: Exception) -> None:
        logger.error("%s: %s", message, exc)
        self.alerts.append(Alert(title, message))

    def _abort(self, message: str, exc: Exception) -> None:
        self._alert("Error", message, exc)
        self.state = MachineState.ABORTED

    def _clear_attempt(self) -> None:
        self.questions = []
        self.current_index = 0
        self.score = 0
        self.answers = []
        self.result = None
        self._started_at = None
        self._clear_selection()

    def _clear_selection(self) -> None:
        self.answer_state = AnswerState.UNANSWERED
        self.selected_option_id = None
        self.last_answer_correct = None

    def _load_questions(self) -> None:
        ctx = self.context
        self.state = MachineState.LOADING
        try:
            mastered = backend.get_mastered_question_ids(ctx.db_path, ctx.user_id, ctx.exam_id)
            questions = backend.fetch_stage_questions(
                ctx.db_path, ctx.exam_id, self.difficulty, mastered, ctx.question_count,
            )
        except BackendError as exc:
            self._abort("Failed to load questions.", exc)
            return
        logger.info("stage %s: %d questions (%d mastered excluded)", self.difficulty, len(questions), len(mastered))
        self.questions = shuffle_questions(questions, ctx.rng)
        if not self.questions:
            self.state = MachineState.EMPTY_STAGE
            return
        self._started_at = ctx.clock()
        self.state = MachineState.IN_PROGRESS

    # --- transitions ---

    def start(self) -> MachineState:
        """Read the saved stage for the exam and enter it."""
        self._require(MachineState.LOADING, MachineState.ABORTED)
        ctx = self.context
        self.state = MachineState.LOADING
        try:
            stage = backend.get_level_up_stage(ctx.db_path, ctx.user_id, ctx.exam_id)
        except BackendError as exc:
            self._abort("Could not fetch your current level.", exc)
            return self.state
        return self._enter_stage(stage)

    def _enter_stage(self, stage_index: int) -> MachineState:
        self.stage_index = min(max(stage_index, 0), FINAL_STAGE)
        self._clear_attempt()
        if self.stage_index >= FINAL_STAGE:
            self.state = MachineState.ALL_STAGES_COMPLETE
        else:
            self._load_questions()
        return self.state

    def select_option(self, option_id: str) -> None:
        """Mark an option as chosen without grading it."""
        self._require(MachineState.IN_PROGRESS)
        if option_id not in {o.id for o in self.current_question.options}:
            raise ValueError(f"option {option_id} does not belong to the current question")
        self.selected_option_id = option_id
        self.answer_state = AnswerState.SELECTED

    def submit(self) -> bool:
        """Grade the selected option and buffer the answer."""
        self._require(MachineState.IN_PROGRESS)
        if self.answer_state is not AnswerState.SELECTED:
            raise InvalidTransition("select an option before submitting")
        question = self.current_question
        correct = question.correct_option()
        is_correct = correct is not None and correct.id == self.selected_option_id
        self.answers.append(UserAnswer(
            question_id=question.id,
            selected_option_id=self.selected_option_id,
            is_correct=is_correct,
            answered_at=self.context.now().isoformat(),
        ))
        if is_correct:
            self.score += 1
        self.last_answer_correct = is_correct
        self.answer_state = AnswerState.REVEALED
        self.state = MachineState.ANSWER_REVEALED
        return is_correct

    def advance(self) -> MachineState:
        """Go to the next question, or finish the stage after the last one."""
        self._require(MachineState.ANSWER_REVEALED)
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
            self._clear_selection()
            self.state = MachineState.IN_PROGRESS
            return self.state
        self._complete_stage()
        return self.state

    def _complete_stage(self) -> None:
        ctx = self.context
        self.state = MachineState.STAGE_EVALUATING
        difficulty = self.difficulty
        elapsed = int(ctx.clock() - self._started_at)

        try:
            session_id = backend.create_quiz_session(
                ctx.db_path, ctx.user_id, ctx.exam_id, LEVEL_UP,
                score=self.score,
                total_questions=len(self.questions),
                time_taken_seconds=elapsed,
                completed_at=ctx.now().isoformat(),
            )
        except BackendError as exc:
            self._abort("Could not save your results.", exc)
            return

        answers_saved = True
        try:
            backend.insert_answers(ctx.db_path, session_id, ctx.user_id, self.answers)
        except BackendError as exc:
            answers_saved = False
            self._alert("Error", "Could not save your answers.", exc)
            if ctx.compensate_orphan_sessions:
                try:
                    backend.delete_quiz_session(ctx.db_path, session_id)
                    session_id = None
                except BackendError as exc:
                    self._alert("Error", "Could not roll back the unsaved session.", exc)

        try:
            stats = get_level_up_accuracy_by_difficulty(ctx.db_path, ctx.user_id, ctx.exam_id)
        except BackendError as exc:
            self._abort("Could not compute your accuracy.", exc)
            return

        stage_stats = stats[difficulty]
        passed = stage_stats.accuracy >= ctx.pass_threshold
        logger.info(
            "stage %s attempt %d/%d, cumulative %d%% (%d/%d) -> %s",
            difficulty, self.score, len(self.questions), stage_stats.accuracy,
            stage_stats.correct, stage_stats.total, "pass" if passed else "fail",
        )

        stage_saved = False
        if passed:
            try:
                backend.advance_stage(ctx.db_path, ctx.user_id, ctx.exam_id, self.stage_index + 1)
                stage_saved = True
            except BackendError as exc:
                # The result screen still shows the pass; the saved stage stays behind.
                self._alert("Error", "Could not save your progress.", exc)

        self.result = StageResult(
            difficulty=difficulty,
            score=self.score,
            total=len(self.questions),
            time_taken_seconds=elapsed,
            stats=stage_stats,
            passed=passed,
            session_id=session_id,
            answers_saved=answers_saved,
            stage_saved=stage_saved,
        )
        self.state = MachineState.STAGE_RESULT

    def retry(self) -> MachineState:
        """Start the failed stage again with a freshly fetched question set."""
        self._require(MachineState.STAGE_RESULT)
        if self.result.passed:
            raise InvalidTransition("stage already passed")
        self._clear_attempt()
        self._load_questions()
        return self.state

    def next_stage(self) -> MachineState:
        self._require(MachineState.STAGE_RESULT)
        if not self.result.passed:
            raise InvalidTransition("stage not passed")
        return self._enter_stage(self.stage_index + 1)

    def skip_stage(self) -> MachineState:
        """Move past a stage that has no questions left to ask."""
        self._require(MachineState.EMPTY_STAGE)
        ctx = self.context
        new_stage = self.stage_index + 1
        try:
            backend.advance_stage(ctx.db_path, ctx.user_id, ctx.exam_id, new_stage)
        except BackendError as exc:
            self._abort("Could not save your progress.", exc)
            return self.state
        return self._enter_stage(new_stage)

    def request_reset(self) -> None:
        """First step of a reset; confirm_reset() must follow directly."""
        self._require(
            MachineState.IN_PROGRESS, MachineState.ANSWER_REVEALED, MachineState.STAGE_RESULT,
            MachineState.EMPTY_STAGE, MachineState.ALL_STAGES_COMPLETE, MachineState.ABORTED,
        )
        self.reset_armed = True

    def cancel_reset(self) -> None:
        self.reset_armed = False

    def confirm_reset(self) -> MachineState:
        """Delete all Level-Up history for the exam and start over at easy."""
        if not self.reset_armed:
            raise InvalidTransition("reset must be requested first")
        self.reset_armed = False
        ctx = self.context
        try:
            backend.reset_level_up_progress(ctx.db_path, ctx.user_id, ctx.exam_id)
        except BackendError as exc:
            self._abort("Could not reset your progress.", exc)
            return self.state
        return self._enter_stage(0)
