"""Data classes for the exam tutor domain model."""
from dataclasses import dataclass, field
from typing import Optional

STAGES = ("easy", "medium", "hard")
FINAL_STAGE = len(STAGES)  # stage index once every difficulty is passed
PASS_THRESHOLD = 70

DAILY = "daily"
QUICK_10 = "quick_10"
TIMED = "timed"
LEVEL_UP = "level_up"
MISSED = "missed"
WEAKEST = "weakest"
CUSTOM = "custom"
QUIZ_TYPES = (DAILY, QUICK_10, TIMED, LEVEL_UP, MISSED, WEAKEST, CUSTOM)


@dataclass
class Exam:
    id: str
    title: str
    short_name: str = ""
    description: str = ""
    category: str = ""
    passing_score: int = PASS_THRESHOLD
    duration_minutes: int = 0
    is_active: bool = True


@dataclass
class Option:
    id: str
    question_id: str
    option_text: str
    option_letter: str
    is_correct: bool = False


@dataclass
class Question:
    id: str
    exam_id: str
    question_text: str
    difficulty: str
    explanation: str = ""
    domain: str = ""
    options: list[Option] = field(default_factory=list)

    def correct_option(self) -> Optional[Option]:
        return next((o for o in self.options if o.is_correct), None)


@dataclass
class UserAnswer:
    """One graded answer, buffered in memory until its session is saved."""
    question_id: str
    selected_option_id: Optional[str]
    is_correct: bool
    answered_at: str


@dataclass
class UserProgress:
    user_id: str
    level_up_stage: dict[str, int] = field(default_factory=dict)
    questions_answered: int = 0
    questions_correct: int = 0
    last_studied: Optional[str] = None
    study_streak: int = 0


@dataclass
class AccuracyStats:
    accuracy: int = 0
    correct: int = 0
    total: int = 0
