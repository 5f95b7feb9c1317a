"""
Core data models for the Trivia Quiz.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Question:
    """Represents a single multiple-choice trivia question."""
    id: str
    category: str
    difficulty: str
    prompt: str
    options: Tuple[str, ...]
    correct_index: int
    hint: str = ""

    def __post_init__(self):
        # Accept any sequence for options but store an immutable tuple
        object.__setattr__(self, 'options', tuple(self.options))
        if len(self.options) < 2:
            raise ValueError(f"Question {self.id} needs at least 2 options")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"Question {self.id} correct_index {self.correct_index} "
                f"out of range for {len(self.options)} options"
            )

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


@dataclass(frozen=True)
class SessionConfig:
    """Category and difficulty chosen before a session starts."""
    category: str
    difficulty: str


@dataclass(frozen=True)
class Feedback:
    """Verdict shown during the reveal window after an answer."""
    selected_index: int
    is_correct: bool


class SessionPhase(Enum):
    """Top-level session status."""
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"


@dataclass
class SessionState:
    """Single consistent state value owned by the quiz controller."""
    phase: SessionPhase = SessionPhase.IDLE
    sequence: Tuple[Question, ...] = field(default_factory=tuple)
    current_index: int = 0
    score: int = 0
    feedback: Optional[Feedback] = None
    hint_visible: bool = False
    config: Optional[SessionConfig] = None
    generation: int = 0

    @property
    def current_question(self) -> Optional[Question]:
        if self.phase != SessionPhase.ACTIVE:
            return None
        return self.sequence[self.current_index]

    @property
    def total_questions(self) -> int:
        return len(self.sequence)
