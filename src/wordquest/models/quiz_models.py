"""Models for quiz-related data structures."""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from wordquest.config import settings


logger = logging.getLogger(__name__)

VOWELS = frozenset("aeiou")


class Difficulty(Enum):
    """Base difficulty of a word in the corpus."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizMode(Enum):
    """Available quiz modes."""
    PRACTICE = "practice"  # One vowel at a time
    CHALLENGE = "challenge"  # Up to two vowels
    TIMED = "timed"  # Up to three vowels against the clock
    CUSTOM = "custom"  # Configurable number of vowels


class QuestionStatus(Enum):
    """Resolution status of a question."""
    UNRESOLVED = "unresolved"
    CORRECT = "correct"
    CORRECT_VIA_HINT = "correct_via_hint"


class ScoreTier(Enum):
    """Attempt-based score tiers."""
    MAXIMUM = "maximum"
    HIGH = "high"
    MEDIUM = "medium"
    MINIMUM = "minimum"


class Phase(Enum):
    """Lifecycle phases of a quiz session."""
    SETUP = "setup"
    ACTIVE = "active"
    FEEDBACK = "feedback"
    COMPLETE = "complete"
    TERMINATED = "terminated"  # Explicit exit, never finalized


class Rating(Enum):
    """How hard a word felt to the learner."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class MasterySource(Enum):
    """Where a mastery record came from."""
    QUIZ_GRADING = "quiz_grading"
    SELF_RATING = "self_rating"


class Cue(Enum):
    """Fire-and-forget audio/haptic cues."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    COMPLETE = "complete"


class SessionOutcome(Enum):
    """How a completed session ended."""
    FINISHED = "finished"
    TIMED_OUT = "timed_out"


def vowel_positions(text: str) -> Tuple[int, ...]:
    """Return the indices of vowel letters in the text."""
    return tuple(i for i, char in enumerate(text) if char.lower() in VOWELS)


@dataclass(frozen=True)
class Word:
    """A corpus word. The canonical spelling is the grading ground truth."""
    id: str
    text: str
    category: str
    difficulty: Difficulty
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def maskable_positions(self) -> Tuple[int, ...]:
        return vowel_positions(self.text)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Word":
        """Build a word from a corpus entry. Raises ValueError on malformed entries."""
        text = data.get("text", data.get("word"))
        if data.get("id") is None or not text:
            raise ValueError(f"Corpus entry needs an id and a text: {data!r}")
        try:
            difficulty = Difficulty(str(data.get("difficulty", "medium")).lower())
        except ValueError:
            raise ValueError(f"Unknown difficulty in corpus entry: {data!r}") from None
        known = {"id", "text", "word", "category", "difficulty"}
        return cls(
            id=str(data["id"]),
            text=str(text),
            category=str(data.get("category", "general")),
            difficulty=difficulty,
            metadata={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class Question:
    """A vowel-completion question for one word."""
    id: str
    word: Word
    masked_positions: Tuple[int, ...]
    filled: Mapping[int, str] = field(default_factory=dict)
    attempts: int = 0
    hints_used: int = 0
    status: QuestionStatus = QuestionStatus.UNRESOLVED
    score_tier: Optional[ScoreTier] = None
    points: int = 0
    perfect: bool = False
    wrong_position: Optional[int] = None
    activated_at_ms: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not QuestionStatus.UNRESOLVED

    @property
    def is_filled(self) -> bool:
        return all(position in self.filled for position in self.masked_positions)

    @property
    def correct_letters(self) -> Dict[int, str]:
        return {position: self.word.text[position] for position in self.masked_positions}

    @property
    def display_text(self) -> str:
        """The word with unfilled masked positions shown as underscores."""
        chars = list(self.word.text)
        for position in self.masked_positions:
            chars[position] = self.filled.get(position, "_")
        return "".join(chars)

    def activate(self, at_ms: int) -> "Question":
        return replace(self, activated_at_ms=at_ms)

    def elapsed_ms(self, now_ms: int) -> int:
        if self.activated_at_ms is None:
            return 0
        return max(0, now_ms - self.activated_at_ms)


@dataclass(frozen=True)
class SessionConfig:
    """Options chosen in the setup phase."""
    mode: QuizMode = QuizMode.PRACTICE
    difficulty: Optional[Difficulty] = None  # None means mixed
    category: Optional[str] = None  # None means all categories
    count: Optional[int] = None
    time_limit_seconds: Optional[int] = None
    max_masked: Optional[int] = None  # Custom mode only

    @property
    def question_count(self) -> int:
        if self.count is not None:
            return self.count
        return settings.quiz.question_counts.get(self.mode.value, 10)

    @property
    def is_timed(self) -> bool:
        return self.mode is QuizMode.TIMED

    @property
    def time_limit(self) -> Optional[int]:
        if not self.is_timed:
            return None
        return self.time_limit_seconds or settings.quiz.default_time_limit_seconds

    def is_valid(self) -> bool:
        for value in (self.count, self.time_limit_seconds, self.max_masked):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                return False
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionConfig":
        """Build a config from a presentation-layer start command."""
        difficulty = data.get("difficulty")
        category = data.get("category")
        return cls(
            mode=QuizMode(data.get("mode", QuizMode.PRACTICE.value)),
            difficulty=None if difficulty in (None, "mixed") else Difficulty(difficulty),
            category=None if category in (None, "", "all") else category,
            count=_optional_int(data.get("count"), "count"),
            time_limit_seconds=_optional_int(
                data.get("timeLimitSeconds", data.get("time_limit_seconds")), "time limit"
            ),
            max_masked=_optional_int(data.get("maxMasked", data.get("max_masked")), "max masked"),
        )


def _optional_int(value: Any, name: str) -> Optional[int]:
    """Accept only whole numbers; raise ValueError for anything else."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    return value


@dataclass(frozen=True)
class SessionCounters:
    """Cumulative per-session counters. Every field is non-decreasing."""
    correct_answers: int = 0
    total_attempts: int = 0
    hints_used: int = 0
    perfect_answers: int = 0
    time_spent_ms: int = 0
    questions_attempted: int = 0
    total_points: int = 0


@dataclass(frozen=True)
class SessionSummary:
    """Finalized result of a completed session."""
    mode: QuizMode
    outcome: SessionOutcome
    total_questions: int
    questions_attempted: int
    correct_answers: int
    accuracy: float
    perfect_answers: int
    hints_used: int
    time_spent_ms: int
    average_time_ms: float
    total_points: int
    max_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "outcome": self.outcome.value,
            "total_questions": self.total_questions,
            "questions_attempted": self.questions_attempted,
            "correct_answers": self.correct_answers,
            "accuracy": self.accuracy,
            "perfect_answers": self.perfect_answers,
            "hints_used": self.hints_used,
            "time_spent_ms": self.time_spent_ms,
            "average_time_ms": self.average_time_ms,
            "total_points": self.total_points,
            "max_points": self.max_points,
        }


@dataclass(frozen=True)
class QuizState:
    """Complete state of one quiz session."""
    config: SessionConfig = field(default_factory=SessionConfig)
    phase: Phase = Phase.SETUP
    questions: Tuple[Question, ...] = ()
    current_index: int = 0
    time_remaining: Optional[int] = None  # Seconds, timed mode only
    counters: SessionCounters = field(default_factory=SessionCounters)
    summary: Optional[SessionSummary] = None

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def is_finished(self) -> bool:
        return self.phase in (Phase.COMPLETE, Phase.TERMINATED)

    def with_current(self, question: Question) -> "QuizState":
        """Return a copy with the current question replaced."""
        questions = list(self.questions)
        questions[self.current_index] = question
        return replace(self, questions=tuple(questions))


@dataclass(frozen=True)
class MasteryRecord:
    """A per-word mastery event handed to progress collaborators."""
    word_id: str
    score_delta: int
    xp_delta: int
    rating: Optional[Rating]
    timestamp: datetime
    source: MasterySource
    reason: str
    category: Optional[str] = None
    difficulty: Optional[Difficulty] = None
