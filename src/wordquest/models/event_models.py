"""Events consumed and effects produced by the quiz state machine."""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from wordquest.models.quiz_models import (
    Cue,
    Question,
    SessionConfig,
    SessionSummary,
)


class TimerKind(Enum):
    """Timers the session driver may have pending, at most one of each."""
    COUNTDOWN = "countdown"  # Timed-mode one-second tick
    ADVANCE = "advance"  # Feedback -> next question
    WRONG_FLAG = "wrong_flag"  # Clear the transient wrong-letter flag


# Events

@dataclass(frozen=True)
class Start:
    """Bind a generated question batch and begin the session."""
    config: SessionConfig
    questions: Tuple[Question, ...]
    at_ms: int


@dataclass(frozen=True)
class SubmitLetter:
    """Learner placed a letter at a masked position."""
    position: int
    letter: str
    at_ms: int


@dataclass(frozen=True)
class RequestHint:
    """Learner asked to reveal the answer."""
    at_ms: int


@dataclass(frozen=True)
class Advance:
    """Leave the feedback phase, either from the timer or an explicit command."""
    at_ms: int
    from_timer: bool = False


@dataclass(frozen=True)
class Tick:
    """One countdown interval elapsed."""
    at_ms: int


@dataclass(frozen=True)
class ClearWrongFlag:
    """The wrong-letter flag at a position expired."""
    position: int
    at_ms: int


@dataclass(frozen=True)
class Exit:
    """Leave the session without finalizing."""
    at_ms: int


Event = Union[Start, SubmitLetter, RequestHint, Advance, Tick, ClearWrongFlag, Exit]


# Effects

@dataclass(frozen=True)
class ScheduleTimer:
    kind: TimerKind
    delay_ms: int
    position: int = -1  # Only used by WRONG_FLAG


@dataclass(frozen=True)
class CancelTimer:
    kind: TimerKind


@dataclass(frozen=True)
class EmitCue:
    cue: Cue


@dataclass(frozen=True)
class LetterRejected:
    question: Question
    position: int


@dataclass(frozen=True)
class QuestionResolved:
    question: Question
    elapsed_ms: int


@dataclass(frozen=True)
class SessionFinished:
    summary: SessionSummary


Effect = Union[ScheduleTimer, CancelTimer, EmitCue, LetterRejected, QuestionResolved, SessionFinished]
