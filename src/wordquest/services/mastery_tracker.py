"""Mastery and XP aggregation for quiz sessions and self-ratings."""
import logging
from datetime import datetime, UTC
from typing import Callable, Dict, List, Optional

from wordquest import monitoring
from wordquest.models.quiz_models import (
    Difficulty,
    MasteryRecord,
    MasterySource,
    Question,
    QuestionStatus,
    QuizState,
    Rating,
    ScoreTier,
    SessionCounters,
    SessionOutcome,
    SessionSummary,
    Word,
)


logger = logging.getLogger(__name__)

# XP for an explicit self-rating, keyed by (word difficulty, rating).
SELF_RATING_XP: Dict[tuple, int] = {
    (Difficulty.EASY, Rating.EASY): 50,
    (Difficulty.EASY, Rating.MEDIUM): 30,
    (Difficulty.EASY, Rating.HARD): 10,
    (Difficulty.MEDIUM, Rating.EASY): 75,
    (Difficulty.MEDIUM, Rating.MEDIUM): 45,
    (Difficulty.MEDIUM, Rating.HARD): 15,
    (Difficulty.HARD, Rating.EASY): 100,
    (Difficulty.HARD, Rating.MEDIUM): 60,
    (Difficulty.HARD, Rating.HARD): 20,
}

# Rating implied by how a quiz question was resolved.
TIER_RATINGS: Dict[ScoreTier, Rating] = {
    ScoreTier.MAXIMUM: Rating.EASY,
    ScoreTier.HIGH: Rating.EASY,
    ScoreTier.MEDIUM: Rating.MEDIUM,
    ScoreTier.MINIMUM: Rating.HARD,
}


def self_rating_xp(difficulty: Difficulty, rating: Rating) -> int:
    return SELF_RATING_XP[(difficulty, rating)]


def accumulate(
    counters: SessionCounters,
    question: Question,
    elapsed_ms: int,
    interrupted: bool = False,
) -> SessionCounters:
    """Fold one question outcome into the session counters.

    An interrupted question (timed session ran out mid-question) contributes
    its attempts and time but no credit. It only counts as attempted if the
    learner interacted with it.
    """
    correct = question.is_resolved and not interrupted
    via_hint = question.status is QuestionStatus.CORRECT_VIA_HINT and not interrupted
    touched = question.attempts > 0 or bool(question.filled)
    return SessionCounters(
        correct_answers=counters.correct_answers + (1 if correct else 0),
        total_attempts=counters.total_attempts + question.attempts,
        hints_used=counters.hints_used + (1 if via_hint else 0),
        perfect_answers=counters.perfect_answers + (1 if correct and question.perfect else 0),
        time_spent_ms=counters.time_spent_ms + max(0, elapsed_ms),
        questions_attempted=counters.questions_attempted + (1 if correct or touched else 0),
        total_points=counters.total_points + (question.points if correct else 0),
    )


def summarize(state: QuizState, outcome: SessionOutcome, max_points_per_question: int) -> SessionSummary:
    """Build the final summary for a completed session."""
    counters = state.counters
    attempted = counters.questions_attempted
    return SessionSummary(
        mode=state.config.mode,
        outcome=outcome,
        total_questions=len(state.questions),
        questions_attempted=attempted,
        correct_answers=counters.correct_answers,
        accuracy=counters.correct_answers / attempted if attempted else 0.0,
        perfect_answers=counters.perfect_answers,
        hints_used=counters.hints_used,
        time_spent_ms=counters.time_spent_ms,
        average_time_ms=counters.time_spent_ms / max(counters.correct_answers, 1),
        total_points=counters.total_points,
        max_points=len(state.questions) * max_points_per_question,
    )


class ProgressListener:
    """Receives mastery events and session summaries. Methods default to no-ops."""

    def on_mastery_event(self, record: MasteryRecord) -> None:
        pass

    def on_session_summary(self, summary: SessionSummary) -> None:
        pass


class MasteryTracker:
    """Turns resolutions and self-ratings into mastery records for listeners."""

    def __init__(
        self,
        listeners: Optional[List[ProgressListener]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.listeners: List[ProgressListener] = list(listeners or [])
        self.clock = clock or (lambda: datetime.now(UTC))
        self.history: List[MasteryRecord] = []
        self.summaries: List[SessionSummary] = []
        self.total_xp = 0

    def add_listener(self, listener: ProgressListener) -> None:
        self.listeners.append(listener)

    def record_resolution(self, question: Question) -> Optional[MasteryRecord]:
        """Create the quiz-grading record for a resolved question."""
        if not question.is_resolved:
            return None
        via_hint = question.status is QuestionStatus.CORRECT_VIA_HINT
        rating = Rating.HARD if via_hint else TIER_RATINGS[question.score_tier]
        if via_hint:
            reason = "hint"
        elif question.perfect:
            reason = "perfect"
        else:
            reason = f"correct_{question.score_tier.value}"
        record = MasteryRecord(
            word_id=question.word.id,
            score_delta=question.points,
            xp_delta=question.points,
            rating=rating,
            timestamp=self.clock(),
            source=MasterySource.QUIZ_GRADING,
            reason=reason,
            category=question.word.category,
            difficulty=question.word.difficulty,
        )
        self._emit(record)
        return record

    def rate_word(self, word: Word, rating: Rating) -> MasteryRecord:
        """Explicit self-rating. Grants fixed XP and never touches session counters."""
        xp = self_rating_xp(word.difficulty, rating)
        record = MasteryRecord(
            word_id=word.id,
            score_delta=0,
            xp_delta=xp,
            rating=rating,
            timestamp=self.clock(),
            source=MasterySource.SELF_RATING,
            reason=f"self_rated_{rating.value}",
            category=word.category,
            difficulty=word.difficulty,
        )
        monitoring.self_ratings.labels(rating=rating.value).inc()
        logger.info(f"Word {word.id} self-rated {rating.value}: +{xp} XP")
        self._emit(record)
        return record

    def finalize_session(self, summary: SessionSummary) -> None:
        """Forward a completed session summary to listeners."""
        self.summaries.append(summary)
        logger.info(
            f"Session complete ({summary.mode.value}, {summary.outcome.value}): "
            f"{summary.correct_answers}/{summary.questions_attempted} correct, "
            f"{summary.total_points} points"
        )
        for listener in self.listeners:
            try:
                listener.on_session_summary(summary)
            except Exception as e:
                logger.exception(f"Progress listener failed on session summary: {e}")

    def _emit(self, record: MasteryRecord) -> None:
        self.history.append(record)
        self.total_xp += max(0, record.xp_delta)
        monitoring.xp_granted.labels(source=record.source.value).inc(max(0, record.xp_delta))
        for listener in self.listeners:
            try:
                listener.on_mastery_event(record)
            except Exception as e:
                logger.exception(f"Progress listener failed on mastery event for word {record.word_id}: {e}")
