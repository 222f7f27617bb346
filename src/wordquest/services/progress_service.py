"""Service for persisting learner progress from quiz and self-rating events."""
import logging
from collections import defaultdict
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from wordquest.models.models import MasteryEventLog, QuizSessionRecord, WordProgress
from wordquest.models.quiz_models import (
    MasteryRecord,
    MasterySource,
    Rating,
    SessionSummary,
)
from wordquest.services.mastery_tracker import ProgressListener


logger = logging.getLogger(__name__)

MASTERED_LEVEL = 80
INITIAL_INTERVAL_DAYS = 1.0


def calculate_mastery_level(times_correct: int, times_reviewed: int, accuracy: int) -> int:
    """Mastery 0-100 from accuracy, experience and consistency."""
    if times_reviewed == 0:
        return 0
    base_score = accuracy / 100 * 60
    experience_score = min(times_reviewed * 2, 30)
    consistency_score = 10 if times_correct >= 3 else times_correct * 3
    return min(round(base_score + experience_score + consistency_score), 100)


def calculate_spaced_repetition_interval(accuracy: int, current_interval: float) -> float:
    """Days until the next review, growing with accuracy."""
    if accuracy >= 90:
        return min(current_interval * 2.5, 30)
    if accuracy >= 75:
        return min(current_interval * 1.8, 14)
    if accuracy >= 60:
        return min(current_interval * 1.3, 7)
    return max(current_interval * 0.8, 1)


def is_remembered(record: MasteryRecord) -> bool:
    """Whether an event counts as the learner knowing the word."""
    if record.source is MasterySource.SELF_RATING:
        return record.rating in (Rating.EASY, Rating.MEDIUM)
    return record.reason != "hint"


class ProgressService(ProgressListener):
    """Progress collaborator backed by the database."""

    def __init__(self, db: Session, learner_id: str = "default"):
        """Initialize the service with a database session and learner."""
        self.db = db
        self.learner_id = learner_id

    def on_mastery_event(self, record: MasteryRecord) -> None:
        self.record_mastery_event(record)

    def on_session_summary(self, summary: SessionSummary) -> None:
        self.record_session_summary(summary)

    def get_word_progress(self, word_id: str) -> Optional[WordProgress]:
        """Get the learner's progress on a word."""
        return (
            self.db.query(WordProgress)
            .filter(
                and_(
                    WordProgress.learner_id == self.learner_id,
                    WordProgress.word_id == word_id,
                )
            )
            .first()
        )

    def record_mastery_event(self, record: MasteryRecord) -> WordProgress:
        """Log the event and fold it into the word's progress."""
        self.db.add(
            MasteryEventLog(
                learner_id=self.learner_id,
                word_id=record.word_id,
                score_delta=record.score_delta,
                xp_delta=record.xp_delta,
                rating=record.rating.value if record.rating else None,
                source=record.source.value,
                reason=record.reason,
                occurred_at=record.timestamp,
            )
        )

        progress = self.get_word_progress(record.word_id)
        if not progress:
            progress = WordProgress(
                learner_id=self.learner_id,
                word_id=record.word_id,
                times_reviewed=0,
                times_correct=0,
                times_incorrect=0,
                spaced_repetition_interval=INITIAL_INTERVAL_DAYS,
                total_score=0,
                total_xp=0,
            )
            self.db.add(progress)

        remembered = is_remembered(record)
        progress.category = record.category or progress.category
        progress.difficulty = record.difficulty.value if record.difficulty else progress.difficulty
        progress.status = "remembered" if remembered else "needs_practice"
        progress.times_reviewed += 1
        progress.times_correct += 1 if remembered else 0
        progress.times_incorrect += 0 if remembered else 1
        progress.accuracy = round(progress.times_correct / progress.times_reviewed * 100)
        progress.mastery_level = calculate_mastery_level(
            progress.times_correct, progress.times_reviewed, progress.accuracy
        )
        progress.spaced_repetition_interval = calculate_spaced_repetition_interval(
            progress.accuracy, progress.spaced_repetition_interval
        )
        progress.last_reviewed = record.timestamp
        progress.next_review = record.timestamp + timedelta(days=progress.spaced_repetition_interval)
        progress.last_rating = record.rating.value if record.rating else progress.last_rating
        progress.total_score += record.score_delta
        progress.total_xp += record.xp_delta

        self.db.commit()
        logger.debug(
            f"Word {record.word_id} for learner {self.learner_id}: "
            f"{progress.status}, mastery {progress.mastery_level}"
        )
        return progress

    def record_session_summary(self, summary: SessionSummary) -> QuizSessionRecord:
        """Store a completed session summary."""
        session_record = QuizSessionRecord(
            learner_id=self.learner_id,
            mode=summary.mode.value,
            outcome=summary.outcome.value,
            total_questions=summary.total_questions,
            questions_attempted=summary.questions_attempted,
            correct_answers=summary.correct_answers,
            accuracy=summary.accuracy,
            perfect_answers=summary.perfect_answers,
            hints_used=summary.hints_used,
            time_spent_ms=summary.time_spent_ms,
            total_points=summary.total_points,
            max_points=summary.max_points,
        )
        self.db.add(session_record)
        self.db.commit()
        return session_record

    def get_total_xp(self) -> int:
        """Sum of XP over all of the learner's mastery events."""
        total = (
            self.db.query(func.sum(MasteryEventLog.xp_delta))
            .filter(MasteryEventLog.learner_id == self.learner_id)
            .scalar()
        )
        return int(total or 0)

    def get_words_for_review(self, now: Optional[datetime] = None, limit: int = 10) -> List[WordProgress]:
        """Words whose next review is due."""
        now = now or datetime.now(UTC)
        return (
            self.db.query(WordProgress)
            .filter(
                and_(
                    WordProgress.learner_id == self.learner_id,
                    WordProgress.next_review <= now,
                )
            )
            .order_by(WordProgress.next_review)
            .limit(limit)
            .all()
        )

    def get_recent_sessions(self, limit: int = 10) -> List[QuizSessionRecord]:
        """Most recent session summaries first."""
        return (
            self.db.query(QuizSessionRecord)
            .filter(QuizSessionRecord.learner_id == self.learner_id)
            .order_by(QuizSessionRecord.id.desc())
            .limit(limit)
            .all()
        )

    def get_category_stats(self) -> List[Dict[str, Any]]:
        """Per-category mastery, strongest categories first."""
        buckets: Dict[str, List[WordProgress]] = defaultdict(list)
        rows = self.db.query(WordProgress).filter(WordProgress.learner_id == self.learner_id).all()
        for row in rows:
            buckets[row.category or "general"].append(row)

        stats = [
            {
                "category": category,
                "total_words": len(words),
                "mastered_words": sum(1 for w in words if w.mastery_level >= MASTERED_LEVEL),
                "needs_practice_words": sum(1 for w in words if w.status == "needs_practice"),
                "average_accuracy": round(sum(w.accuracy for w in words) / len(words)),
            }
            for category, words in buckets.items()
        ]
        return sorted(stats, key=lambda s: s["average_accuracy"], reverse=True)
