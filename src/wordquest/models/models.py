"""Database models for learner progress."""
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
)

from wordquest.models.base import Base, TimestampMixin


class WordProgress(Base, TimestampMixin):
    """Per-learner progress on one word."""

    __tablename__ = "word_progress"
    __table_args__ = (UniqueConstraint("learner_id", "word_id", name="uq_word_progress_learner_word"),)

    id = Column(Integer, primary_key=True)
    learner_id = Column(String, nullable=False, index=True)
    word_id = Column(String, nullable=False)
    category = Column(String, nullable=True)
    difficulty = Column(String, nullable=True)
    status = Column(String, nullable=False, default="new")  # new, remembered, needs_practice
    times_reviewed = Column(Integer, default=0)
    times_correct = Column(Integer, default=0)
    times_incorrect = Column(Integer, default=0)
    accuracy = Column(Integer, default=0)  # percent
    mastery_level = Column(Integer, default=0)  # 0-100
    spaced_repetition_interval = Column(Float, default=1.0)  # days
    last_reviewed = Column(DateTime(timezone=True))
    next_review = Column(DateTime(timezone=True))
    last_rating = Column(String, nullable=True)
    total_score = Column(Integer, default=0)
    total_xp = Column(Integer, default=0)


class MasteryEventLog(Base, TimestampMixin):
    """Every mastery event received from the quiz engine."""

    __tablename__ = "mastery_events"

    id = Column(Integer, primary_key=True)
    learner_id = Column(String, nullable=False, index=True)
    word_id = Column(String, nullable=False)
    score_delta = Column(Integer, default=0)
    xp_delta = Column(Integer, default=0)
    rating = Column(String, nullable=True)
    source = Column(String, nullable=False)  # quiz_grading, self_rating
    reason = Column(String, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)


class QuizSessionRecord(Base, TimestampMixin):
    """Summary of a completed quiz session."""

    __tablename__ = "quiz_sessions"

    id = Column(Integer, primary_key=True)
    learner_id = Column(String, nullable=False, index=True)
    mode = Column(String, nullable=False)
    outcome = Column(String, nullable=False)
    total_questions = Column(Integer, default=0)
    questions_attempted = Column(Integer, default=0)
    correct_answers = Column(Integer, default=0)
    accuracy = Column(Float, default=0.0)
    perfect_answers = Column(Integer, default=0)
    hints_used = Column(Integer, default=0)
    time_spent_ms = Column(Integer, default=0)
    total_points = Column(Integer, default=0)
    max_points = Column(Integer, default=0)
