"""Letter grading and attempt-tiered scoring."""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Optional

from wordquest.config import ScoringSettings, settings
from wordquest.models.quiz_models import Question, QuestionStatus, ScoreTier


logger = logging.getLogger(__name__)


class LetterOutcome(Enum):
    """Result of grading a single submitted letter."""
    ACCEPTED = "accepted"  # Stored, question still open
    REJECTED = "rejected"  # Wrong letter, attempt counted
    RESOLVED = "resolved"  # Stored and the whole question is correct
    IGNORED = "ignored"  # Invalid submission, nothing changed


@dataclass(frozen=True)
class GradeResult:
    outcome: LetterOutcome
    question: Question


def score_tier(attempts: int) -> ScoreTier:
    """Map the attempt count at resolution to a score tier."""
    if attempts <= 1:
        return ScoreTier.MAXIMUM
    if attempts == 2:
        return ScoreTier.HIGH
    if attempts <= 4:
        return ScoreTier.MEDIUM
    return ScoreTier.MINIMUM


def letters_match(submitted: str, canonical: str) -> bool:
    return submitted.lower() == canonical.lower()


class GradingEngine:
    """Evaluates submitted letters and scores resolved questions."""

    def __init__(self, scoring: Optional[ScoringSettings] = None):
        self.scoring = scoring or settings.scoring
        self.tier_points = {
            ScoreTier.MAXIMUM: self.scoring.maximum_points,
            ScoreTier.HIGH: self.scoring.high_points,
            ScoreTier.MEDIUM: self.scoring.medium_points,
            ScoreTier.MINIMUM: self.scoring.minimum_points,
        }

    def points_for(self, tier: ScoreTier) -> int:
        return self.tier_points[tier]

    @property
    def max_points(self) -> int:
        return self.tier_points[ScoreTier.MAXIMUM]

    def is_valid_submission(self, question: Question, position: int, letter: str) -> bool:
        """Check a submission against the question without grading it."""
        if question.is_resolved:
            return False
        if position not in question.masked_positions:
            return False
        if position in question.filled:
            return False
        return isinstance(letter, str) and len(letter) == 1 and letter.isalpha()

    def is_answer_correct(self, question: Question, filled: Optional[Mapping[int, str]] = None) -> bool:
        """Whole-question check: every masked position holds the canonical letter."""
        filled = question.filled if filled is None else filled
        return all(
            position in filled and letters_match(filled[position], question.word.text[position])
            for position in question.masked_positions
        )

    def submit_letter(self, question: Question, position: int, letter: str) -> GradeResult:
        """Grade one letter against the canonical spelling."""
        if not self.is_valid_submission(question, position, letter):
            logger.debug(f"Ignoring submission {letter!r}@{position} for question {question.id}")
            return GradeResult(LetterOutcome.IGNORED, question)

        if not letters_match(letter, question.word.text[position]):
            rejected = replace(question, attempts=question.attempts + 1, wrong_position=position)
            return GradeResult(LetterOutcome.REJECTED, rejected)

        filled = dict(question.filled)
        filled[position] = letter.lower()
        accepted = replace(question, filled=filled, wrong_position=None)
        if not accepted.is_filled:
            return GradeResult(LetterOutcome.ACCEPTED, accepted)

        return self.check_answer(accepted)

    def check_answer(self, question: Question) -> GradeResult:
        """Run the whole-question check once every masked position is filled.

        A successful check counts as the final attempt. A failed check keeps the
        correct letters, clears the wrong ones and counts the attempt.
        """
        if not question.is_filled or question.is_resolved:
            return GradeResult(LetterOutcome.IGNORED, question)

        attempts = question.attempts + 1
        if not self.is_answer_correct(question):
            kept = {
                position: letter
                for position, letter in question.filled.items()
                if letters_match(letter, question.word.text[position])
            }
            return GradeResult(LetterOutcome.REJECTED, replace(question, filled=kept, attempts=attempts))

        tier = score_tier(attempts)
        resolved = replace(
            question,
            attempts=attempts,
            status=QuestionStatus.CORRECT,
            score_tier=tier,
            points=self.points_for(tier),
            perfect=attempts == 1,
            wrong_position=None,
        )
        logger.debug(f"Question {question.id} resolved after {attempts} attempts ({tier.value})")
        return GradeResult(LetterOutcome.RESOLVED, resolved)

    def clear_wrong_flag(self, question: Question, position: int) -> Question:
        if question.wrong_position != position:
            return question
        return replace(question, wrong_position=None)
