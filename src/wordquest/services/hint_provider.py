"""Full-reveal hints."""
import logging
from dataclasses import replace
from typing import Dict, Optional

from wordquest.config import ScoringSettings, settings
from wordquest.models.quiz_models import Question, QuestionStatus, ScoreTier


logger = logging.getLogger(__name__)


class HintProvider:
    """Reveals every masked letter of a question.

    Whether the hint action is offered at all (for example only after a few
    wrong letters) is up to the caller.
    """

    def __init__(self, scoring: Optional[ScoringSettings] = None):
        self.scoring = scoring or settings.scoring

    def reveal(self, question: Question) -> Dict[int, str]:
        """Return the correct letter for every masked position."""
        return {position: letter.lower() for position, letter in question.correct_letters.items()}

    def apply(self, question: Question) -> Optional[Question]:
        """Resolve the question via hint. Returns None for already resolved questions."""
        if question.is_resolved:
            logger.debug(f"Hint requested for resolved question {question.id}, ignoring")
            return None
        return replace(
            question,
            filled=self.reveal(question),
            hints_used=question.hints_used + 1,
            status=QuestionStatus.CORRECT_VIA_HINT,
            score_tier=ScoreTier.MINIMUM,
            points=self.scoring.hint_points,
            perfect=False,
            wrong_position=None,
        )
