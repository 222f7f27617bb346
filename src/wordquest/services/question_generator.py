"""Question generation for vowel-completion quizzes."""
import logging
import random
from typing import Callable, Dict, Iterable, List, Optional

from wordquest.config import settings
from wordquest.models.quiz_models import Difficulty, Question, QuizMode, Word


logger = logging.getLogger(__name__)

MaskCap = Callable[[int], int]

# Number of masked vowels per mode, given how many vowels the word has.
MASK_CAPS: Dict[QuizMode, MaskCap] = {
    QuizMode.PRACTICE: lambda maskable: 1,
    QuizMode.CHALLENGE: lambda maskable: min(2, maskable),
    QuizMode.TIMED: lambda maskable: min(3, maskable),
    QuizMode.CUSTOM: lambda maskable: min(settings.quiz.custom_max_masked, maskable),
}


def mask_count(mode: QuizMode, maskable: int, max_masked: Optional[int] = None) -> int:
    """Return how many positions to mask for a word with `maskable` vowels."""
    if maskable < 1:
        return 0
    if mode is QuizMode.CUSTOM and max_masked is not None:
        return max(1, min(max_masked, maskable))
    return MASK_CAPS[mode](maskable)


class QuestionGenerator:
    """Builds question batches from a word corpus."""

    def __init__(self, corpus: Iterable[Word], rng: Optional[random.Random] = None):
        """Initialize the generator with a corpus and an optional random source."""
        self.corpus: List[Word] = list(corpus)
        self.rng = rng or random.Random()

    def filter_words(
        self,
        category: Optional[str] = None,
        difficulty: Optional[Difficulty] = None,
    ) -> List[Word]:
        """Filter the corpus by category and difficulty, dropping duplicate ids."""
        wanted_category = None if category in (None, "", "all") else category.lower()
        seen = set()
        words = []
        for word in self.corpus:
            if word.id in seen:
                continue
            if wanted_category and word.category.lower() != wanted_category:
                continue
            if difficulty and word.difficulty is not difficulty:
                continue
            seen.add(word.id)
            words.append(word)
        return words

    def eligible_words(
        self,
        category: Optional[str] = None,
        difficulty: Optional[Difficulty] = None,
    ) -> List[Word]:
        """Words that pass the filters and have at least one vowel."""
        eligible = []
        for word in self.filter_words(category, difficulty):
            if not word.maskable_positions:
                logger.debug(f"Skipping word {word.id} ({word.text!r}): no maskable positions")
                continue
            eligible.append(word)
        return eligible

    def create_question(
        self,
        word: Word,
        mode: QuizMode,
        ordinal: int = 1,
        max_masked: Optional[int] = None,
    ) -> Optional[Question]:
        """Create a question for a word, or None if the word has no vowels."""
        maskable = word.maskable_positions
        count = mask_count(mode, len(maskable), max_masked)
        if count == 0:
            return None
        positions = tuple(sorted(self.rng.sample(maskable, count)))
        return Question(id=f"q{ordinal}-{word.id}", word=word, masked_positions=positions)

    def generate(
        self,
        count: int,
        mode: QuizMode = QuizMode.PRACTICE,
        category: Optional[str] = None,
        difficulty: Optional[Difficulty] = None,
        max_masked: Optional[int] = None,
    ) -> List[Question]:
        """Generate up to `count` questions without repeating words.

        When fewer eligible words exist than requested, fewer questions are
        returned.
        """
        if count < 1:
            return []
        eligible = self.eligible_words(category, difficulty)
        chosen = self.rng.sample(eligible, min(count, len(eligible)))
        if len(chosen) < count:
            logger.info(
                f"Requested {count} questions but only {len(chosen)} eligible words "
                f"(category={category}, difficulty={difficulty.value if difficulty else 'mixed'})"
            )

        questions = []
        for word in chosen:
            question = self.create_question(word, mode, len(questions) + 1, max_masked)
            if question:
                questions.append(question)
        logger.debug(f"Generated {len(questions)} {mode.value} questions")
        return questions
