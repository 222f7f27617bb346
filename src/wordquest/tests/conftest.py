"""Test configuration."""
import os
import random
from pathlib import Path
from typing import List

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Load test environment variables
test_env_path = Path(__file__).parents[3] / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from wordquest.config import ensure_directories
from wordquest.models.quiz_models import Difficulty, Word


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


def make_word(word_id: str, text: str, category: str = "food", difficulty: str = "easy") -> Word:
    return Word(id=word_id, text=text, category=category, difficulty=Difficulty(difficulty))


@pytest.fixture
def corpus() -> List[Word]:
    """A small mixed corpus, including words without vowels."""
    return [
        make_word("1", "pizza", "food", "easy"),
        make_word("2", "apple", "food", "easy"),
        make_word("3", "banana", "food", "medium"),
        make_word("4", "elephant", "animals", "medium"),
        make_word("5", "octopus", "animals", "hard"),
        make_word("6", "kangaroo", "animals", "hard"),
        make_word("7", "sky", "nature", "easy"),
        make_word("8", "rhythm", "music", "hard"),
    ]


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture(name="make_word")
def make_word_fixture():
    """Factory for ad hoc words."""
    return make_word
