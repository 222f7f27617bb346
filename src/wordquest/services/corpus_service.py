"""Loading word corpora from JSON dictionaries."""
import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from wordquest.config import settings
from wordquest.models.quiz_models import Word


logger = logging.getLogger(__name__)


def words_from_dicts(items: Iterable[Mapping[str, Any]]) -> List[Word]:
    """Convert corpus entries to words. Raises ValueError on malformed entries."""
    return [Word.from_dict(item) for item in items]


def load_corpus(path: Optional[Union[str, Path]] = None) -> List[Word]:
    """Load words from a JSON file or from every JSON file in a directory.

    A file holds either a list of entries or an object with a "words" list.
    Defaults to the configured dictionaries directory.
    """
    path = Path(path) if path is not None else settings.paths.dictionaries_dir
    files = sorted(path.glob("*.json")) if path.is_dir() else [path]

    words: List[Word] = []
    for file in files:
        with open(file, encoding="utf-8") as f:
            data = json.load(f)
        entries = data.get("words", []) if isinstance(data, dict) else data
        loaded = words_from_dicts(entries)
        logger.info(f"Loaded {len(loaded)} words from {file}")
        words.extend(loaded)
    return words


def categories(words: Iterable[Word]) -> List[str]:
    """Distinct categories in first-seen order."""
    seen = []
    for word in words:
        if word.category not in seen:
            seen.append(word.category)
    return seen
