"""Main entry point for the console quiz."""
import argparse
from typing import List, Optional

from wordquest.app import main
from wordquest.config import ensure_directories
from wordquest.logging_config import setup_logging
from wordquest.models.quiz_models import SessionConfig


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="wordquest", description="Vowel rescue quiz")
    parser.add_argument("--mode", default="practice", choices=["practice", "challenge", "timed", "custom"])
    parser.add_argument("--difficulty", default="mixed", choices=["easy", "medium", "hard", "mixed"])
    parser.add_argument("--category", default=None)
    parser.add_argument("--count", type=int, default=None)
    parser.add_argument("--time-limit", type=int, default=None, dest="time_limit_seconds")
    parser.add_argument("--max-masked", type=int, default=None, dest="max_masked")
    parser.add_argument("--learner", default="default", help="Learner id for stored progress")
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    ensure_directories()
    setup_logging("Starting wordquest ...")
    main(SessionConfig.from_dict(vars(args)), learner_id=args.learner)


if __name__ == "__main__":
    run()
