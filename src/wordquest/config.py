"""Configuration settings for the quiz engine."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
DICTIONARIES_DIR = DATA_DIR / "dictionaries"

# Quiz defaults
DEFAULT_QUESTION_COUNTS = {
    "practice": 10,
    "challenge": 8,
    "timed": 30,
    "custom": 12,
}


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        DICTIONARIES_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    dictionaries_dir: Path = DICTIONARIES_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///wordquest.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    max_bytes: int = int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024)))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "5"))


@dataclass
class QuizSettings:
    """Quiz flow timing and sizing settings. Delays are in milliseconds."""
    feedback_delay_ms: int = int(os.getenv("FEEDBACK_DELAY_MS", "2000"))
    hint_advance_delay_ms: int = int(os.getenv("HINT_ADVANCE_DELAY_MS", "3000"))
    wrong_flag_ms: int = int(os.getenv("WRONG_FLAG_MS", "1500"))
    tick_interval_ms: int = int(os.getenv("TICK_INTERVAL_MS", "1000"))
    default_time_limit_seconds: int = int(os.getenv("DEFAULT_TIME_LIMIT_SECONDS", "60"))
    custom_max_masked: int = int(os.getenv("CUSTOM_MAX_MASKED", "3"))
    question_counts: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_QUESTION_COUNTS))


@dataclass
class ScoringSettings:
    """Points awarded per score tier."""
    maximum_points: int = int(os.getenv("MAXIMUM_POINTS", "10"))
    high_points: int = int(os.getenv("HIGH_POINTS", "8"))
    medium_points: int = int(os.getenv("MEDIUM_POINTS", "5"))
    minimum_points: int = int(os.getenv("MINIMUM_POINTS", "2"))
    hint_points: int = int(os.getenv("HINT_POINTS", "2"))


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_quiz_settings() -> QuizSettings:
    """Get quiz settings."""
    return QuizSettings()


def get_scoring_settings() -> ScoringSettings:
    """Get scoring settings."""
    return ScoringSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    quiz: QuizSettings = field(default_factory=get_quiz_settings)
    scoring: ScoringSettings = field(default_factory=get_scoring_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        quiz = self.quiz
        if min(quiz.feedback_delay_ms, quiz.hint_advance_delay_ms, quiz.wrong_flag_ms) < 0:
            raise ValueError("Quiz delays cannot be negative")

        if quiz.tick_interval_ms < 1:
            raise ValueError("TICK_INTERVAL_MS must be positive")

        if quiz.default_time_limit_seconds < 1:
            raise ValueError("DEFAULT_TIME_LIMIT_SECONDS must be positive")

        if quiz.custom_max_masked < 1:
            raise ValueError("CUSTOM_MAX_MASKED must be positive")

        if any(count < 1 for count in quiz.question_counts.values()):
            raise ValueError("Question counts must be positive")

        scoring = self.scoring
        if not (scoring.maximum_points > scoring.high_points
                > scoring.medium_points > scoring.minimum_points >= 0):
            raise ValueError("Tier points must be strictly decreasing and non-negative")

        if scoring.hint_points < 0 or scoring.hint_points > scoring.minimum_points:
            raise ValueError("HINT_POINTS must be between 0 and MINIMUM_POINTS")


# Create global settings instance
settings = Settings()
settings.validate()
