"""Monitoring configuration for the quiz engine."""
from prometheus_client import Counter, Histogram, start_http_server

# Session metrics
sessions_started = Counter(
    "wordquest_sessions_started_total",
    "Total number of quiz sessions started",
    ["mode"],
)

sessions_finished = Counter(
    "wordquest_sessions_finished_total",
    "Total number of quiz sessions that left the question loop",
    ["mode", "outcome"],
)

# Question metrics
questions_resolved = Counter(
    "wordquest_questions_resolved_total",
    "Total number of resolved quiz questions",
    ["mode", "status"],
)

wrong_letters = Counter(
    "wordquest_wrong_letters_total",
    "Total number of rejected letter submissions",
    ["mode"],
)

hints_used = Counter(
    "wordquest_hints_used_total",
    "Total number of hints revealed",
    ["mode"],
)

question_duration = Histogram(
    "wordquest_question_duration_seconds",
    "Time from question activation to resolution in seconds",
    ["mode"],
    buckets=[1, 2, 5, 10, 30, 60],
)

# Mastery metrics
self_ratings = Counter(
    "wordquest_self_ratings_total",
    "Total number of explicit word self-ratings",
    ["rating"],
)

xp_granted = Counter(
    "wordquest_xp_granted_total",
    "Total XP granted",
    ["source"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
