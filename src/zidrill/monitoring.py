"""Prometheus metrics for the learning service."""
from prometheus_client import Counter, Gauge, start_http_server

# Lesson metrics
lessons_recorded = Counter(
    "zidrill_lessons_recorded_total",
    "Total number of lessons recorded",
    ["result"],
)

answers_checked = Counter(
    "zidrill_answers_checked_total",
    "Total number of pinyin answers checked",
    ["match"],
)

# Scheduling metrics
candidates_selected = Counter(
    "zidrill_candidates_selected_total",
    "Total number of words picked for review",
)

due_words = Gauge(
    "zidrill_due_words",
    "Number of unsuspended words due at the last selection",
)

# Storage metrics
legacy_records_upgraded = Counter(
    "zidrill_legacy_records_upgraded_total",
    "Total number of bucket-only progress records upgraded to SM-2",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
