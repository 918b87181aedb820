"""SM-2 based review scheduling and next-word selection.

Quality grades (0-5) are derived from a lesson outcome instead of being
self-graded:
  0 - failed at the pinyin stage
  1 - failed while writing
  2 - failed later (guided writing)
  3 - correct with serious difficulty
  4 - correct after some hesitation
  5 - perfect recall

All functions are pure: they take records and return new ones.
"""
import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta, UTC
from typing import Iterable, Optional

from zidrill.config import (
    DEFAULT_EASINESS,
    MAX_EASINESS,
    MAX_INTERVAL_DAYS,
    MIN_EASINESS,
    REINFORCE_MAX_INTERVAL_DAYS,
)
from zidrill.models.review_models import (
    LearningBucket,
    LessonStage,
    ReviewOutcome,
    ReviewProgress,
    ReviewResult,
)

logger = logging.getLogger(__name__)

PASSING_QUALITY = 3
STREAK_QUALITY = 4

FAILURE_QUALITY = {
    LessonStage.PINYIN: 0,
    LessonStage.WRITING: 1,
}
DEFAULT_FAILURE_QUALITY = 2

# Guided writing caps how good a successful lesson can be
GUIDED_QUALITY_CAP = {
    LessonStage.WRITING_GUIDED_HALF: 4,
    LessonStage.WRITING_GUIDED_FULL: 3,
}


def derive_quality(outcome: ReviewOutcome) -> int:
    """Grade a lesson outcome on the SM-2 0-5 scale."""
    if not outcome.success:
        return FAILURE_QUALITY.get(outcome.stage_reached, DEFAULT_FAILURE_QUALITY)

    quality = 5
    if outcome.pinyin_attempts >= 3:
        quality -= 2
    elif outcome.pinyin_attempts == 2:
        quality -= 1

    if outcome.writing_attempts >= 6:
        quality -= 2
    elif outcome.writing_attempts >= 4:
        quality -= 1

    cap = GUIDED_QUALITY_CAP.get(outcome.stage_reached)
    if cap is not None:
        quality = min(quality, cap)

    return max(PASSING_QUALITY, min(5, quality))


def update_easiness(easiness: float, quality: int) -> float:
    """Apply the SM-2 E-Factor update, clamped to [1.3, 3.5]."""
    if not math.isfinite(easiness):
        easiness = DEFAULT_EASINESS
    penalty = 5 - quality
    updated = easiness + (0.1 - penalty * (0.08 + penalty * 0.02))
    if not math.isfinite(updated):
        return easiness
    return max(MIN_EASINESS, min(MAX_EASINESS, updated))


def next_interval(repetitions: int, previous_interval: int, easiness: float) -> int:
    """Interval in days for the ``repetitions``-th consecutive success.

    Never longer than ``MAX_INTERVAL_DAYS``.
    """
    if repetitions == 1:
        return 1
    if repetitions == 2:
        return 6
    previous_interval = min(max(1, previous_interval), MAX_INTERVAL_DAYS)
    # half-up rounding, round() would round 2.5 down to 2
    return min(MAX_INTERVAL_DAYS, max(1, math.floor(previous_interval * easiness + 0.5)))


def due_date(reviewed_at: datetime, interval_days: int) -> datetime:
    """``reviewed_at`` plus the interval, or the latest representable time."""
    try:
        return reviewed_at + timedelta(days=interval_days)
    except OverflowError:
        return datetime.max.replace(tzinfo=UTC)


def classify_bucket(repetitions: int, interval_days: int, quality: int) -> LearningBucket:
    """Bucket of a word, derived from its SM-2 state only."""
    if quality < PASSING_QUALITY or repetitions <= 1 or interval_days <= 1:
        return LearningBucket.LEARNING
    if interval_days < REINFORCE_MAX_INTERVAL_DAYS:
        return LearningBucket.REINFORCE
    return LearningBucket.KNOWN


def schedule_next_review(progress: ReviewProgress, outcome: ReviewOutcome) -> ReviewProgress:
    """Return the replacement progress record after a completed lesson."""
    quality = derive_quality(outcome)
    easiness = update_easiness(progress.easiness, quality)
    previous_interval = progress.interval_days if progress.interval_days > 0 else 1

    if quality < PASSING_QUALITY:
        repetitions = 0
        interval_days = 1
    else:
        repetitions = progress.repetitions + 1
        interval_days = next_interval(repetitions, previous_interval, easiness)

    bucket = classify_bucket(repetitions, interval_days, quality)
    logger.debug(
        "Scheduled %s: quality=%d easiness=%.2f repetitions=%d interval=%dd bucket=%s",
        progress.word_id, quality, easiness, repetitions, interval_days, bucket.value,
    )

    return replace(
        progress,
        bucket=bucket,
        streak=progress.streak + 1 if quality >= STREAK_QUALITY else 0,
        last_reviewed_at=outcome.timestamp,
        next_due_at=due_date(outcome.timestamp, interval_days),
        pinyin_attempts=outcome.pinyin_attempts,
        writing_attempts=outcome.writing_attempts,
        last_result=ReviewResult.SUCCESS if quality >= PASSING_QUALITY else ReviewResult.FAILURE,
        review_count=progress.review_count + 1,
        suspended=False,
        repetitions=repetitions,
        interval_days=interval_days,
        easiness=easiness,
        last_quality=quality,
    )


def _selection_key(progress: ReviewProgress, now: datetime) -> tuple:
    return (
        0 if progress.next_due_at <= now else 1,
        progress.next_due_at,
        progress.bucket.priority,
        progress.last_quality,
        progress.last_reviewed_at,
        progress.word_id,  # keeps the order total for otherwise equal records
    )


def select_next_candidate(
    pool: Iterable[ReviewProgress], now: Optional[datetime] = None
) -> Optional[ReviewProgress]:
    """Pick the word to review next, or None for an empty pool.

    Overdue words come first, then earlier due dates, weaker buckets, lower
    last quality and the least recently reviewed. Suspended words are not
    filtered here.
    """
    now = now or datetime.now(UTC)
    candidates = list(pool)
    if not candidates:
        return None
    return min(candidates, key=lambda progress: _selection_key(progress, now))


# One-time upgrade of records written by the bucket-only scheduler
LEGACY_BUCKET_STATE = {
    LearningBucket.LEARNING: (0, 1),
    LearningBucket.REINFORCE: (2, 6),
    LearningBucket.KNOWN: (3, REINFORCE_MAX_INTERVAL_DAYS),
}


def upgrade_legacy_progress(
    word_id: str,
    bucket: LearningBucket,
    streak: int,
    last_reviewed_at: datetime,
    next_due_at: datetime,
    pinyin_attempts: int,
    writing_attempts: int,
    last_result: ReviewResult,
    review_count: int = 0,
    suspended: bool = False,
) -> ReviewProgress:
    """Build a full SM-2 record from a bucket-only one.

    The old bucket is mapped to an equivalent repetition count and interval,
    then the bucket is recomputed from that state.
    """
    repetitions, interval_days = LEGACY_BUCKET_STATE[bucket]
    last_quality = 5 if last_result == ReviewResult.SUCCESS else 0
    return ReviewProgress(
        word_id=word_id,
        bucket=classify_bucket(repetitions, interval_days, last_quality),
        streak=streak,
        last_reviewed_at=last_reviewed_at,
        next_due_at=next_due_at,
        pinyin_attempts=pinyin_attempts,
        writing_attempts=writing_attempts,
        last_result=last_result,
        review_count=review_count,
        suspended=suspended,
        repetitions=repetitions,
        interval_days=interval_days,
        easiness=DEFAULT_EASINESS,
        last_quality=last_quality,
    )
