"""Plain data records exchanged with the learning engine."""
from dataclasses import dataclass, replace
from datetime import datetime, UTC
from enum import Enum
from typing import Tuple

from zidrill.config import DEFAULT_EASINESS

NEUTRAL_TONE = 5  # unmarked / light tone
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class LearningBucket(Enum):
    """Coarse mastery classification of a word."""
    LEARNING = "learning"
    REINFORCE = "reinforce"
    KNOWN = "known"

    @property
    def priority(self) -> int:
        """Lower values are reviewed sooner."""
        return _BUCKET_PRIORITY[self]


_BUCKET_PRIORITY = {
    LearningBucket.LEARNING: 0,
    LearningBucket.REINFORCE: 1,
    LearningBucket.KNOWN: 2,
}


class LessonStage(Enum):
    """How far the learner got in a lesson."""
    PINYIN = "pinyin"
    WRITING = "writing"
    WRITING_GUIDED_HALF = "writing-guided-half"
    WRITING_GUIDED_FULL = "writing-guided-full"
    COMPLETE = "complete"


class ReviewResult(Enum):
    """Outcome of the last review."""
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Syllable:
    """One romanized syllable: lowercase letters ("v" for ü) and a tone 1-5."""
    letters: str
    tone: int = NEUTRAL_TONE

    @property
    def is_neutral(self) -> bool:
        return self.tone == NEUTRAL_TONE

    def __str__(self) -> str:
        return self.letters if self.is_neutral else f"{self.letters}{self.tone}"


@dataclass(frozen=True)
class VocabularyItem:
    """A word as seen by the pronunciation checker."""
    id: str
    pronunciation: str
    alternate_pronunciations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of one completed lesson for a word."""
    word_id: str
    success: bool
    stage_reached: LessonStage
    pinyin_attempts: int
    writing_attempts: int
    timestamp: datetime


@dataclass(frozen=True)
class ReviewProgress:
    """Scheduling state of one word.

    Records are replaced wholesale by the scheduler. The only field a caller
    may change on its own is ``suspended`` (see ``with_suspended``).
    """
    word_id: str
    bucket: LearningBucket = LearningBucket.LEARNING
    streak: int = 0
    last_reviewed_at: datetime = EPOCH
    next_due_at: datetime = EPOCH
    pinyin_attempts: int = 0
    writing_attempts: int = 0
    last_result: ReviewResult = ReviewResult.FAILURE
    review_count: int = 0
    suspended: bool = False
    # SM-2 state
    repetitions: int = 0
    interval_days: int = 1
    easiness: float = DEFAULT_EASINESS
    last_quality: int = 0

    @classmethod
    def create(cls, word_id: str, now: datetime) -> "ReviewProgress":
        """Default progress for a freshly imported word, due immediately."""
        return cls(word_id=word_id, next_due_at=now)

    def with_suspended(self, suspended: bool) -> "ReviewProgress":
        return replace(self, suspended=suspended)

    def is_due(self, now: datetime) -> bool:
        return self.next_due_at <= now
