"""Database models for words, their progress and lesson history."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
)
from sqlalchemy.orm import relationship

from zidrill.models.base import Base, TimestampMixin, as_utc
from zidrill.models.review_models import (
    LearningBucket,
    ReviewProgress,
    ReviewResult,
    VocabularyItem,
)


class Word(Base, TimestampMixin):
    """Vocabulary entry."""

    __tablename__ = "words"

    id = Column(String, primary_key=True)
    prompt = Column(String, nullable=False)  # e.g. German word or phrase
    prompt_language = Column(String, nullable=False, default="de")
    pronunciation = Column(String, nullable=False)
    alternate_pronunciations = Column(JSON, nullable=False, default=list)
    characters = Column(JSON, nullable=False, default=list)
    source = Column(String, nullable=False, default="custom")  # built-in, custom

    # Relationships
    progress = relationship("WordProgress", back_populates="word", uselist=False)
    summaries = relationship("LessonSummary", back_populates="word")

    def to_item(self) -> VocabularyItem:
        return VocabularyItem(
            id=self.id,
            pronunciation=self.pronunciation,
            alternate_pronunciations=tuple(self.alternate_pronunciations or ()),
        )


class WordProgress(Base, TimestampMixin):
    """Scheduling state of a word.

    The SM-2 columns are NULL for rows written before SM-2 scheduling; those
    rows are upgraded by ``migrate_legacy_progress``.
    """

    __tablename__ = "word_progress"

    word_id = Column(String, ForeignKey("words.id"), primary_key=True)
    bucket = Column(String, nullable=False, default=LearningBucket.LEARNING.value, index=True)
    streak = Column(Integer, nullable=False, default=0)
    last_reviewed_at = Column(DateTime(timezone=True), nullable=False)
    next_due_at = Column(DateTime(timezone=True), nullable=False, index=True)
    pinyin_attempts = Column(Integer, nullable=False, default=0)
    writing_attempts = Column(Integer, nullable=False, default=0)
    last_result = Column(String, nullable=False, default=ReviewResult.FAILURE.value)
    review_count = Column(Integer, nullable=False, default=0)
    suspended = Column(Boolean, nullable=False, default=False)
    sm2_repetitions = Column(Integer, nullable=True)
    sm2_interval = Column(Integer, nullable=True)
    sm2_easiness = Column(Float, nullable=True)
    sm2_last_quality = Column(Integer, nullable=True)

    # Relationships
    word = relationship("Word", back_populates="progress")

    @property
    def is_legacy(self) -> bool:
        return self.sm2_repetitions is None or self.sm2_interval is None

    def to_record(self) -> ReviewProgress:
        """Plain record for the scheduler. Missing SM-2 state gets defaults."""
        defaults = ReviewProgress(word_id=self.word_id)
        return ReviewProgress(
            word_id=self.word_id,
            bucket=LearningBucket(self.bucket),
            streak=self.streak or 0,
            last_reviewed_at=as_utc(self.last_reviewed_at),
            next_due_at=as_utc(self.next_due_at),
            pinyin_attempts=self.pinyin_attempts or 0,
            writing_attempts=self.writing_attempts or 0,
            last_result=ReviewResult(self.last_result),
            review_count=self.review_count or 0,
            suspended=bool(self.suspended),
            repetitions=_or_default(self.sm2_repetitions, defaults.repetitions),
            interval_days=_or_default(self.sm2_interval, defaults.interval_days),
            easiness=_or_default(self.sm2_easiness, defaults.easiness),
            last_quality=_or_default(self.sm2_last_quality, defaults.last_quality),
        )

    def apply(self, record: ReviewProgress) -> None:
        """Overwrite every column with ``record``."""
        self.bucket = record.bucket.value
        self.streak = record.streak
        self.last_reviewed_at = as_utc(record.last_reviewed_at)
        self.next_due_at = as_utc(record.next_due_at)
        self.pinyin_attempts = record.pinyin_attempts
        self.writing_attempts = record.writing_attempts
        self.last_result = record.last_result.value
        self.review_count = record.review_count
        self.suspended = record.suspended
        self.sm2_repetitions = record.repetitions
        self.sm2_interval = record.interval_days
        self.sm2_easiness = record.easiness
        self.sm2_last_quality = record.last_quality

    @classmethod
    def from_record(cls, record: ReviewProgress) -> "WordProgress":
        row = cls(word_id=record.word_id)
        row.apply(record)
        return row


def _or_default(value, default):
    return default if value is None else value


class LessonSummary(Base):
    """History of completed lessons."""

    __tablename__ = "lesson_summaries"

    id = Column(Integer, primary_key=True)
    word_id = Column(String, ForeignKey("words.id"), nullable=False, index=True)
    success = Column(Boolean, nullable=False)
    stage_reached = Column(String, nullable=False)
    pinyin_attempts = Column(Integer, nullable=False, default=0)
    writing_attempts = Column(Integer, nullable=False, default=0)
    quality = Column(Integer, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    word = relationship("Word", back_populates="summaries")
