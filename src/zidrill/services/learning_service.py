"""Learning service connecting the scheduler and pronunciation checks to storage."""
import logging
from collections import Counter
from datetime import datetime, UTC
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from zidrill import monitoring
from zidrill.models.base import as_utc
from zidrill.models.models import LessonSummary, Word
from zidrill.models.review_models import LearningBucket, ReviewOutcome, ReviewProgress
from zidrill.services.progress_repository import (
    ProgressRepository,
    SqlProgressRepository,
    migrate_legacy_progress,
)
from zidrill.services.pronunciation_comparator import (
    ComparisonOptions,
    ComparisonResult,
    compare,
)
from zidrill.services.review_scheduler import schedule_next_review, select_next_candidate

logger = logging.getLogger(__name__)


class LearningService:
    """Service for recording lessons and choosing the next word."""

    def __init__(self, db: Session, repository: Optional[ProgressRepository] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.repository = repository or SqlProgressRepository(db)

    def get_word(self, word_id: str) -> Optional[Word]:
        """Get a word by its ID."""
        return self.db.get(Word, word_id)

    def add_word(
        self,
        word_id: str,
        prompt: str,
        pronunciation: str,
        alternate_pronunciations: Sequence[str] = (),
        characters: Sequence[str] = (),
        prompt_language: str = "de",
        source: str = "custom",
        now: Optional[datetime] = None,
    ) -> Word:
        """Add or update a word.

        New words get default progress and are due right away. Re-adding a
        word keeps its progress but un-suspends it.
        """
        now = now or datetime.now(UTC)
        word = self.get_word(word_id)
        if word is None:
            word = Word(id=word_id)
            self.db.add(word)
        word.prompt = prompt
        word.prompt_language = prompt_language
        word.pronunciation = pronunciation
        word.alternate_pronunciations = list(alternate_pronunciations)
        word.characters = list(characters)
        word.source = source
        self.db.flush()

        progress = self.repository.get(word_id)
        if progress is None:
            self.repository.put(ReviewProgress.create(word_id, now))
        elif progress.suspended:
            self.repository.put(progress.with_suspended(False))

        self.db.commit()
        return word

    def record_lesson(self, outcome: ReviewOutcome) -> Optional[ReviewProgress]:
        """Reschedule a word after a lesson and keep the lesson in the history."""
        progress = self.repository.get(outcome.word_id)
        if progress is None:
            logger.warning(f"No progress for word {outcome.word_id}, lesson not recorded")
            return None

        updated = schedule_next_review(progress, outcome)
        self.repository.put(updated)
        self.db.add(
            LessonSummary(
                word_id=outcome.word_id,
                success=outcome.success,
                stage_reached=outcome.stage_reached.value,
                pinyin_attempts=outcome.pinyin_attempts,
                writing_attempts=outcome.writing_attempts,
                quality=updated.last_quality,
                timestamp=as_utc(outcome.timestamp),
            )
        )
        self.db.commit()

        monitoring.lessons_recorded.labels(result=updated.last_result.value).inc()
        logger.info(
            f"Recorded lesson for {outcome.word_id}: quality {updated.last_quality}, "
            f"next review in {updated.interval_days} day(s), bucket {updated.bucket.value}"
        )
        return updated

    def get_next_candidate(
        self, now: Optional[datetime] = None
    ) -> Optional[Tuple[Word, ReviewProgress]]:
        """Choose the next word to study.

        Suspended words are skipped unless every word is suspended.
        """
        now = now or datetime.now(UTC)
        records = self.repository.list_all()
        if not records:
            return None

        active = [record for record in records if not record.suspended]
        monitoring.due_words.set(sum(1 for record in active if record.is_due(now)))
        chosen = select_next_candidate(active or records, now)
        if chosen is None:
            return None

        word = self.get_word(chosen.word_id)
        if word is None:
            logger.warning(f"Progress for unknown word {chosen.word_id}")
            return None

        monitoring.candidates_selected.inc()
        return word, chosen

    def check_answer(
        self, word_id: str, answer: str, options: ComparisonOptions
    ) -> ComparisonResult:
        """Compare a typed pinyin answer with the word's pronunciations."""
        word = self.get_word(word_id)
        if word is None:
            raise ValueError(f"Word {word_id} not found")

        result = compare(answer, word.to_item(), options)
        monitoring.answers_checked.labels(match=str(result.match).lower()).inc()
        return result

    def _set_suspended(self, word_id: str, suspended: bool) -> ReviewProgress:
        progress = self.repository.get(word_id)
        if progress is None:
            raise ValueError(f"Word {word_id} not found")
        updated = progress.with_suspended(suspended)
        self.repository.put(updated)
        self.db.commit()
        return updated

    def suspend_word(self, word_id: str) -> ReviewProgress:
        """Exclude a word from selection."""
        return self._set_suspended(word_id, True)

    def resume_word(self, word_id: str) -> ReviewProgress:
        """Make a suspended word selectable again."""
        return self._set_suspended(word_id, False)

    def list_recent_summaries(self, limit: int = 10) -> List[LessonSummary]:
        """Most recent lessons first."""
        return (
            self.db.query(LessonSummary)
            .order_by(LessonSummary.timestamp.desc(), LessonSummary.id.desc())
            .limit(limit)
            .all()
        )

    def count_by_bucket(self) -> Dict[LearningBucket, int]:
        """Number of words per bucket."""
        counts = Counter(record.bucket for record in self.repository.list_all())
        return {bucket: counts.get(bucket, 0) for bucket in LearningBucket}

    def upgrade_legacy_progress(self) -> int:
        """Upgrade bucket-only progress rows to SM-2 state."""
        upgraded = migrate_legacy_progress(self.db)
        if upgraded:
            monitoring.legacy_records_upgraded.inc(upgraded)
        return upgraded
