"""Storage of progress records, keyed by word id."""
import logging
from typing import Dict, List, Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Session

from zidrill.models.base import as_utc
from zidrill.models.models import WordProgress
from zidrill.models.review_models import LearningBucket, ReviewProgress, ReviewResult
from zidrill.services.review_scheduler import upgrade_legacy_progress

logger = logging.getLogger(__name__)


class ProgressRepository(Protocol):
    """What the learning service needs from a progress store."""

    def get(self, word_id: str) -> Optional[ReviewProgress]:
        ...

    def put(self, record: ReviewProgress) -> None:
        ...

    def list_all(self) -> List[ReviewProgress]:
        ...


class InMemoryProgressRepository:
    """Dict backed store, for callers without a database."""

    def __init__(self, records: Optional[List[ReviewProgress]] = None):
        self._records: Dict[str, ReviewProgress] = {}
        for record in records or []:
            self.put(record)

    def get(self, word_id: str) -> Optional[ReviewProgress]:
        return self._records.get(word_id)

    def put(self, record: ReviewProgress) -> None:
        self._records[record.word_id] = record

    def list_all(self) -> List[ReviewProgress]:
        return list(self._records.values())


class SqlProgressRepository:
    """Progress store on top of a SQLAlchemy session.

    ``put`` only adds to the session; committing is up to the caller so that a
    lesson and its history row land in one transaction.
    """

    def __init__(self, db: Session):
        """Initialize the repository with a database session."""
        self.db = db

    def _row(self, word_id: str) -> Optional[WordProgress]:
        return self.db.get(WordProgress, word_id)

    def get(self, word_id: str) -> Optional[ReviewProgress]:
        row = self._row(word_id)
        return row.to_record() if row else None

    def put(self, record: ReviewProgress) -> None:
        row = self._row(record.word_id)
        if row is None:
            self.db.add(WordProgress.from_record(record))
        else:
            row.apply(record)
        self.db.flush()

    def list_all(self) -> List[ReviewProgress]:
        rows = self.db.query(WordProgress).order_by(WordProgress.word_id).all()
        return [row.to_record() for row in rows]


def migrate_legacy_progress(db: Session) -> int:
    """Give every bucket-only progress row its SM-2 state, once.

    Returns the number of upgraded rows.
    """
    rows = (
        db.query(WordProgress)
        .filter(
            or_(
                WordProgress.sm2_repetitions.is_(None),
                WordProgress.sm2_interval.is_(None),
            )
        )
        .all()
    )
    for row in rows:
        upgraded = upgrade_legacy_progress(
            word_id=row.word_id,
            bucket=LearningBucket(row.bucket),
            streak=row.streak or 0,
            last_reviewed_at=as_utc(row.last_reviewed_at),
            next_due_at=as_utc(row.next_due_at),
            pinyin_attempts=row.pinyin_attempts or 0,
            writing_attempts=row.writing_attempts or 0,
            last_result=ReviewResult(row.last_result),
            review_count=row.review_count or 0,
            suspended=bool(row.suspended),
        )
        row.apply(upgraded)

    if rows:
        db.commit()
        logger.info(f"Upgraded {len(rows)} legacy progress records")
    return len(rows)
