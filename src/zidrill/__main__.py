"""Prepare the database and report the state of the word pool."""
import logging

from zidrill.config import settings
from zidrill.logging_config import setup_logging
from zidrill.monitoring import start_monitoring
from zidrill.models.base import SessionLocal, init_db
from zidrill.services.learning_service import LearningService

logger = logging.getLogger(__name__)


def main() -> None:
    """Create tables, upgrade old progress rows and log bucket counts."""
    setup_logging()
    init_db()
    if settings.monitoring.port:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exported on port {settings.monitoring.port}")
    db = SessionLocal()
    try:
        service = LearningService(db)
        upgraded = service.upgrade_legacy_progress()
        if upgraded:
            logger.info(f"Upgraded {upgraded} progress records")
        for bucket, count in service.count_by_bucket().items():
            logger.info(f"{bucket.value}: {count} word(s)")

        candidate = service.get_next_candidate()
        if candidate:
            word, progress = candidate
            logger.info(f"Next word: {word.prompt} ({word.pronunciation}), due {progress.next_due_at}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
