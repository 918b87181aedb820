"""Tests for learning service."""
from datetime import datetime, timedelta, timezone, UTC

import pytest
from faker import Faker
from sqlalchemy.orm import Session

from zidrill.models.models import LessonSummary, Word, WordProgress
from zidrill.models.review_models import (
    LearningBucket,
    LessonStage,
    ReviewOutcome,
    ReviewResult,
)
from zidrill.services.learning_service import LearningService
from zidrill.services.pronunciation_comparator import ComparisonOptions
from zidrill.services.progress_repository import InMemoryProgressRepository

fake = Faker()


@pytest.fixture
def learning_service(db: Session) -> LearningService:
    """Create a learning service instance."""
    return LearningService(db)


@pytest.fixture
def word(learning_service: LearningService, now: datetime) -> Word:
    """Create a test word."""
    return learning_service.add_word(
        word_id=fake.uuid4(),
        prompt="Vater",
        pronunciation="bàba",
        alternate_pronunciations=["ba4 ba0"],
        characters=["爸", "爸"],
        now=now,
    )


def lesson(word_id: str, timestamp: datetime, success: bool = True) -> ReviewOutcome:
    """Create a lesson outcome."""
    return ReviewOutcome(
        word_id=word_id,
        success=success,
        stage_reached=LessonStage.COMPLETE if success else LessonStage.PINYIN,
        pinyin_attempts=1,
        writing_attempts=1,
        timestamp=timestamp,
    )


def test_add_word(learning_service: LearningService, word: Word, now: datetime):
    """Test that a new word gets default progress due right away."""
    stored = learning_service.get_word(word.id)
    assert stored.prompt == "Vater"
    assert stored.alternate_pronunciations == ["ba4 ba0"]
    assert stored.characters == ["爸", "爸"]

    progress = learning_service.repository.get(word.id)
    assert progress.bucket == LearningBucket.LEARNING
    assert progress.next_due_at == now
    assert progress.review_count == 0


def test_add_word_again_keeps_progress(
    learning_service: LearningService, word: Word, now: datetime
):
    """Test that re-adding a word updates it without resetting progress."""
    learning_service.record_lesson(lesson(word.id, now))
    learning_service.suspend_word(word.id)

    learning_service.add_word(word.id, "Papa", "bàba", now=now + timedelta(days=1))

    assert learning_service.get_word(word.id).prompt == "Papa"
    progress = learning_service.repository.get(word.id)
    assert progress.review_count == 1
    assert progress.suspended is False


def test_record_lesson(learning_service: LearningService, word: Word, now: datetime, db: Session):
    """Test that a lesson reschedules the word and is kept in the history."""
    updated = learning_service.record_lesson(lesson(word.id, now))

    assert updated.last_quality == 5
    assert updated.interval_days == 1
    assert updated.next_due_at == now + timedelta(days=1)
    assert learning_service.repository.get(word.id) == updated

    summary = db.query(LessonSummary).one()
    assert summary.word_id == word.id
    assert summary.success is True
    assert summary.stage_reached == LessonStage.COMPLETE.value
    assert summary.quality == 5


def test_record_lesson_failure(learning_service: LearningService, word: Word, now: datetime):
    """Test that a failed lesson restarts the word."""
    learning_service.record_lesson(lesson(word.id, now))
    learning_service.record_lesson(lesson(word.id, now + timedelta(days=1)))
    updated = learning_service.record_lesson(lesson(word.id, now + timedelta(days=7), success=False))

    assert updated.repetitions == 0
    assert updated.last_result == ReviewResult.FAILURE
    assert updated.bucket == LearningBucket.LEARNING


def test_record_lesson_unknown_word(learning_service: LearningService, now: datetime, db: Session):
    """Test that lessons for unknown words are ignored."""
    assert learning_service.record_lesson(lesson("missing", now)) is None
    assert db.query(LessonSummary).count() == 0


def test_get_next_candidate(learning_service: LearningService, now: datetime):
    """Test that the overdue word is chosen before the upcoming one."""
    first = learning_service.add_word("w-first", "Vater", "bàba", now=now)
    second = learning_service.add_word("w-second", "Mutter", "māma", now=now)
    learning_service.record_lesson(lesson(first.id, now))

    word, progress = learning_service.get_next_candidate(now + timedelta(hours=1))
    assert word.id == second.id
    assert progress.next_due_at == now


def test_get_next_candidate_empty(learning_service: LearningService):
    assert learning_service.get_next_candidate() is None


def test_suspended_words_are_skipped(learning_service: LearningService, now: datetime):
    """Test suspending and resuming words."""
    learning_service.add_word("w-a", "eins", "yī", now=now - timedelta(days=1))
    learning_service.add_word("w-b", "zwei", "èr", now=now)

    learning_service.suspend_word("w-a")
    word, _ = learning_service.get_next_candidate(now)
    assert word.id == "w-b"

    learning_service.resume_word("w-a")
    word, _ = learning_service.get_next_candidate(now)
    assert word.id == "w-a"


def test_all_suspended_falls_back_to_everything(learning_service: LearningService, now: datetime):
    learning_service.add_word("w-a", "eins", "yī", now=now)
    learning_service.suspend_word("w-a")

    word, progress = learning_service.get_next_candidate(now)
    assert word.id == "w-a"
    assert progress.suspended is True


def test_suspend_unknown_word(learning_service: LearningService):
    with pytest.raises(ValueError):
        learning_service.suspend_word("missing")
    with pytest.raises(ValueError):
        learning_service.resume_word("missing")


def test_check_answer(learning_service: LearningService, word: Word):
    """Test pinyin answers against the stored pronunciations."""
    strict = ComparisonOptions(enforce_tone=True)

    assert learning_service.check_answer(word.id, "ba4ba", strict).match is True
    assert learning_service.check_answer(word.id, "ba2ba", strict).match is False
    assert learning_service.check_answer(word.id, "ma1ma", strict).letters_match is False

    with pytest.raises(ValueError):
        learning_service.check_answer("missing", "ba4ba", strict)


def test_list_recent_summaries(learning_service: LearningService, word: Word, now: datetime):
    for day in range(3):
        learning_service.record_lesson(lesson(word.id, now + timedelta(days=day)))

    summaries = learning_service.list_recent_summaries(limit=2)
    assert len(summaries) == 2
    assert summaries[0].timestamp > summaries[1].timestamp


def test_count_by_bucket(learning_service: LearningService, now: datetime):
    for index in range(3):
        learning_service.add_word(f"w-{index}", fake.word(), "hǎo", now=now)
    for day in range(2):
        learning_service.record_lesson(lesson("w-0", now + timedelta(days=day)))

    assert learning_service.count_by_bucket() == {
        LearningBucket.LEARNING: 2,
        LearningBucket.REINFORCE: 1,
        LearningBucket.KNOWN: 0,
    }


def test_upgrade_legacy_progress(learning_service: LearningService, word: Word, db: Session):
    row = db.get(WordProgress, word.id)
    row.sm2_repetitions = None
    row.sm2_interval = None
    row.bucket = LearningBucket.REINFORCE.value
    row.last_result = ReviewResult.SUCCESS.value
    db.commit()

    assert learning_service.upgrade_legacy_progress() == 1
    assert learning_service.upgrade_legacy_progress() == 0
    assert learning_service.repository.get(word.id).interval_days == 6


def test_in_memory_repository(db: Session, now: datetime):
    """Test that the service works with an injected repository."""
    repository = InMemoryProgressRepository()
    service = LearningService(db, repository)
    service.add_word("w-mem", "Hallo", "nǐ hǎo", now=now)

    assert repository.get("w-mem") is not None
    assert db.query(WordProgress).count() == 0
    word, _ = service.get_next_candidate(now)
    assert word.id == "w-mem"


def test_main_reports_pool(monkeypatch, db: Session, now: datetime):
    """Test the maintenance entry point against the test database."""
    from zidrill import __main__ as entry_point
    from zidrill.config import MonitoringSettings

    ports = []
    monkeypatch.setattr(entry_point, "setup_logging", lambda: None)
    monkeypatch.setattr(entry_point, "start_monitoring", ports.append)
    monkeypatch.setattr(entry_point.settings, "monitoring", MonitoringSettings(port=9100))
    LearningService(db).add_word("w-main", "Hallo", "nǐ hǎo", now=now)

    entry_point.main()

    assert ports == [9100]
    assert LearningService(db).get_next_candidate(now)[0].id == "w-main"


def test_metrics_are_counted(learning_service: LearningService, word: Word, now: datetime):
    """Test that the service updates the Prometheus metrics."""
    from zidrill import monitoring

    recorded = monitoring.lessons_recorded.labels(result="success")
    checked = monitoring.answers_checked.labels(match="true")
    before_recorded = recorded._value.get()
    before_checked = checked._value.get()

    learning_service.record_lesson(lesson(word.id, now))
    learning_service.check_answer(word.id, "ba4ba", ComparisonOptions(enforce_tone=True))
    learning_service.get_next_candidate(now)

    assert recorded._value.get() == before_recorded + 1
    assert checked._value.get() == before_checked + 1
    assert monitoring.due_words._value.get() == 0


def test_lesson_in_local_time(learning_service: LearningService, word: Word, now: datetime, db: Session):
    """Test that lessons recorded with a local offset keep their instant."""
    local = now.astimezone(timezone(timedelta(hours=-5)))
    updated = learning_service.record_lesson(lesson(word.id, local))

    stored = learning_service.repository.get(word.id)
    assert stored.next_due_at == now + timedelta(days=1)
    assert stored == updated
    summary = db.query(LessonSummary).one()
    assert summary.timestamp.replace(tzinfo=UTC) == now
