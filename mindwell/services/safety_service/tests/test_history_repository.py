"""Tests for crisis history (in-memory and PostgreSQL-backed)."""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from mindwell.shared.models import CrisisAssessment, CrisisLevel, TriggerTag
from mindwell.shared.utils import configure_pii_salt, hash_pii
from mindwell.services.safety_service.history_repository import (
    CrisisEventRecord,
    CrisisHistoryRepository,
    InMemoryRiskHistory,
)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


def make_assessment(level=CrisisLevel.HIGH):
    return CrisisAssessment(
        detected=True,
        level=level,
        triggers=[TriggerTag(tag="suicidal", severity=level, source="keyword", weight=0.1)],
        confidence=0.1,
    )


def make_record(user_id, days_ago):
    return CrisisEventRecord(
        user_id_hash=hash_pii(user_id),
        level=CrisisLevel.HIGH,
        triggers=["suicidal"],
        confidence=0.4,
        created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
    )


@pytest.fixture
def mock_connection_manager():
    """Connection manager whose cursor is a MagicMock."""
    cursor = MagicMock()
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    manager = MagicMock()
    manager.get_connection.return_value.__enter__.return_value = conn
    manager.cursor = cursor
    manager.conn = conn
    return manager


class TestCrisisEventRecord:
    """Tests for record construction."""

    def test_from_assessment_hashes_user_id(self):
        record = CrisisEventRecord.from_assessment("user_123", make_assessment(), "sess_1")

        assert record.user_id_hash == hash_pii("user_123")
        assert record.user_id_hash != "user_123"
        assert record.level == CrisisLevel.HIGH
        assert record.triggers == ["suicidal"]
        assert record.session_id == "sess_1"

    def test_missing_session_uses_default(self):
        record = CrisisEventRecord.from_assessment("user_123", make_assessment())

        assert record.session_id == "default"


class TestInMemoryRiskHistory:
    """Tests for the process-local history."""

    @pytest.mark.asyncio
    async def test_counts_events_inside_window(self):
        history = InMemoryRiskHistory()
        history.add(make_record("user_123", days_ago=1))
        history.add(make_record("user_123", days_ago=3))
        history.add(make_record("user_123", days_ago=10))

        assert await history.recent_crisis_count("user_123", window_days=7) == 2

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_events(self):
        history = InMemoryRiskHistory()

        assert await history.recent_crisis_count("nobody", window_days=7) == 0

    @pytest.mark.asyncio
    async def test_record_detected_assessment(self):
        history = InMemoryRiskHistory()

        await history.record_crisis_event("user_123", make_assessment(), "sess_1")

        assert await history.recent_crisis_count("user_123", window_days=7) == 1

    @pytest.mark.asyncio
    async def test_non_detection_not_recorded(self):
        history = InMemoryRiskHistory()

        await history.record_crisis_event("user_123", CrisisAssessment.none())

        assert await history.recent_crisis_count("user_123", window_days=7) == 0


class TestCrisisHistoryRepository:
    """Tests for the PostgreSQL repository with a mocked connection."""

    def test_table_name(self, mock_connection_manager):
        repo = CrisisHistoryRepository(mock_connection_manager)

        assert repo.table_name == "crisis_events"

    def test_entity_to_params(self, mock_connection_manager):
        repo = CrisisHistoryRepository(mock_connection_manager)
        record = make_record("user_123", days_ago=0)

        params = repo._entity_to_params(record)

        assert params["user_id_hash"] == hash_pii("user_123")
        assert params["level"] == "high"
        assert json.loads(params["triggers"]) == ["suicidal"]

    @pytest.mark.asyncio
    async def test_recent_crisis_count_queries_hashed_id(self, mock_connection_manager):
        mock_connection_manager.cursor.fetchone.return_value = (2,)
        repo = CrisisHistoryRepository(mock_connection_manager)

        count = await repo.recent_crisis_count("user_123", window_days=7)

        assert count == 2
        args = mock_connection_manager.cursor.execute.call_args[0]
        assert args[1][0] == hash_pii("user_123")

    @pytest.mark.asyncio
    async def test_record_crisis_event_inserts_and_commits(self, mock_connection_manager):
        repo = CrisisHistoryRepository(mock_connection_manager)

        await repo.record_crisis_event("user_123", make_assessment(), "sess_1")

        sql = mock_connection_manager.cursor.execute.call_args[0][0]
        assert sql.startswith("INSERT INTO crisis_events")
        mock_connection_manager.conn.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_detection_skips_insert(self, mock_connection_manager):
        repo = CrisisHistoryRepository(mock_connection_manager)

        await repo.record_crisis_event("user_123", CrisisAssessment.none())

        mock_connection_manager.cursor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_releases_pool(self, mock_connection_manager):
        repo = CrisisHistoryRepository(mock_connection_manager)

        await repo.close()

        mock_connection_manager.close.assert_called_once()
