"""User risk history - recent crisis events per user.

History is consulted only to escalate an existing detection; it never
originates one. Two implementations:
- InMemoryRiskHistory: process-local, for tests and single-node hosts
- CrisisHistoryRepository: PostgreSQL table `crisis_events`

User identifiers are stored hashed (hash_pii), never raw.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from mindwell.shared.database import BaseRepository, ConnectionManager
from mindwell.shared.models import CrisisAssessment, CrisisLevel, DEFAULT_SESSION
from mindwell.shared.utils import hash_pii

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrisisEventRecord:
    """One persisted crisis detection."""
    user_id_hash: str
    level: CrisisLevel
    triggers: List[str]
    confidence: float
    session_id: str = DEFAULT_SESSION
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_assessment(
        cls,
        user_id: str,
        assessment: CrisisAssessment,
        session_id: Optional[str] = None,
    ) -> "CrisisEventRecord":
        return cls(
            user_id_hash=hash_pii(user_id),
            level=assessment.level,
            triggers=assessment.trigger_names,
            confidence=assessment.confidence,
            session_id=session_id or DEFAULT_SESSION,
            created_at=assessment.computed_at,
        )


class RiskHistory(ABC):
    """Interface consumed by the orchestrator."""

    @abstractmethod
    async def recent_crisis_count(self, user_id: str, window_days: int) -> int:
        """Number of crisis events for user_id within the trailing window."""
        pass

    @abstractmethod
    async def record_crisis_event(
        self,
        user_id: str,
        assessment: CrisisAssessment,
        session_id: Optional[str] = None,
    ) -> None:
        """Persist a detected crisis."""
        pass

    async def close(self) -> None:
        """Release any held resources. Call during shutdown."""
        return None


class InMemoryRiskHistory(RiskHistory):
    """Process-local history keyed by hashed user id."""

    def __init__(self):
        self._events: Dict[str, List[CrisisEventRecord]] = defaultdict(list)

    async def recent_crisis_count(self, user_id: str, window_days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=window_days)
        events = self._events.get(hash_pii(user_id), [])
        return sum(1 for event in events if event.created_at >= cutoff)

    async def record_crisis_event(
        self,
        user_id: str,
        assessment: CrisisAssessment,
        session_id: Optional[str] = None,
    ) -> None:
        if not assessment.detected:
            return
        self.add(CrisisEventRecord.from_assessment(user_id, assessment, session_id))

    def add(self, record: CrisisEventRecord) -> None:
        """Insert a pre-built record (used to seed history)."""
        self._events[record.user_id_hash].append(record)


class CrisisHistoryRepository(BaseRepository[CrisisEventRecord], RiskHistory):
    """PostgreSQL-backed crisis history.

    Expected schema:
        CREATE TABLE crisis_events (
            user_id_hash  CHAR(64)    NOT NULL,
            level         VARCHAR(16) NOT NULL,
            triggers      JSONB       NOT NULL,
            confidence    REAL        NOT NULL,
            session_id    VARCHAR(128),
            created_at    TIMESTAMPTZ NOT NULL
        );

    psycopg2 is blocking, so the async interface runs each query in a
    worker thread.
    """

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "crisis_events")

    def _entity_to_params(self, entity: CrisisEventRecord) -> Dict[str, Any]:
        return {
            "user_id_hash": entity.user_id_hash,
            "level": entity.level.value,
            "triggers": json.dumps(entity.triggers),
            "confidence": entity.confidence,
            "session_id": entity.session_id,
            "created_at": entity.created_at,
        }

    def count_recent(self, user_id_hash: str, window_days: int) -> int:
        """Synchronous count of events newer than the trailing window."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=window_days)
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT COUNT(*) FROM {self.table_name}
                    WHERE user_id_hash = %s AND created_at >= %s
                    """,
                    (user_id_hash, cutoff)
                )
                row = cur.fetchone()
                return row[0] if row else 0

    async def recent_crisis_count(self, user_id: str, window_days: int) -> int:
        return await asyncio.to_thread(self.count_recent, hash_pii(user_id), window_days)

    async def close(self) -> None:
        await asyncio.to_thread(self.connection_manager.close)

    async def record_crisis_event(
        self,
        user_id: str,
        assessment: CrisisAssessment,
        session_id: Optional[str] = None,
    ) -> None:
        if not assessment.detected:
            return
        record = CrisisEventRecord.from_assessment(user_id, assessment, session_id)
        await asyncio.to_thread(self.insert, record)

        logger.info(
            "CRISIS_EVENT_RECORDED",
            extra={
                "user_id_hash": record.user_id_hash,
                "level": record.level.value,
                "session_id": record.session_id,
            }
        )
