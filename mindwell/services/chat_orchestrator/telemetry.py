"""Telemetry sink for per-turn operational events.

Event types:
- provider_tier_used: a provider tier produced the reply
- fallback_triggered: the static bank produced the reply
- crisis_detected: risk was detected for the utterance

Sinks never raise. A telemetry failure must not affect the reply, so
failures are logged (CRITICAL for crisis events) and reported as False.
"""
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import boto3

logger = logging.getLogger(__name__)

PROVIDER_TIER_USED = "provider_tier_used"
FALLBACK_TRIGGERED = "fallback_triggered"
CRISIS_DETECTED = "crisis_detected"


@dataclass(frozen=True)
class TelemetryEvent:
    """One operational event. Carries hashed identifiers only."""
    event_type: str
    user_id_hash: str
    session_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "source": "mindwell-orchestrator",
            "data": {
                "user_id_hash": self.user_id_hash,
                "session_id": self.session_id,
                **self.attributes,
            },
        }


class TelemetrySink(ABC):
    """Destination for telemetry events."""

    @abstractmethod
    def emit(self, event: TelemetryEvent) -> bool:
        """Deliver one event. Returns True on success, never raises."""
        pass

    def emit_batch(self, events: Sequence[TelemetryEvent]) -> int:
        """Deliver several events. Returns the number delivered."""
        return sum(1 for event in events if self.emit(event))


class LoggingTelemetrySink(TelemetrySink):
    """Writes events to the application log. Used for local development."""

    def emit(self, event: TelemetryEvent) -> bool:
        level = logging.CRITICAL if event.event_type == CRISIS_DETECTED else logging.INFO
        logger.log(level, "TELEMETRY_EVENT", extra={"payload": event.to_payload()})
        return True


class KinesisTelemetrySink(TelemetrySink):
    """Publishes events to a Kinesis stream.

    Records are partitioned by hashed user id so one user's events stay on
    one shard. When the client cannot be created, events are written to the
    log instead.
    """

    def __init__(
        self,
        stream_name: str = "mindwell-telemetry",
        enabled: bool = True,
        region: Optional[str] = None,
        client: Any = None,
    ):
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = client

        logger.info(
            "TELEMETRY_SINK_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "region": self.region,
            }
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of the Kinesis client."""
        if self._kinesis_client is None and self.enabled:
            try:
                self._kinesis_client = boto3.client("kinesis", region_name=self.region)
            except Exception as e:
                logger.error("KINESIS_CLIENT_INIT_FAILED", extra={"error": str(e)})
        return self._kinesis_client

    def emit(self, event: TelemetryEvent) -> bool:
        if not self.enabled:
            return False

        payload = event.to_payload()
        client = self.kinesis_client
        if client is None:
            self._log_undelivered(event, payload, "kinesis_client_unavailable")
            return False

        try:
            response = client.put_record(
                StreamName=self.stream_name,
                Data=json.dumps(payload),
                PartitionKey=event.user_id_hash,
            )
        except Exception as e:
            self._log_undelivered(event, payload, f"{type(e).__name__}: {e}")
            return False

        logger.debug(
            "TELEMETRY_EVENT_PUBLISHED",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "shard_id": response.get("ShardId"),
                "sequence_number": response.get("SequenceNumber"),
            }
        )
        return True

    def emit_batch(self, events: Sequence[TelemetryEvent]) -> int:
        if not self.enabled or not events:
            return 0

        client = self.kinesis_client
        if client is None:
            for event in events:
                self._log_undelivered(event, event.to_payload(), "kinesis_client_unavailable")
            return 0

        records = [
            {
                "Data": json.dumps(event.to_payload()),
                "PartitionKey": event.user_id_hash,
            }
            for event in events
        ]

        try:
            response = client.put_records(StreamName=self.stream_name, Records=records)
        except Exception as e:
            for event in events:
                self._log_undelivered(event, event.to_payload(), f"{type(e).__name__}: {e}")
            return 0

        failed: List[TelemetryEvent] = [
            event
            for event, result in zip(events, response.get("Records", []))
            if result.get("ErrorCode")
        ]
        for event in failed:
            self._log_undelivered(event, event.to_payload(), "record_rejected")

        delivered = len(events) - response.get("FailedRecordCount", len(failed))
        logger.debug(
            "TELEMETRY_BATCH_PUBLISHED",
            extra={"total": len(events), "delivered": delivered}
        )
        return delivered

    def _log_undelivered(self, event: TelemetryEvent, payload: Dict[str, Any], reason: str) -> None:
        # Crisis events must reach a human even when the stream is down
        if event.event_type == CRISIS_DETECTED:
            logger.critical(
                "CRISIS_TELEMETRY_FALLBACK_LOG",
                extra={
                    "event_id": event.event_id,
                    "payload": json.dumps(payload),
                    "reason": reason,
                    "action": "MANUAL_PROCESSING_REQUIRED",
                }
            )
        else:
            logger.warning(
                "TELEMETRY_PUBLISH_FAILED",
                extra={"event_id": event.event_id, "event_type": event.event_type, "reason": reason}
            )
