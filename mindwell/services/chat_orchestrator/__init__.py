"""Chat Orchestrator: turns one utterance into one ChatTurnResult.

Components:
- config.py: OrchestratorConfig (environment driven)
- telemetry.py: Logging and Kinesis telemetry sinks
- orchestrator.py: ChatOrchestrator and build_orchestrator()

Usage:
    from mindwell.services.chat_orchestrator import build_orchestrator
    from mindwell.shared.models import Utterance

    orchestrator = build_orchestrator()
    result = await orchestrator.handle_turn(Utterance(text="hi", user_id="u-1"))
"""

from .config import OrchestratorConfig
from .telemetry import (
    TelemetryEvent,
    TelemetrySink,
    LoggingTelemetrySink,
    KinesisTelemetrySink,
)
from .orchestrator import ChatOrchestrator, build_orchestrator

__all__ = [
    "OrchestratorConfig",
    "TelemetryEvent",
    "TelemetrySink",
    "LoggingTelemetrySink",
    "KinesisTelemetrySink",
    "ChatOrchestrator",
    "build_orchestrator",
]
