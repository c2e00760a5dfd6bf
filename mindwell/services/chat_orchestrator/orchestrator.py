"""Chat orchestrator - one inbound utterance to one ChatTurnResult.

Turn states:
    RECEIVED -> ASSESSING (risk || sentiment) -> CONTEXT_LOADED -> COMPOSED
    -> GENERATING -> CONTEXT_APPENDED -> RECOMMENDED -> DONE

The whole turn runs under one deadline. A missed deadline or an
unexpected failure after validation ends in SAFE_DEGRADED: the static
fallback reply plus whatever assessments were already computed. The
only exception handle_turn raises is InvalidUtterance; cancellation by
the host propagates unchanged.

Crisis-event recording and telemetry run in the background after the
result is built and never delay or fail the turn.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Coroutine, Dict, List, Optional, Set

from mindwell.shared.database import ConnectionManager, DatabaseConfig
from mindwell.shared.errors import DeadlineExceeded
from mindwell.shared.models import (
    ChatTurnResult,
    ConversationTurn,
    CrisisAssessment,
    DEFAULT_SESSION,
    HistorySummary,
    ProviderResponse,
    Role,
    SentimentAssessment,
    TurnState,
    Utterance,
)
from mindwell.shared.utils import configure_pii_salt, hash_pii, hash_text_for_audit
from mindwell.services.context_service import ContextStore
from mindwell.services.llm_service import (
    FALLBACK_PROVIDER_ID,
    PromptComposer,
    ProviderClient,
    ProviderFallbackChain,
    create_provider,
)
from mindwell.services.recommendation_service import RecommendationEngine
from mindwell.services.safety_service import (
    CrisisHistoryRepository,
    InMemoryRiskHistory,
    RiskAggregator,
    RiskHistory,
)
from mindwell.services.sentiment_service import SentimentAggregator
from .config import OrchestratorConfig
from .telemetry import (
    CRISIS_DETECTED,
    FALLBACK_TRIGGERED,
    PROVIDER_TIER_USED,
    KinesisTelemetrySink,
    LoggingTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
)

logger = logging.getLogger(__name__)


@dataclass
class _TurnProgress:
    """Partial results of one turn, kept so a degraded result can reuse them."""
    utterance: Utterance
    state: TurnState = TurnState.RECEIVED
    crisis: Optional[CrisisAssessment] = None
    sentiment: Optional[SentimentAssessment] = None


class ChatOrchestrator:
    """Sequences assessment, context, generation and recommendations.

    Holds no per-turn state between calls; concurrent turns for the same
    key are serialized only at the context store.
    """

    def __init__(
        self,
        risk: RiskAggregator,
        sentiment: SentimentAggregator,
        context: ContextStore,
        composer: PromptComposer,
        chain: ProviderFallbackChain,
        recommender: Optional[RecommendationEngine] = None,
        history: Optional[RiskHistory] = None,
        telemetry: Optional[TelemetrySink] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.risk = risk
        self.sentiment = sentiment
        self.context = context
        self.composer = composer
        self.chain = chain
        self.recommender = recommender or RecommendationEngine()
        self.history = history
        self.telemetry = telemetry or LoggingTelemetrySink()
        self.config = config or OrchestratorConfig()

        self.stats = {
            "messages_processed": 0,
            "crisis_detected": 0,
            "ai_responses": 0,
            "fallback_responses": 0,
        }
        self._background: Set[asyncio.Task] = set()

        logger.info(
            "CHAT_ORCHESTRATOR_INITIALIZED",
            extra={
                "provider_tiers": chain.registered,
                "context_mode": context.mode,
                "history_enabled": history is not None,
                "turn_deadline_seconds": self.config.turn_deadline_seconds,
            }
        )

    async def handle_turn(self, utterance: Utterance) -> ChatTurnResult:
        """Handle one utterance end to end.

        Args:
            utterance: Inbound user message

        Returns:
            ChatTurnResult with a non-empty reply, always

        Raises:
            InvalidUtterance: If the utterance violates the caller contract
        """
        utterance.validate(self.config.max_utterance_chars)

        start_time = time.perf_counter()
        progress = _TurnProgress(utterance=utterance)
        user_id_hash = hash_pii(utterance.user_id)

        logger.info(
            "TURN_RECEIVED",
            extra={
                "user_id_hash": user_id_hash,
                "session_id": utterance.session_id or DEFAULT_SESSION,
                "text_hash": hash_text_for_audit(utterance.text),
                "message_length": len(utterance.text),
            }
        )

        try:
            result = await asyncio.wait_for(
                self._run(progress, start_time),
                timeout=self.config.turn_deadline_seconds,
            )
        except asyncio.TimeoutError:
            reason = DeadlineExceeded(
                f"turn exceeded {self.config.turn_deadline_seconds}s in state {progress.state.value}"
            )
            logger.warning(
                "TURN_DEADLINE_EXCEEDED",
                extra={
                    "user_id_hash": user_id_hash,
                    "state": progress.state.value,
                    "deadline_seconds": self.config.turn_deadline_seconds,
                }
            )
            result = self._degraded(progress, start_time, reason)
        except Exception as e:
            logger.error(
                "TURN_FAILED",
                extra={
                    "user_id_hash": user_id_hash,
                    "state": progress.state.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            result = self._degraded(progress, start_time, e)

        self._finish(utterance, user_id_hash, result)
        return result

    def handle_turn_sync(self, utterance: Utterance) -> ChatTurnResult:
        """Run one turn to completion from synchronous code.

        Background work started by the turn is drained before returning.
        """
        async def run() -> ChatTurnResult:
            result = await self.handle_turn(utterance)
            await self.drain()
            return result

        return asyncio.run(run())

    async def _run(self, progress: _TurnProgress, start_time: float) -> ChatTurnResult:
        utterance = progress.utterance

        progress.state = TurnState.ASSESSING
        await asyncio.gather(
            self._assess_risk(progress),
            self._assess_sentiment(progress),
        )
        crisis, sentiment = progress.crisis, progress.sentiment

        context = await self.context.get(utterance.user_id, utterance.session_id)
        progress.state = TurnState.CONTEXT_LOADED

        payload = self.composer.compose(utterance.text, context, crisis, sentiment)
        progress.state = TurnState.COMPOSED

        progress.state = TurnState.GENERATING
        response = await self.chain.generate(payload)

        await self.context.append(
            utterance.user_id,
            utterance.session_id,
            ConversationTurn(role=Role.USER, text=utterance.text),
            ConversationTurn(role=Role.ASSISTANT, text=response.text),
        )
        progress.state = TurnState.CONTEXT_APPENDED

        recommendations = self.recommender.recommend(crisis, sentiment)
        emergency = self.recommender.emergency_resources(crisis)
        progress.state = TurnState.RECOMMENDED

        progress.state = TurnState.DONE
        return ChatTurnResult(
            reply=response.text,
            crisis=crisis,
            sentiment=sentiment,
            recommendations=recommendations,
            emergency_resources=emergency,
            provider_id=response.provider_id,
            session_id=utterance.session_id or DEFAULT_SESSION,
            state=TurnState.DONE,
            processing_ms=_elapsed_ms(start_time),
        )

    async def _assess_risk(self, progress: _TurnProgress) -> None:
        """Text pass and history lookup run together; history only escalates."""
        _, history = await asyncio.gather(
            self._assess_text(progress),
            self._history_summary(progress.utterance.user_id),
        )
        progress.crisis = self.risk.apply_history(progress.crisis, history)

    async def _assess_text(self, progress: _TurnProgress) -> None:
        text = progress.utterance.text
        try:
            progress.crisis = await asyncio.to_thread(self.risk.assess, text, None)
        except Exception as e:
            progress.crisis = self.risk.fail_closed(text, [f"aggregator failed: {e}"])

    async def _assess_sentiment(self, progress: _TurnProgress) -> None:
        try:
            progress.sentiment = await asyncio.to_thread(
                self.sentiment.assess, progress.utterance.text
            )
        except Exception as e:
            logger.warning(
                "SENTIMENT_ASSESSMENT_FAILED",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            progress.sentiment = SentimentAssessment.neutral()

    async def _history_summary(self, user_id: str) -> Optional[HistorySummary]:
        """Recent-crisis summary, or None when history is off, slow or unreachable."""
        if self.history is None:
            return None
        window_days = self.risk.weights.history_window_days
        try:
            count = await asyncio.wait_for(
                self.history.recent_crisis_count(user_id, window_days),
                timeout=self.config.history_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "HISTORY_LOOKUP_TIMED_OUT",
                extra={"timeout_seconds": self.config.history_timeout_seconds}
            )
            return None
        except Exception as e:
            logger.warning(
                "HISTORY_LOOKUP_FAILED",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return None
        return HistorySummary(recent_crisis_count=count, window_days=window_days)

    def _degraded(
        self,
        progress: _TurnProgress,
        start_time: float,
        reason: BaseException,
    ) -> ChatTurnResult:
        """SAFE_DEGRADED result from the static bank and any finished assessments."""
        utterance = progress.utterance
        crisis = progress.crisis
        if crisis is None:
            crisis = self.risk.fail_closed(utterance.text, [f"turn degraded: {reason}"])
        sentiment = progress.sentiment or SentimentAssessment.neutral()

        payload = self.composer.compose(utterance.text, [], crisis, sentiment)
        response: ProviderResponse = self.chain.static_response(payload)

        logger.warning(
            "TURN_SAFE_DEGRADED",
            extra={
                "failed_state": progress.state.value,
                "reason": type(reason).__name__,
                "crisis_level": crisis.level.value,
                "assessments_preserved": progress.crisis is not None,
            }
        )

        return ChatTurnResult(
            reply=response.text,
            crisis=crisis,
            sentiment=sentiment,
            recommendations=self.recommender.recommend(crisis, sentiment),
            emergency_resources=self.recommender.emergency_resources(crisis),
            provider_id=response.provider_id,
            session_id=utterance.session_id or DEFAULT_SESSION,
            state=TurnState.SAFE_DEGRADED,
            processing_ms=_elapsed_ms(start_time),
        )

    def _finish(self, utterance: Utterance, user_id_hash: str, result: ChatTurnResult) -> None:
        """Update counters and start background recording and telemetry."""
        self.stats["messages_processed"] += 1
        if result.crisis.detected:
            self.stats["crisis_detected"] += 1
        if result.provider_id == FALLBACK_PROVIDER_ID:
            self.stats["fallback_responses"] += 1
        else:
            self.stats["ai_responses"] += 1

        logger.info(
            "TURN_COMPLETED",
            extra={
                "user_id_hash": user_id_hash,
                "session_id": result.session_id,
                "state": result.state.value,
                "provider_id": result.provider_id,
                "crisis_level": result.crisis.level.value,
                "sentiment_label": result.sentiment.label.value,
                "processing_ms": result.processing_ms,
            }
        )

        if result.crisis.detected and self.history is not None:
            self._spawn(
                self.history.record_crisis_event(
                    utterance.user_id, result.crisis, utterance.session_id
                ),
                "record_crisis_event",
            )

        events = self._telemetry_events(user_id_hash, result)
        self._spawn(asyncio.to_thread(self.telemetry.emit_batch, events), "telemetry")

    def _telemetry_events(self, user_id_hash: str, result: ChatTurnResult) -> List[TelemetryEvent]:
        events: List[TelemetryEvent] = []
        if result.crisis.detected:
            events.append(TelemetryEvent(
                event_type=CRISIS_DETECTED,
                user_id_hash=user_id_hash,
                session_id=result.session_id,
                attributes={
                    "level": result.crisis.level.value,
                    "triggers": result.crisis.trigger_names,
                    "confidence": result.crisis.confidence,
                },
            ))
        if result.provider_id == FALLBACK_PROVIDER_ID:
            events.append(TelemetryEvent(
                event_type=FALLBACK_TRIGGERED,
                user_id_hash=user_id_hash,
                session_id=result.session_id,
                attributes={"state": result.state.value},
            ))
        else:
            events.append(TelemetryEvent(
                event_type=PROVIDER_TIER_USED,
                user_id_hash=user_id_hash,
                session_id=result.session_id,
                attributes={"tier": result.provider_id, "processing_ms": result.processing_ms},
            ))
        return events

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        level = logging.CRITICAL if task.get_name() == "record_crisis_event" else logging.ERROR
        logger.log(
            level,
            "BACKGROUND_TASK_FAILED",
            extra={
                "task": task.get_name(),
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )

    async def drain(self) -> None:
        """Wait for outstanding background work (shutdown and tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        """Service statistics for monitoring."""
        return {
            **self.stats,
            "provider_tiers": self.chain.registered,
            "context_mode": self.context.mode,
            "pending_background_tasks": len(self._background),
        }

    async def health_check(self) -> Dict[str, Any]:
        return {
            "context_store": await self.context.health_check(),
            "provider_tiers": self.chain.registered,
            "history_enabled": self.history is not None,
        }

    async def close(self) -> None:
        """Drain background work and release clients. Call during shutdown."""
        await self.drain()
        await self.chain.close()
        await self.context.close()
        if self.history is not None:
            await self.history.close()


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


def build_orchestrator(config: Optional[OrchestratorConfig] = None) -> ChatOrchestrator:
    """Wire concrete components from configuration.

    Raises:
        ValueError: If no PII salt is configured, or it is too short
    """
    config = config or OrchestratorConfig.from_env()
    if not config.pii_hash_salt:
        raise ValueError("PII_HASH_SALT must be set before the orchestrator can start")
    configure_pii_salt(config.pii_hash_salt)

    clients: List[ProviderClient] = []
    for provider_config in config.providers:
        try:
            clients.append(create_provider(provider_config))
        except ValueError as e:
            logger.error(
                "PROVIDER_INIT_FAILED",
                extra={"provider": provider_config.provider.value, "error": str(e)}
            )

    history: RiskHistory
    if config.crisis_history_db_enabled:
        history = CrisisHistoryRepository(ConnectionManager(DatabaseConfig.from_env()))
    else:
        history = InMemoryRiskHistory()

    telemetry: TelemetrySink
    if config.telemetry_enabled:
        telemetry = KinesisTelemetrySink(
            stream_name=config.telemetry_stream,
            region=config.telemetry_region,
        )
    else:
        telemetry = LoggingTelemetrySink()

    return ChatOrchestrator(
        risk=RiskAggregator(config=config.safety, weights=config.weights),
        sentiment=SentimentAggregator(),
        context=ContextStore.from_config(config.context),
        composer=PromptComposer(
            char_budget=config.prompt_char_budget,
            context_turns=config.prompt_context_turns,
        ),
        chain=ProviderFallbackChain.from_clients(clients),
        recommender=RecommendationEngine(),
        history=history,
        telemetry=telemetry,
        config=config,
    )
