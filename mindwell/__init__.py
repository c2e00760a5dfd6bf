"""Mindwell conversational-risk core.

Takes one user utterance and, within one request, scores it for crisis risk
and sentiment, loads bounded conversation context, obtains a reply from a
ranked chain of AI providers (with a deterministic static fallback), and
derives recommendations and emergency resources.

Entry point:
    from mindwell.services.chat_orchestrator import build_orchestrator
    orchestrator = build_orchestrator()
    result = await orchestrator.handle_turn(utterance)
"""

__version__ = "0.1.0"
