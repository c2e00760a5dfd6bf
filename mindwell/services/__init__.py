"""Mindwell services.

One turn flows through them in this order:
- safety_service and sentiment_service score the utterance (in parallel)
- context_service supplies the bounded conversation window
- llm_service composes the prompt and walks the provider fallback chain
- recommendation_service derives recommendations and emergency resources
- chat_orchestrator sequences all of the above under one deadline
"""
