"""Error taxonomy for the conversational-risk core.

Only InvalidUtterance is allowed to escape the orchestrator. Every other
error is recovered locally by the component that owns it.
"""


class MindwellError(Exception):
    """Base exception for core errors."""
    pass


class InvalidUtterance(MindwellError, ValueError):
    """Caller handed the core a malformed utterance (contract violation)."""
    pass


class ExtractorFailure(MindwellError):
    """A single signal extractor raised while scoring text."""

    def __init__(self, extractor: str, cause: BaseException):
        super().__init__(f"{extractor} failed: {cause}")
        self.extractor = extractor
        self.cause = cause


class ProviderError(MindwellError):
    """An upstream AI provider failed to produce a usable reply."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider


class ProviderTimeout(ProviderError):
    """Provider attempt exceeded its own timeout."""
    pass


class ProviderEmptyResponse(ProviderError):
    """Provider answered with an empty body (treated as a failure)."""
    pass


class AllProvidersExhausted(MindwellError):
    """Every configured provider failed. Resolved by the static fallback."""
    pass


class ContextStoreUnavailable(MindwellError):
    """Durable context backend could not be reached."""
    pass


class DeadlineExceeded(MindwellError):
    """The overall turn deadline elapsed."""
    pass
