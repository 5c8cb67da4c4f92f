"""Exception taxonomy for the chat pipeline."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for pipeline errors that map to an HTTP status."""

    status_code = 500


class InputValidationError(ChatError):
    status_code = 400


class RateLimited(ChatError):
    status_code = 429

    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AssistantDisabled(ChatError):
    """The operator kill switch was off at a checkpoint."""

    status_code = 503

    def __init__(self, checkpoint: str) -> None:
        super().__init__(f"Assistant disabled at checkpoint: {checkpoint}")
        self.checkpoint = checkpoint


class UpstreamRetrievalFailure(ChatError):
    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class GenerationFailure(ChatError):
    stage = "generation"


class PersistenceFailure(ChatError):
    """Raised by stores; callers log it and keep serving the reply."""
