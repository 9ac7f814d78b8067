"""Error taxonomy for the chat flow.

Only InvalidInputError and GenerationFailedError ever reach the caller.
RetrievalDegradedError and EvaluationFailedError mark degraded paths; they
are logged with their code and the turn carries on.
"""
from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base class for chat flow errors with a stable code."""

    code = "CHAT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidInputError(ChatError):
    """Caller sent something the flow cannot process. No side effects."""

    code = "INVALID_INPUT"


class RetrievalDegradedError(ChatError):
    """Document retrieval failed; the turn continues without context."""

    code = "RETRIEVAL_DEGRADED"


class GenerationFailedError(ChatError):
    """The language model call failed. Nothing was persisted for the turn."""

    code = "GENERATION_FAILED"


class EvaluationFailedError(ChatError):
    """Background evaluation failed. The assistant turn stands unevaluated."""

    code = "EVALUATION_FAILED"
