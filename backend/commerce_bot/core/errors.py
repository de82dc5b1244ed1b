"""
Error taxonomy for the dialogue core.

Every error carries a short ``error_id`` so that the Spanish reply shown to the
customer and the log line written for operators can be correlated.
"""
import uuid


def new_error_id() -> str:
    return uuid.uuid4().hex[:8]


class ChatbotError(Exception):
    def __init__(self, message: str = "", error_id: str | None = None):
        super().__init__(message)
        self.error_id = error_id or new_error_id()


class ValidationError(ChatbotError):
    """User input failed a step's format rule. Recovered by re-prompting."""

    def __init__(self, field: str, message: str = ""):
        super().__init__(message or f"invalid {field}")
        self.field = field


class NotFoundError(ChatbotError):
    """A catalog, customer or bank lookup came back empty."""


class CollaboratorError(ChatbotError):
    """An external lookup or submission failed or timed out."""


class StateError(ChatbotError):
    """A context-locked turn cannot continue with the data the session holds."""


class InvalidTransition(StateError):
    def __init__(self, source, target):
        super().__init__(f"transition {source} -> {target} is not allowed")
        self.source = source
        self.target = target
