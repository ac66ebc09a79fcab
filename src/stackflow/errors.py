"""Application-level exception types for stackflow."""

from __future__ import annotations


class StackflowError(Exception):
    """Base exception for stackflow."""


class ConfigurationError(StackflowError):
    """Base exception for configuration and registration errors."""


class UnknownFlowError(ConfigurationError):
    """Raised when a frame or outcome names a flow that is not registered."""


class DuplicateFlowError(ConfigurationError):
    """Raised when two flows are registered under the same name."""


class FlowDefinitionError(ConfigurationError):
    """Raised when a flow definition is malformed (no steps, duplicate step names)."""


class StepExecutionError(StackflowError):
    """Raised when a step or prompt fails unexpectedly.

    The turn that raised it is aborted and the dialog stack is left as it was
    before the turn, so the same inbound event can be replayed.
    """

    def __init__(self, message: str, *, flow: str | None = None, step: str | None = None) -> None:
        super().__init__(message)
        self.flow = flow
        self.step = step


class StackUnderflowError(StackflowError):
    """Raised when popping a frame from an empty dialog stack."""


class TokenLeakError(StackflowError):
    """Raised when a token would be written into persisted frame values."""


class AuthDeclined(StackflowError):
    """The user cancelled the sign-in or let it time out."""


class AuthExpired(AuthDeclined):
    """The token capability had no usable token at the point of use."""


class MalformedCommand(StackflowError):
    """Command text that could not be classified.

    The parser never raises this; unknown input is classified as ``other``.
    """


class GraphApiError(StackflowError):
    """Raised when a downstream Graph API call returns an error response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"graph api error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
