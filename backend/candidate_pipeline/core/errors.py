"""Error taxonomy shared by the transport layer and the pipeline components.

Every error carries a ``message`` that is safe to show to the operator.
The transport raises these; pipeline components catch them at the call
site and turn them into notices or error lists.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class FieldValidationError(PipelineError):
    """Local, pre-network validation failure with every problem collected."""

    default_message = "Please fix the highlighted fields."

    def __init__(self, errors: list[str], message: str | None = None) -> None:
        self.errors = list(errors)
        super().__init__(message)


class AuthenticationError(PipelineError):
    """Missing or rejected bearer token."""

    default_message = "Your session is not valid. Please sign in again."


class NotMatchedError(PipelineError):
    """The matching service found no candidates for the criteria."""

    default_message = "No candidates matched the given criteria."


class ServiceError(PipelineError):
    """Non-2xx response or a ``success: false`` envelope."""

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[str] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.errors = list(errors or [])
        self.status_code = status_code
        super().__init__(message or (self.errors[0] if self.errors else None))


class TransportError(PipelineError):
    """Network failure, transport timeout or an unparseable response."""

    default_message = "Could not reach the server. Check your connection and retry."


class ProcessingTimeoutError(PipelineError):
    """Background processing did not finish within the allowed window."""

    default_message = (
        "Processing is taking longer than expected. Please refresh the page and try again."
    )


class FieldsLockedError(PipelineError):
    """Shared intake fields were edited after they were locked."""

    default_message = "These fields were already submitted and can no longer be changed."


class InvalidTransitionError(PipelineError):
    """An action was requested in a state that does not allow it."""

    default_message = "That action is not available right now."
