"""Exception hierarchy shared by the scheduler, the case pipelines and sessions."""

from __future__ import annotations


class MedSimError(RuntimeError):
    """Base class for every domain failure raised by the core."""


class InferenceFailure(MedSimError):
    """Raised when a provider call fails (transport, timeout or malformed response).

    The originating exception, when there is one, is kept on ``cause`` so the
    scheduler can log it after the exception chain has been flattened.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class CaseValidationError(MedSimError):
    """Raised when a generated case payload violates the case schema."""

    def __init__(self, rule: str) -> None:
        super().__init__(rule)
        self.rule = rule


class SessionStateError(MedSimError):
    """Raised when a session operation is not allowed in the current state."""


__all__ = ["CaseValidationError", "InferenceFailure", "MedSimError", "SessionStateError"]
