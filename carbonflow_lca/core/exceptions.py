"""Custom exception hierarchy for the LCA calculation core."""

from __future__ import annotations


class LCAError(Exception):
    """Base error for the carbonflow LCA core."""


class ValidationError(LCAError):
    """Raised when a product system fails structural checks before inventory work."""

    def __init__(self, errors: list[str], context: str | None = None) -> None:
        self.context = context or "Calculation context"
        self.errors = list(errors)
        if len(self.errors) == 1:
            message = f"{self.context} failed validation: {self.errors[0]}"
        else:
            message = f"{self.context} failed validation:\n- " + "\n- ".join(self.errors)
        super().__init__(message)


class ComputationError(LCAError):
    """Raised when a calculation step cannot complete."""

    def __init__(self, step_id: str, message: str) -> None:
        self.step_id = step_id
        super().__init__(f"{step_id}: {message}")


class ConfigurationError(LCAError):
    """Raised when a configuration cannot be built or selected."""


class SessionNotFoundError(LCAError, KeyError):
    """Raised when a calculation session id is unknown."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Calculation session not found: {session_id}")

    def __str__(self) -> str:
        return self.args[0]


class CalculationCancelledError(LCAError):
    """Raised inside a session once its cancellation token is set."""


class FactorLookupError(LCAError):
    """Raised when the remote characterization factor service fails."""
