"""Custom exception types for the cluster harness."""
from __future__ import annotations

from typing import Any, Optional


class HarnessError(RuntimeError):
    """Base class for harness failures."""


class PrerequisiteError(HarnessError):
    """Raised when required host tools are missing."""


class ProvisioningError(HarnessError):
    """Raised when the cluster or a container could not be created."""


class DefinitionRejected(HarnessError):
    """Raised when a workload definition cannot be rendered or is refused by the cluster."""


class TransientQueryError(HarnessError):
    """Raised when a status query fails in a way that may resolve on retry."""


class FatalQueryError(HarnessError):
    """Raised when the queried dependency is unreachable for the rest of the run."""


class CleanupError(HarnessError):
    """Raised by teardown steps. Logged by the orchestrator, never escalated."""


class ReadinessTimeout(HarnessError):
    """Raised when a readiness wait exhausts its budget."""

    def __init__(
        self,
        description: str,
        *,
        timeout: float,
        attempts: int,
        last_observation: Any = None,
        last_error: Optional[BaseException] = None,
    ) -> None:
        message = f"{description} not ready after {timeout:g}s ({attempts} attempts)"
        if last_observation is not None:
            message += f"; last observed: {last_observation}"
        if last_error is not None:
            message += f"; last error: {last_error}"
        super().__init__(message)
        self.description = description
        self.timeout = timeout
        self.attempts = attempts
        self.last_observation = last_observation
        self.last_error = last_error


class VerificationError(HarnessError, AssertionError):
    """Raised when the application never answered with the expected status."""
