"""Ephemeral kind cluster harness for end-to-end build scenarios."""

from .config import HarnessConfig, PollPolicy, apply_env_overrides, load_harness_config
from .exceptions import (
    CleanupError,
    DefinitionRejected,
    FatalQueryError,
    HarnessError,
    ProvisioningError,
    ReadinessTimeout,
    TransientQueryError,
    VerificationError,
)
from .observer import Phase, PodPhasePredicate, ProcessStatus, all_in_phase, is_ready
from .orchestrator import LifecycleOrchestrator, ScenarioContext, ScenarioResult, Stage
from .poller import CallablePredicate, PollOutcome, require, wait_for
from .verifier import HttpStatusPredicate, poll_until_status
from .workload import WorkloadDriver, render_definition

__all__ = [
    "CallablePredicate",
    "CleanupError",
    "DefinitionRejected",
    "FatalQueryError",
    "HarnessConfig",
    "HarnessError",
    "HttpStatusPredicate",
    "LifecycleOrchestrator",
    "Phase",
    "PodPhasePredicate",
    "PollOutcome",
    "PollPolicy",
    "ProcessStatus",
    "ProvisioningError",
    "ReadinessTimeout",
    "ScenarioContext",
    "ScenarioResult",
    "Stage",
    "TransientQueryError",
    "VerificationError",
    "WorkloadDriver",
    "all_in_phase",
    "apply_env_overrides",
    "is_ready",
    "load_harness_config",
    "poll_until_status",
    "render_definition",
    "require",
    "wait_for",
]
