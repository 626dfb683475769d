"""Pod phase observation and readiness reduction."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence


class Phase(str, Enum):
    """Kubernetes pod phases."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Phase":
        if not value:
            return cls.UNKNOWN
        for phase in cls:
            if phase.value.lower() == value.strip().lower():
                return phase
        return cls.UNKNOWN


@dataclass(frozen=True)
class ProcessStatus:
    name: str
    phase: Phase
    namespace: str = "default"

    def __str__(self) -> str:
        return f"{self.name}={self.phase.value}"


class ClusterControl(Protocol):
    def list_processes(self, namespace: str, label_selector: str = "") -> list[ProcessStatus]:
        ...

    def apply_definition(self, source: str, namespace: Optional[str] = None, *, mode: str = "create") -> str:
        ...


def all_in_phase(statuses: Iterable[ProcessStatus], phase: Phase) -> bool:
    """True when at least one status exists and every status is in ``phase``."""

    observed = list(statuses)
    if not observed:
        return False
    return all(status.phase is phase for status in observed)


def is_ready(control: ClusterControl, namespace: str, label_selector: str, target_phase: Phase) -> bool:
    return all_in_phase(control.list_processes(namespace, label_selector), target_phase)


class PodPhasePredicate:
    """Readiness predicate over the pods matching a namespace and selector.

    Pods left behind by earlier runs in the same namespace are counted too;
    they can hold readiness back or, if already in the target phase, mask
    pods that have not been scheduled yet.
    """

    def __init__(
        self,
        control: ClusterControl,
        namespace: str,
        label_selector: str = "",
        target_phase: Phase = Phase.RUNNING,
    ) -> None:
        self.control = control
        self.namespace = namespace
        self.label_selector = label_selector
        self.target_phase = target_phase
        self.last_statuses: Sequence[ProcessStatus] = ()
        selector = f" [{label_selector}]" if label_selector else ""
        self.description = f"pods in {namespace}{selector} {target_phase.value}"

    @property
    def last_observation(self) -> list[str]:
        return [str(status) for status in self.last_statuses]

    def check(self) -> bool:
        self.last_statuses = tuple(self.control.list_processes(self.namespace, self.label_selector))
        return all_in_phase(self.last_statuses, self.target_phase)
