from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402

from cluster_harness.exceptions import CleanupError, DefinitionRejected, ProvisioningError  # noqa: E402
from cluster_harness.observer import Phase, ProcessStatus  # noqa: E402


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def pods(namespace: str, *phases: Phase) -> list[ProcessStatus]:
    return [ProcessStatus(name=f"pod-{index}", phase=phase, namespace=namespace) for index, phase in enumerate(phases)]


class FakeControl:
    """In-memory cluster: pod listings come from per-namespace callables."""

    def __init__(self, listings: Optional[Mapping[str, Callable[[], list[ProcessStatus]]]] = None) -> None:
        self.listings: Dict[str, Callable[[], list[ProcessStatus]]] = dict(listings or {})
        self.queries: List[tuple[str, str]] = []
        self.applied: List[dict[str, object]] = []
        self.reject: set[str] = set()

    def list_processes(self, namespace: str, label_selector: str = "") -> list[ProcessStatus]:
        self.queries.append((namespace, label_selector))
        listing = self.listings.get(namespace)
        return listing() if listing else []

    def apply_definition(self, source: str, namespace: Optional[str] = None, *, mode: str = "create") -> str:
        content = Path(source).read_text(encoding="utf-8") if Path(source).is_file() else None
        self.applied.append({"source": source, "namespace": namespace, "mode": mode, "content": content})
        if any(marker in source for marker in self.reject):
            raise DefinitionRejected(f"rejected {source}")
        return f"created {source}"


class FakeProvisioner:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail_start: set[str] = set()
        self.fail_remove: set[str] = set()
        self.fail_create = False
        self.fail_delete = False

    def create_cluster(self, name: str, ready_timeout_s: int, kubeconfig_path: Path) -> Path:
        self.calls.append(("create_cluster", name, ready_timeout_s))
        if self.fail_create:
            raise ProvisioningError(f"creating kind cluster {name}: boom")
        kubeconfig_path.parent.mkdir(parents=True, exist_ok=True)
        kubeconfig_path.write_text("apiVersion: v1\nkind: Config\n", encoding="utf-8")
        return kubeconfig_path

    def delete_cluster(self, name: str) -> None:
        self.calls.append(("delete_cluster", name))
        if self.fail_delete:
            raise CleanupError(f"deleting kind cluster {name}: boom")

    def start_container(self, name: str, image: str, port_bindings: Mapping[int, int]) -> str:
        self.calls.append(("start_container", name, image, dict(port_bindings)))
        if name in self.fail_start:
            raise ProvisioningError(f"starting container {name}: boom")
        return f"{name}-id"

    def remove_container(self, name: str) -> None:
        self.calls.append(("remove_container", name))
        if name in self.fail_remove:
            raise CleanupError(f"removing container {name}: boom")

    def named(self, operation: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == operation]


def port_sequence(ports: Iterable[int]) -> Callable[[], int]:
    iterator = iter(ports)
    return lambda: next(iterator)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def template(tmp_path: Path) -> Path:
    path = tmp_path / "taskrun.tmpl.yaml"
    path.write_text(
        "apiVersion: tekton.dev/v1beta1\nkind: TaskRun\nmetadata:\n  name: test-run\n"
        "spec:\n  outputs:\n    image: ${IMAGE_NAME}\n",
        encoding="utf-8",
    )
    return path
