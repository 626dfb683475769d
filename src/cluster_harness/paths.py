"""Helpers for computing the harness directory structure."""
from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path


@dataclass(slots=True)
class HarnessPaths:
    root: Path

    @property
    def logs(self) -> Path:
        return self.root / "logs"

    @property
    def state(self) -> Path:
        return self.root / "state"

    def ensure(self) -> None:
        for path in (self.logs, self.state):
            path.mkdir(parents=True, exist_ok=True)


@dataclass(slots=True)
class RunContext:
    paths: HarnessPaths
    run_id: str

    @classmethod
    def create(cls, paths: HarnessPaths, run_id: str | None = None) -> "RunContext":
        paths.ensure()
        resolved_run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        return cls(paths=paths, run_id=resolved_run_id)

    @property
    def run_dir(self) -> Path:
        return self.paths.logs / self.run_id

    @property
    def stage_log_path(self) -> Path:
        return self.run_dir / "stages.jsonl"

    @property
    def cleanup_log_path(self) -> Path:
        return self.run_dir / "cleanup.jsonl"

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"

    def kubeconfig_path(self, cluster_name: str) -> Path:
        return self.paths.state / f"kind-config-{cluster_name}"

    def ensure_run_dirs(self) -> None:
        self.run_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class ScratchDir:
    """Per-run temporary directory for generated workload definitions."""

    path: Path
    removed: bool = field(default=False)

    @classmethod
    def create(cls, prefix: str = "integration-test") -> "ScratchDir":
        return cls(Path(tempfile.mkdtemp(prefix=f"{prefix}-")))

    def remove(self) -> None:
        if self.removed:
            return
        shutil.rmtree(self.path)
        self.removed = True
