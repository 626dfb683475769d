"""Host prerequisite validation."""
from __future__ import annotations

from typing import Dict, List, Sequence

from .exceptions import PrerequisiteError
from .utils import which

REQUIRED_COMMANDS = ("docker", "kind", "kubectl")


def validate_prerequisites(commands: Sequence[str] = REQUIRED_COMMANDS) -> Dict[str, object]:
    failures: List[str] = []
    report: Dict[str, object] = {"commands": []}
    for name in commands:
        resolved = which(name)
        report["commands"].append({"name": name, "present": resolved is not None, "path": resolved})
        if resolved is None:
            failures.append(f"Missing required command: {name}")
    if failures:
        raise PrerequisiteError("; ".join(failures))
    return report
