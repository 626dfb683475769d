"""Stage log and run summary helpers."""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from .paths import RunContext
from .utils import write_json


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def append_stage_log(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps({"time": _now(), **payload}, ensure_ascii=False, default=str) + "\n")


def read_stage_log(path: Path) -> list[Dict[str, Any]]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]


def record_run_summary(context: RunContext, payload: Dict[str, Any]) -> None:
    enriched = {
        "recorded_at": _now(),
        "pid": os.getpid(),
        "run_id": context.run_id,
        **payload,
    }
    write_json(context.summary_path, enriched)
