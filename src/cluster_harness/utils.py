"""Utility functions."""
from __future__ import annotations

import json
import shutil
import socket
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, MutableMapping, Optional

import psutil

from .exceptions import ProvisioningError


@dataclass
class CommandResult:
    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(part.strip() for part in (self.stdout, self.stderr) if part.strip())


def run_command(
    command: list[str],
    *,
    timeout: int | None = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    process = subprocess.run(
        command,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        timeout=timeout,
        env=dict(env) if env is not None else None,
        check=False,
    )
    return CommandResult(command=command, returncode=process.returncode, stdout=process.stdout, stderr=process.stderr)


def which(command: str) -> Optional[str]:
    return shutil.which(command)


def write_json(path: Path, payload: Mapping[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True, default=str)


def read_json(path: Path) -> MutableMapping[str, object]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def free_port() -> int:
    """Ask the OS for an unused TCP port and release it immediately.

    The port is free at the time of the call only; another process may claim
    it before the caller binds it. Call again for every service.
    """

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("", 0))
        port = sock.getsockname()[1]
    if not 1 <= port <= 65535:
        raise ProvisioningError(f"OS returned an invalid port: {port}")
    return port


def resolve_ip_address() -> str:
    """Return the first non-loopback IPv4 address of this host."""

    for addresses in psutil.net_if_addrs().values():
        for address in addresses:
            if address.family != socket.AF_INET:
                continue
            if address.address.startswith("127."):
                continue
            return address.address
    raise ProvisioningError("unable to resolve IP address")
