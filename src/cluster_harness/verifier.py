"""HTTP status polling."""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from .config import PollPolicy
from .poller import Clock, Sleeper, wait_for


class HttpStatusPredicate:
    """Ready once ``url`` answers with ``expected_status``; network errors count as not yet."""

    def __init__(self, url: str, expected_status: int, client: httpx.Client) -> None:
        self.url = url
        self.expected_status = expected_status
        self.client = client
        self.description = f"GET {url} -> {expected_status}"
        self.last_observation: Any = None

    def check(self) -> bool:
        try:
            response = self.client.get(self.url)
        except httpx.HTTPError as exc:
            self.last_observation = f"{type(exc).__name__}: {exc}"
            return False
        self.last_observation = response.status_code
        return response.status_code == self.expected_status


def poll_until_status(
    url: str,
    expected_status: int,
    timeout_s: float,
    interval_s: float = 1.0,
    *,
    client: Optional[httpx.Client] = None,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> bool:
    policy = PollPolicy(timeout_s=timeout_s, interval_s=min(interval_s, timeout_s))
    owns_client = client is None
    http = client or httpx.Client(timeout=httpx.Timeout(5.0, connect=2.0))
    try:
        outcome = wait_for(HttpStatusPredicate(url, expected_status, http), policy, clock=clock, sleep=sleep)
    finally:
        if owns_client:
            http.close()
    return outcome.success
