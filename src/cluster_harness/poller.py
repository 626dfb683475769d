"""Bounded readiness polling.

A wait evaluates a :class:`ReadinessPredicate` immediately and then once per
``interval_s`` until it reports ready, the ``timeout_s`` budget is spent, or
the predicate signals that its dependency is unreachable. The poller itself
never touches environment state; everything it knows comes from the
predicate.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .config import PollPolicy
from .exceptions import FatalQueryError, ReadinessTimeout, TransientQueryError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@runtime_checkable
class ReadinessPredicate(Protocol):
    description: str
    last_observation: Any

    def check(self) -> bool:
        ...


class CallablePredicate:
    """Adapt a plain ``() -> bool`` function to :class:`ReadinessPredicate`."""

    def __init__(self, fn: Callable[[], bool], description: str = "condition") -> None:
        self._fn = fn
        self.description = description
        self.last_observation: Any = None

    def check(self) -> bool:
        result = bool(self._fn())
        self.last_observation = result
        return result


@dataclass(frozen=True)
class PollOutcome:
    success: bool
    attempts: int
    elapsed_s: float
    last_error: Optional[BaseException] = None
    last_observation: Any = None


def wait_for(
    predicate: ReadinessPredicate,
    policy: PollPolicy,
    *,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> PollOutcome:
    start = clock()
    deadline = start + policy.timeout_s
    attempts = 0
    last_error: Optional[BaseException] = None

    while True:
        attempts += 1
        try:
            ready = predicate.check()
        except TransientQueryError as exc:
            logger.debug("%s: transient query failure on attempt %d: %s", predicate.description, attempts, exc)
            last_error = exc
            ready = False
        except FatalQueryError as exc:
            logger.warning("%s: aborting wait, dependency unreachable: %s", predicate.description, exc)
            return PollOutcome(
                success=False,
                attempts=attempts,
                elapsed_s=clock() - start,
                last_error=exc,
                last_observation=predicate.last_observation,
            )

        if ready:
            logger.debug("%s: ready after %d attempts", predicate.description, attempts)
            if policy.settle_s:
                sleep(policy.settle_s)
            return PollOutcome(
                success=True,
                attempts=attempts,
                elapsed_s=clock() - start,
                last_error=last_error,
                last_observation=predicate.last_observation,
            )

        logger.debug(
            "%s: not ready (attempt %d, observed %s)", predicate.description, attempts, predicate.last_observation
        )
        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(policy.interval_s, remaining))
        if clock() >= deadline:
            break

    return PollOutcome(
        success=False,
        attempts=attempts,
        elapsed_s=clock() - start,
        last_error=last_error,
        last_observation=predicate.last_observation,
    )


def require(
    predicate: ReadinessPredicate,
    policy: PollPolicy,
    *,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> PollOutcome:
    """Like :func:`wait_for` but raise on failure.

    An aborted wait re-raises the :class:`FatalQueryError` that stopped it;
    an exhausted budget raises :class:`ReadinessTimeout`.
    """

    outcome = wait_for(predicate, policy, clock=clock, sleep=sleep)
    if not outcome.success and isinstance(outcome.last_error, FatalQueryError):
        raise outcome.last_error
    if not outcome.success:
        raise ReadinessTimeout(
            predicate.description,
            timeout=policy.timeout_s,
            attempts=outcome.attempts,
            last_observation=outcome.last_observation,
            last_error=outcome.last_error,
        )
    return outcome
