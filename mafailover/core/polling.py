# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Poll-until-converged helpers.

Every wait in a failover run (protection domain role/status, VM evacuation)
re-reads state at a fixed interval until a condition holds. The default
policy never gives up; a deadline or a poll budget can be configured, and a
CancelToken lets another caller stop the wait between two polls.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .exceptions import Cancelled, PollTimeout

T = TypeVar("T")

DEFAULT_POLL_INTERVAL_S = 15.0


class CancelToken:
    """Thread-safe cancellation flag shared between a wait and its owner."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled meanwhile."""
        return self._event.wait(max(0.0, seconds))


@dataclass(frozen=True)
class PollPolicy:
    """
    interval_s: sleep between two polls
    deadline_s: give up after this many seconds (None = never)
    max_polls:  give up after this many polls (None = never)
    """
    interval_s: float = DEFAULT_POLL_INTERVAL_S
    deadline_s: Optional[float] = None
    max_polls: Optional[int] = None

    def __post_init__(self) -> None:
        if self.interval_s < 0:
            raise ValueError(f"interval_s must be >= 0 (got {self.interval_s})")
        if self.deadline_s is not None and self.deadline_s <= 0:
            raise ValueError(f"deadline_s must be > 0 (got {self.deadline_s})")
        if self.max_polls is not None and self.max_polls < 1:
            raise ValueError(f"max_polls must be >= 1 (got {self.max_polls})")

    @property
    def bounded(self) -> bool:
        return self.deadline_s is not None or self.max_polls is not None


class Poller:
    """
    Runs poll loops under one policy.

    `sleep` and `clock` are injectable so tests can drive loops without
    waiting; when a CancelToken is given the sleep is interruptible.
    """

    def __init__(
        self,
        logger: logging.Logger,
        policy: Optional[PollPolicy] = None,
        *,
        cancel: Optional[CancelToken] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.logger = logger
        self.policy = policy or PollPolicy()
        self.cancel = cancel or CancelToken()
        self._sleep = sleep
        self._clock = clock

    def sleep(self, seconds: float) -> None:
        """Plain interruptible sleep (fixed waits between shutdown steps)."""
        self._check_cancel("sleep")
        if self._sleep is not None:
            self._sleep(seconds)
        elif self.cancel.wait(seconds):
            raise Cancelled(msg="Wait cancelled")

    def _check_cancel(self, what: str) -> None:
        if self.cancel.cancelled:
            raise Cancelled(msg=f"Cancelled while waiting for {what}")

    def until(
        self,
        probe: Callable[[], T],
        done: Callable[[T], bool],
        *,
        what: str,
        on_pending: Optional[Callable[[T, int], None]] = None,
    ) -> T:
        """
        Call `probe()` until `done(result)` is true and return that result.

        The first probe happens immediately, so an already converged state
        returns without sleeping. Exceptions raised by `probe` propagate.
        """
        started = self._clock()
        polls = 0

        while True:
            self._check_cancel(what)
            result = probe()
            polls += 1
            if done(result):
                self.logger.debug("%s converged after %d poll(s)", what, polls)
                return result

            if on_pending is not None:
                on_pending(result, polls)

            if self.policy.max_polls is not None and polls >= self.policy.max_polls:
                raise PollTimeout(
                    msg=f"Gave up waiting for {what} after {polls} poll(s)",
                    context={"polls": polls},
                )
            elapsed = self._clock() - started
            if self.policy.deadline_s is not None and elapsed >= self.policy.deadline_s:
                raise PollTimeout(
                    msg=f"Gave up waiting for {what} after {elapsed:.0f}s",
                    context={"polls": polls, "deadline_s": self.policy.deadline_s},
                )

            interval = self.policy.interval_s
            self.logger.info("Waiting %ss for %s (poll %d)", int(interval), what, polls)
            self.sleep(interval)
