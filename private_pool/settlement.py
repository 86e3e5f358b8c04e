"""Bounded waiting for submitted transactions to settle."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from .config import SettlementPolicy
from .errors import LedgerError, LedgerUnavailable, SettlementTimeout

logger = logging.getLogger(__name__)

Check = Callable[[], Awaitable[bool]]


class SettlementWaiter:
    """
    Resynchronize the ledger and re-run `check` until it holds.

    Polling backs off between attempts and never runs more often than the
    policy's `min_interval`. When the policy's timeout passes first,
    SettlementTimeout names what was being awaited.
    """

    def __init__(self, ledger, policy: SettlementPolicy, *,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self._ledger = ledger
        self.policy = policy
        self._sleep = sleep
        self._clock = clock

    async def wait_for(self, check: Check, awaiting: str) -> int:
        """Return the number of polls it took for `check` to pass."""
        started = self._clock()
        deadline = started + self.policy.timeout
        interval = self.policy.interval
        attempts = 0

        while True:
            attempts += 1
            try:
                height = await self._ledger.sync()
                ready = await check()
            except LedgerError as exc:
                raise LedgerUnavailable(f"Ledger failed while waiting for {awaiting}: {exc}") from exc

            if ready:
                logger.debug("Settled %s at height %s after %d poll(s)", awaiting, height, attempts)
                return attempts

            remaining = deadline - self._clock()
            if remaining < self.policy.min_interval:
                raise SettlementTimeout(awaiting, attempts, self._clock() - started)

            delay = min(interval, remaining)
            logger.debug("Waiting %.2fs for %s (poll %d)", delay, awaiting, attempts)
            await self._sleep(delay)
            interval = min(interval * self.policy.backoff, self.policy.max_interval)
