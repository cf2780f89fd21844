"""Finalization waiter — confirm a broadcast by watching the sender's nonce.

A transaction is considered final once the sending account's sequence
counter (nonce) advances past the value sampled before broadcast. Polling
follows an exponential backoff schedule computed up front; every wait is
bounded and ends in :class:`FinalizationTimeoutError` when the budget runs
out.

Lifecycle: PENDING → CONFIRMED | TIMED_OUT
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, TypeVar

from airgap_tx.errors.definitions import FinalizationTimeoutError

if TYPE_CHECKING:
    from airgap_tx.chain.client import LedgerClient
    from airgap_tx.config.settings import FinalizeConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_BACKOFF = 1.5
DEFAULT_ATTEMPTS = 8


class FinalizationStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class FinalizationState:
    """Snapshot of a finalization wait.

    Attributes:
        address: Account whose sequence counter is watched.
        baseline: Counter value sampled before broadcast.
        attempts_made: Backoff rounds slept in the current wait.
        current_delay: Last delay slept (ms).
        elapsed_ms: Cumulative delay slept across all rounds.
        status: Current lifecycle status.
    """

    address: str
    baseline: int
    attempts_made: int = 0
    current_delay: int = 0
    elapsed_ms: int = 0
    status: FinalizationStatus = FinalizationStatus.PENDING


def backoff_schedule(
    initial_delay_ms: int,
    factor: float = DEFAULT_BACKOFF,
    attempts: int = DEFAULT_ATTEMPTS,
) -> tuple[int, ...]:
    """Delays (ms) for each round: d, ⌊d·f⌋, ⌊⌊d·f⌋·f⌋, …"""
    delays: list[int] = []
    delay = initial_delay_ms
    for _ in range(attempts):
        delays.append(delay)
        delay = math.floor(delay * factor)
    return tuple(delays)


class FinalizationWaiter:
    """Poll the ledger until a broadcast transaction has observably landed.

    Assumes at most one in-flight transaction per address.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        initial_delay_ms: int = 1000,
        backoff_factor: float = DEFAULT_BACKOFF,
        max_attempts: int = DEFAULT_ATTEMPTS,
        extra_blocks: int = 2,
        retries: int = 3,
        poll_interval_ms: int = 1000,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._schedule = backoff_schedule(initial_delay_ms, backoff_factor, max_attempts)
        self._extra_blocks = extra_blocks
        # At least one advance-and-confirm round always runs
        self._retries = max(retries, 1)
        self._poll_interval_ms = poll_interval_ms
        self._block_polls = max(max_attempts, 1) * max(extra_blocks, 1)
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, ledger: LedgerClient, config: FinalizeConfig, *, sleep: Sleep = asyncio.sleep
    ) -> FinalizationWaiter:
        return cls(
            ledger,
            initial_delay_ms=config.initial_delay_ms,
            backoff_factor=config.backoff_factor,
            max_attempts=config.max_attempts,
            extra_blocks=config.extra_blocks,
            retries=config.retries,
            poll_interval_ms=config.poll_interval_ms,
            sleep=sleep,
        )

    @property
    def schedule(self) -> tuple[int, ...]:
        return self._schedule

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def wait(self, address: str, action: Callable[[], Awaitable[T]]) -> T:
        """Run *action* (the broadcast) and wait for *address*'s nonce to advance.

        Returns:
            Whatever *action* returned.

        Raises:
            FinalizationTimeoutError: If the counter has not advanced after
                the whole backoff schedule.
        """
        baseline = await self._ledger.get_sequence_counter(address)
        result = await action()
        await self._await_advance(FinalizationState(address=address, baseline=baseline))
        return result

    async def wait_with_confirmations(
        self, address: str, action: Callable[[], Awaitable[T]]
    ) -> T:
        """Like :meth:`wait`, then wait ``extra_blocks`` blocks and re-check.

        If the counter reverted while waiting for the extra blocks, the
        wait restarts; after ``retries`` reverts the wait times out.
        """
        baseline = await self._ledger.get_sequence_counter(address)
        result = await action()
        state = FinalizationState(address=address, baseline=baseline)

        for retry in range(1, self._retries + 1):
            state = await self._await_advance(state)
            state = await self._await_blocks(state)
            if await self._advanced(state):
                return result
            logger.warning(
                "Nonce for %s reverted after %d retries, retrying again...", address, retry
            )
            state = replace(state, attempts_made=0, status=FinalizationStatus.PENDING)

        timed_out = replace(state, status=FinalizationStatus.TIMED_OUT)
        raise FinalizationTimeoutError(state.elapsed_ms, timed_out)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _advanced(self, state: FinalizationState) -> bool:
        return await self._ledger.get_sequence_counter(state.address) > state.baseline

    async def _await_advance(self, state: FinalizationState) -> FinalizationState:
        for attempt, delay in enumerate(self._schedule, start=1):
            if await self._advanced(state):
                return replace(state, status=FinalizationStatus.CONFIRMED)
            await self._sleep(delay / 1000)
            state = replace(
                state,
                attempts_made=attempt,
                current_delay=delay,
                elapsed_ms=state.elapsed_ms + delay,
            )
            logger.debug("Delay backoff %d ms (%d)", delay, attempt)

        if await self._advanced(state):
            return replace(state, status=FinalizationStatus.CONFIRMED)

        timed_out = replace(state, status=FinalizationStatus.TIMED_OUT)
        logger.warning(
            "No nonce change for %s after %d attempts (%d ms)",
            state.address,
            state.attempts_made,
            state.elapsed_ms,
        )
        raise FinalizationTimeoutError(state.elapsed_ms, timed_out)

    async def _await_blocks(self, state: FinalizationState) -> FinalizationState:
        start = await self._ledger.get_block_number()
        for _ in range(self._block_polls):
            if await self._ledger.get_block_number() - start >= self._extra_blocks:
                return state
            await self._sleep(self._poll_interval_ms / 1000)
            state = replace(state, elapsed_ms=state.elapsed_ms + self._poll_interval_ms)

        if await self._ledger.get_block_number() - start >= self._extra_blocks:
            return state
        timed_out = replace(state, status=FinalizationStatus.TIMED_OUT)
        raise FinalizationTimeoutError(state.elapsed_ms, timed_out)
