# ============================================================================
# CONVERGENCE POLLER
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - State convergence polling
# PURPOSE: Poll an asynchronously-mutated resource until a terminal state
# CREATED: 18 OCT 2026
# ============================================================================
"""
Convergence Poller

Repeatedly queries a status function until the observed state is
terminal, a failure state short-circuits, the timeout elapses, or the
run is cancelled.

The poller never decides whether a timeout is fatal. It reports
timed_out=True and the owning step applies its declared tolerance
(see PollTolerance).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Collection, Optional, Union

from core.errors import ConvergenceFailedError
from orchestrator.context import Clock

logger = logging.getLogger(__name__)

StatusFn = Callable[[], Awaitable[Any]]
TerminalTest = Union[Callable[[Any], bool], Collection[Any]]


@dataclass
class PollResult:
    """Outcome of one poll_until call (the discarded Poll State)."""
    final_state: Any
    timed_out: bool
    cancelled: bool
    elapsed_seconds: float
    polls: int

    @property
    def converged(self) -> bool:
        return not self.timed_out and not self.cancelled


class ConvergencePoller:
    """Polls a status function on a clock."""

    def __init__(self, clock: Optional[Clock] = None, cancel_event: Optional[asyncio.Event] = None):
        self.clock = clock or Clock()
        self.cancel_event = cancel_event

    async def poll_until(
        self,
        status_fn: StatusFn,
        is_terminal: TerminalTest,
        interval: float,
        timeout: float,
        failure_states: Collection[Any] = (),
        describe: str = "resource",
    ) -> PollResult:
        """
        Poll until terminal, failed, timed out or cancelled.

        Args:
            status_fn: Async callable returning the current state
            is_terminal: Predicate, or a collection of acceptable states
            interval: Seconds between polls
            timeout: Total budget in seconds
            failure_states: States that abort polling with an error
            describe: Label for log messages

        Returns:
            PollResult

        Raises:
            ConvergenceFailedError: If a failure state is observed
        """
        if not callable(is_terminal):
            accepted = frozenset(is_terminal)
            is_terminal = accepted.__contains__

        start = self.clock.now()
        polls = 0

        while True:
            state = await status_fn()
            polls += 1
            elapsed = self.clock.now() - start

            if state in failure_states:
                logger.error(f"{describe} reached failure state '{state}' after {elapsed:.0f}s")
                raise ConvergenceFailedError(
                    f"{describe} reached failure state '{state}'", state=state
                )

            if is_terminal(state):
                logger.info(f"{describe} converged to '{state}' after {elapsed:.0f}s ({polls} polls)")
                return PollResult(state, False, False, elapsed, polls)

            remaining = timeout - elapsed
            if remaining <= 0:
                logger.warning(
                    f"Timeout waiting for {describe} after {elapsed:.0f}s (last state={state})"
                )
                return PollResult(state, True, False, elapsed, polls)

            wait = min(interval, remaining)
            logger.info(f"{describe} state={state}; waiting {wait:.0f}s...")
            if await self.clock.sleep(wait, self.cancel_event):
                elapsed = self.clock.now() - start
                logger.warning(f"Polling {describe} cancelled after {elapsed:.0f}s (last state={state})")
                return PollResult(state, False, True, elapsed, polls)


__all__ = ["ConvergencePoller", "PollResult"]
