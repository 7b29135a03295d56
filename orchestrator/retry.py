# ============================================================================
# RETRY / BACKOFF POLICY
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Step-level retry
# PURPOSE: Re-invoke a step on TRANSIENT / NOT_READY within bounded budgets
# CREATED: 18 OCT 2026
# ============================================================================
"""
Retry / Backoff Policy

Wraps one step invocation and decides, from the ErrorClass alone,
whether to try again:

    TRANSIENT   exponential backoff, min(base * 2**n, max_delay),
                at most max_attempts transient failures
    NOT_READY   fixed interval until not_ready_timeout has elapsed
    anything    raised immediately (FATAL, CONFIGURATION, TIMEOUT, and
    else        any CONFLICT / NOT_FOUND an idempotent step failed to
                resolve)

Exhausting a budget re-raises the last error, so the executor records
the last observed classification. Waits observe the run's cancel event
and stop retrying when it is set.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from core.config.defaults import RetryDefaults
from core.contracts import ErrorClass
from core.errors import ProvisioningError
from core.logging import log_context
from core.models import ExecutionRecord
from orchestrator.context import Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(policy: RetryDefaults, failures: int) -> float:
    """Delay after the n-th transient failure (1-based)."""
    return min(policy.base_delay_seconds * (2 ** (failures - 1)), policy.max_delay_seconds)


def backoff_envelope(policy: RetryDefaults) -> float:
    """Upper bound of total sleep across all transient retries."""
    return sum(backoff_delay(policy, n) for n in range(1, policy.max_attempts))


class RetryRunner:
    """
    Runs a step coroutine factory under a retry policy.

    Args:
        clock: Clock used for waits and the NOT_READY time budget
        cancel_event: Run cancellation signal
    """

    def __init__(self, clock: Optional[Clock] = None, cancel_event: Optional[asyncio.Event] = None):
        self.clock = clock or Clock()
        self.cancel_event = cancel_event

    async def run(
        self,
        step_fn: Callable[[], Awaitable[T]],
        policy: RetryDefaults,
        record: Optional[ExecutionRecord] = None,
    ) -> T:
        """
        Invoke step_fn until it succeeds or a budget is exhausted.

        Args:
            step_fn: Zero-arg factory producing a fresh coroutine per attempt
            policy: Resolved retry settings
            record: Execution record to count attempts on

        Returns:
            Whatever step_fn returns

        Raises:
            ProvisioningError: The last failure, once retries stop
        """
        attempt = 0
        transient_failures = 0
        not_ready_since: Optional[float] = None

        while True:
            attempt += 1
            if record is not None:
                record.record_attempt()

            with log_context(attempt=attempt):
                try:
                    return await step_fn()
                except ProvisioningError as e:
                    error = e

                classification = error.classification
                if record is not None:
                    record.note_error(classification, str(error))

                if classification == ErrorClass.TRANSIENT:
                    transient_failures += 1
                    if transient_failures >= policy.max_attempts:
                        logger.error(
                            f"Giving up after {transient_failures}/{policy.max_attempts} "
                            f"transient failures: {error}"
                        )
                        raise error
                    delay = backoff_delay(policy, transient_failures)
                    logger.warning(
                        f"Transient failure (attempt {transient_failures}/{policy.max_attempts}), "
                        f"retrying in {delay:.1f}s: {error}"
                    )

                elif classification == ErrorClass.NOT_READY:
                    now = self.clock.now()
                    if not_ready_since is None:
                        not_ready_since = now
                    waited = now - not_ready_since
                    remaining = policy.not_ready_timeout_seconds - waited
                    if remaining <= 0:
                        logger.error(
                            f"Dependency still not ready after {waited:.0f}s "
                            f"(budget {policy.not_ready_timeout_seconds:.0f}s): {error}"
                        )
                        raise error
                    delay = min(policy.not_ready_interval_seconds, remaining)
                    logger.warning(
                        f"Dependency not ready ({waited:.0f}s/"
                        f"{policy.not_ready_timeout_seconds:.0f}s), retrying in {delay:.0f}s: {error}"
                    )

                else:
                    raise error

            if await self.clock.sleep(delay, self.cancel_event):
                logger.warning(f"Run cancelled during retry wait; abandoning after attempt {attempt}")
                raise error


__all__ = ["RetryRunner", "backoff_delay", "backoff_envelope"]
