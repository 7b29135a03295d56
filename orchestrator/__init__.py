# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Run machinery
# PURPOSE: Context, retry, polling and output storage for one run
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestrator Module

Building blocks of a provisioning run. The executor itself imports the
operation registry, so it is imported from its own module:

    from orchestrator.executor import ProvisioningExecutor

    async with RunContext(settings) as context:
        report = await ProvisioningExecutor(context).run(plan.steps, config=plan.config)
"""

from orchestrator.context import Clock, RunContext
from orchestrator.output_store import OutputStore
from orchestrator.poller import ConvergencePoller, PollResult
from orchestrator.retry import RetryRunner, backoff_delay, backoff_envelope

__all__ = [
    "Clock",
    "RunContext",
    "OutputStore",
    "ConvergencePoller",
    "PollResult",
    "RetryRunner",
    "backoff_delay",
    "backoff_envelope",
]
