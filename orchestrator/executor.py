# ============================================================================
# DEPENDENCY GRAPH EXECUTOR
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Run driver
# PURPOSE: Walk the step graph, gate on dependencies, record every outcome
# CREATED: 18 OCT 2026
# ============================================================================
"""
Dependency Graph Executor

One call to run() is one orchestration run:

    1. Validate      operations registered, graph acyclic, every
                     steps.<name> binding points at a transitive upstream
                     step. Any problem -> CONFIGURATION_ERROR report,
                     zero remote calls.
    2. Seed          resumed runs copy the prior report's successful
                     records and outputs for steps outside `only`
    3. Schedule      ready steps (all dependencies successful) start
                     while fewer than max_workers are running; a step
                     with a failed or skipped dependency is Skipped
    4. Execute       bind inputs -> RetryRunner(step.execute) -> check
                     outputs -> write-once Output Store
    5. Report        every step has a terminal record, whatever happened

Cancellation stops scheduling; in-flight steps finish (their pollers and
retry waits return early) and never-started steps end Skipped.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from core.contracts import ErrorClass, RunOutcome, StepStatus
from core.errors import BindingError, ConfigurationError, FatalError, ProvisioningError
from core.logging import log_checkpoint, log_context
from core.models import ExecutionRecord, RunReport, StepDefinition
from handlers import StepRuntime, get_operation_or_raise, validate_operations
from orchestrator.context import RunContext
from orchestrator.engine.bindings import BindingContext, BindingResolver
from orchestrator.engine.graph import DependencyGraph, build_execution_order
from orchestrator.output_store import OutputStore
from orchestrator.retry import RetryRunner

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProvisioningExecutor:
    """
    Runs a set of steps against one RunContext.

    Args:
        context: Run-scoped collaborators (clients, clock, cancel signal)
        max_workers: Concurrent step limit (defaults to settings)
        resolver: Binding resolver (stateless, shareable)
    """

    def __init__(
        self,
        context: RunContext,
        max_workers: Optional[int] = None,
        resolver: Optional[BindingResolver] = None,
    ):
        self.context = context
        self.max_workers = max(1, max_workers or context.settings.executor.max_workers)
        self.resolver = resolver or BindingResolver()

        # Metrics (last run)
        self._steps_invoked = 0
        self._steps_skipped = 0
        self._peak_concurrency = 0

    # ------------------------------------------------------------------
    # PUBLIC API
    # ------------------------------------------------------------------

    async def run(
        self,
        steps: Sequence[StepDefinition],
        edges: Optional[Iterable[Tuple[str, str]]] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
        prior_report: Optional[RunReport] = None,
        only: Optional[Iterable[str]] = None,
        plan_id: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> RunReport:
        """
        Execute steps in dependency order.

        Args:
            steps: Step definitions
            edges: Extra (upstream, downstream) pairs on top of depends_on
            config: Static values exposed to bindings as config.*
            prior_report: Report of an earlier run to resume from
            only: Steps to execute; every other step must have succeeded
                in prior_report. Defaults, when resuming, to the steps
                that did not succeed before.
            plan_id: Recorded on the report
            run_id: Generated when omitted

        Returns:
            RunReport with a terminal record for every step
        """
        run_id = run_id or str(uuid.uuid4())
        started_at = _utc_now()
        self._steps_invoked = 0
        self._steps_skipped = 0
        self._peak_concurrency = 0

        with log_context(run_id=run_id, plan_id=plan_id):
            try:
                graph, order, selected = self._prepare(steps, edges, prior_report, only)
            except ConfigurationError as e:
                logger.error(f"Plan rejected before execution: {e}")
                return self._configuration_error_report(run_id, plan_id, started_at, steps, str(e))

            log_checkpoint("run_started", {
                "steps": len(order),
                "selected": sorted(selected),
                "max_workers": self.max_workers,
                "resumed": prior_report is not None,
            })

            definitions = {s.name: s for s in steps}
            store = OutputStore()
            records: Dict[str, ExecutionRecord] = {}
            for name in order:
                if name in selected:
                    records[name] = ExecutionRecord(step=name, operation=definitions[name].operation)
                else:
                    prior = prior_report.get(name)
                    records[name] = prior.model_copy(deep=True, update={"carried_over": True})
                    store.seed(name, prior.outputs)

            await self._schedule(graph, order, selected, definitions, records, store, dict(config or {}))

            report = RunReport(
                run_id=run_id,
                plan_id=plan_id,
                started_at=started_at,
                completed_at=_utc_now(),
                outcome=(
                    RunOutcome.ALL_SUCCEEDED
                    if all(r.is_successful for r in records.values())
                    else RunOutcome.PARTIAL_FAILURE
                ),
                records=records,
                cancelled=self.context.cancelled,
            )
            log_checkpoint("run_finished", {
                "outcome": report.outcome.value,
                "counts": report.status_counts(),
                "failed": report.failed_steps,
                "skipped": report.skipped_steps,
                "remote_calls": self.context.request_count(),
            })
            return report

    @property
    def stats(self) -> Dict[str, Any]:
        """Counters from the most recent run."""
        return {
            "max_workers": self.max_workers,
            "steps_invoked": self._steps_invoked,
            "steps_skipped": self._steps_skipped,
            "peak_concurrency": self._peak_concurrency,
        }

    # ------------------------------------------------------------------
    # VALIDATION
    # ------------------------------------------------------------------

    def _prepare(
        self,
        steps: Sequence[StepDefinition],
        edges: Optional[Iterable[Tuple[str, str]]],
        prior_report: Optional[RunReport],
        only: Optional[Iterable[str]],
    ) -> Tuple[DependencyGraph, List[str], Set[str]]:
        """
        Everything that can be checked without a remote call.

        Returns:
            (graph, topological order, names of steps to execute)

        Raises:
            ConfigurationError: on the first class of problem found
        """
        if not steps:
            raise ConfigurationError("Plan has no steps")

        missing = validate_operations(s.operation for s in steps)
        if missing:
            raise ConfigurationError(f"Unknown operation(s): {sorted(set(missing))}")

        graph, order = build_execution_order(steps, edges)

        errors: List[str] = []
        for step in steps:
            try:
                referenced = self.resolver.referenced_steps(step.inputs)
            except BindingError as e:
                errors.append(f"Step '{step.name}': {e}")
                continue
            upstream = graph.transitive_dependencies(step.name)
            for ref in sorted(referenced):
                if ref not in graph.nodes:
                    errors.append(f"Step '{step.name}' binds to unknown step '{ref}'")
                elif ref not in upstream:
                    errors.append(
                        f"Step '{step.name}' binds to outputs of '{ref}' without depending on it"
                    )
        if errors:
            raise ConfigurationError("; ".join(errors))

        selected = self._select(order, prior_report, only)
        return graph, order, selected

    @staticmethod
    def _select(
        order: List[str],
        prior_report: Optional[RunReport],
        only: Optional[Iterable[str]],
    ) -> Set[str]:
        if only is None:
            if prior_report is None:
                return set(order)
            return {
                name for name in order
                if name not in prior_report.records or not prior_report.records[name].is_successful
            }

        selected = set(only)
        unknown = selected - set(order)
        if unknown:
            raise ConfigurationError(f"Steps selected for execution are not in the plan: {sorted(unknown)}")

        carried = [name for name in order if name not in selected]
        if carried and prior_report is None:
            raise ConfigurationError(
                f"Running a subset requires a prior report for the other steps: {carried}"
            )
        unmet = [
            name for name in carried
            if name not in prior_report.records or not prior_report.records[name].is_successful
        ]
        if unmet:
            raise ConfigurationError(f"Steps outside the selection did not succeed previously: {unmet}")
        return selected

    def _configuration_error_report(
        self,
        run_id: str,
        plan_id: Optional[str],
        started_at: datetime,
        steps: Sequence[StepDefinition],
        error: str,
    ) -> RunReport:
        records: Dict[str, ExecutionRecord] = {}
        for step in steps:
            if step.name in records:
                continue
            record = ExecutionRecord(step=step.name, operation=step.operation)
            record.mark_skipped("configuration_error")
            records[step.name] = record
        return RunReport(
            run_id=run_id,
            plan_id=plan_id,
            started_at=started_at,
            completed_at=_utc_now(),
            outcome=RunOutcome.CONFIGURATION_ERROR,
            records=records,
            error=error,
        )

    # ------------------------------------------------------------------
    # SCHEDULING
    # ------------------------------------------------------------------

    async def _schedule(
        self,
        graph: DependencyGraph,
        order: List[str],
        selected: Set[str],
        definitions: Dict[str, StepDefinition],
        records: Dict[str, ExecutionRecord],
        store: OutputStore,
        config: Dict[str, Any],
    ) -> None:
        waiting = [name for name in order if name in selected]
        running: Dict[asyncio.Task, str] = {}

        while waiting or running:
            if self.context.cancelled:
                for name in waiting:
                    records[name].mark_skipped(CANCELLED)
                    self._steps_skipped += 1
                waiting = []
            else:
                # Topological order: a skip here is visible to later
                # dependents in the same pass
                still_waiting = []
                for name in waiting:
                    blocker = self._blocking_dependency(graph, name, records)
                    if blocker is not None:
                        dep, status = blocker
                        reason = f"dependency '{dep}' {status.value}"
                        logger.warning(f"Skipping '{name}': {reason}")
                        records[name].mark_skipped(reason)
                        self._steps_skipped += 1
                    elif self._ready(graph, name, records) and len(running) < self.max_workers:
                        task = asyncio.create_task(
                            self._run_step(definitions[name], records[name], store, config),
                            name=f"step:{name}",
                        )
                        running[task] = name
                        self._peak_concurrency = max(self._peak_concurrency, len(running))
                    else:
                        still_waiting.append(name)
                waiting = still_waiting

            if not running:
                if waiting:
                    # Unreachable for a validated DAG
                    raise RuntimeError(f"Scheduler stalled with waiting steps: {waiting}")
                break

            finished, _ = await asyncio.wait(list(running), return_when=asyncio.FIRST_COMPLETED)
            for task in finished:
                running.pop(task)
                # _run_step records its own failures; anything here is a bug
                task.result()

    @staticmethod
    def _blocking_dependency(
        graph: DependencyGraph,
        name: str,
        records: Dict[str, ExecutionRecord],
    ) -> Optional[Tuple[str, StepStatus]]:
        for dep in graph.get_dependencies(name):
            record = records[dep]
            if record.is_terminal and not record.is_successful:
                return dep, record.status
        return None

    @staticmethod
    def _ready(graph: DependencyGraph, name: str, records: Dict[str, ExecutionRecord]) -> bool:
        return all(records[dep].is_successful for dep in graph.get_dependencies(name))

    # ------------------------------------------------------------------
    # STEP EXECUTION
    # ------------------------------------------------------------------

    async def _run_step(
        self,
        step: StepDefinition,
        record: ExecutionRecord,
        store: OutputStore,
        config: Dict[str, Any],
    ) -> None:
        """Run one step to a terminal record. Never raises."""
        with log_context(step=step.name, operation=step.operation):
            step_cls = get_operation_or_raise(step.operation)
            record.mark_running()
            self._steps_invoked += 1
            runtime: Optional[StepRuntime] = None
            logger.info(f"Starting step '{step.name}' ({step.operation})")

            try:
                inputs = self.resolver.resolve(step.inputs, BindingContext(config, store.snapshot()))
                settings = self.context.settings
                runtime = StepRuntime(
                    context=self.context,
                    definition=step,
                    poll=step.poll.resolve(
                        settings.poll, step_cls.default_tolerance, step_cls.default_poll_interval
                    ),
                )
                operation = step_cls(runtime)
                policy = step.retry.resolve(settings.retry)
                runner = RetryRunner(self.context.clock, self.context.cancel_event)

                outcome = await runner.run(lambda: operation.execute(inputs), policy, record)

                outputs = self._check_outputs(step, step_cls.outputs, outcome.outputs)
                store.put(step.name, outputs)
                self._attach_warnings(record, runtime)
                record.mark_succeeded(outputs, existing=outcome.existed)
                logger.info(
                    f"Step '{step.name}' {record.status.value} after {record.attempts} attempt(s)"
                )
                log_checkpoint("step_succeeded", {
                    "status": record.status.value,
                    "attempts": record.attempts,
                    "outputs": outputs,
                })

            except ProvisioningError as e:
                self._fail(record, runtime, e.classification, str(e))

            except Exception as e:
                logger.exception(f"Unexpected error in step '{step.name}'")
                self._fail(record, runtime, ErrorClass.FATAL, f"{type(e).__name__}: {e}")

    def _fail(
        self,
        record: ExecutionRecord,
        runtime: Optional[StepRuntime],
        classification: ErrorClass,
        message: str,
    ) -> None:
        self._attach_warnings(record, runtime)
        record.mark_failed(classification, message)
        logger.error(
            f"Step '{record.step}' failed ({classification.value}) "
            f"after {record.attempts} attempt(s): {message}"
        )
        log_checkpoint("step_failed", {
            "classification": classification.value,
            "attempts": record.attempts,
            "error": message,
        })

    @staticmethod
    def _attach_warnings(record: ExecutionRecord, runtime: Optional[StepRuntime]) -> None:
        if runtime is None:
            return
        for warning in runtime.warnings:
            if warning not in record.warnings:
                record.add_warning(warning)

    @staticmethod
    def _check_outputs(
        step: StepDefinition,
        operation_outputs: Sequence[str],
        outputs: Dict[str, Any],
    ) -> Dict[str, Any]:
        declared = step.outputs or list(operation_outputs)
        missing = [key for key in declared if key not in outputs]
        if missing:
            raise FatalError(f"Step '{step.name}' did not produce declared output(s) {missing}")
        return outputs


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ProvisioningExecutor"]
