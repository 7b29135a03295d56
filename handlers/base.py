# ============================================================================
# IDEMPOTENT STEP BASE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Step contract
# PURPOSE: Existence-check-before-create contract shared by every operation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Idempotent Step

Every operation follows the same algorithm:

    1. Resolve the natural key from inputs
    2. find_existing(inputs) - exact match on the natural key
    3. Found      -> reconcile(); outputs; SucceededExisting unless
                     reconcile mutated something
    4. Not found  -> create(); converge() if the provider answered
                     asynchronously; outputs; Succeeded
    5. Conflict   -> re-query; found means success, still missing means
                     ConflictUnresolvedError
    6. Anything else propagates unchanged for the retry policy

NOT_FOUND never escapes a step: a 404 from a create call means a
parent is missing and is reported as FATAL.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Collection, Dict, List, Optional, Tuple

from core.contracts import ControlPlane, ErrorClass, PollTolerance
from core.errors import (
    ConflictUnresolvedError,
    FatalError,
    NotReadyError,
    PollTimeoutError,
    ProvisioningError,
)
from core.models import PollSettings, StepDefinition
from infrastructure.http_client import RemoteResourceClient
from orchestrator.context import RunContext
from orchestrator.poller import ConvergencePoller, PollResult

logger = logging.getLogger(__name__)

Resource = Dict[str, Any]


@dataclass
class StepOutcome:
    """What a step returns to the executor."""
    outputs: Dict[str, Any]
    existed: bool = False
    warnings: List[str] = field(default_factory=list)


@dataclass
class StepRuntime:
    """Per-invocation collaborators handed to a step."""
    context: RunContext
    definition: StepDefinition
    poll: PollSettings
    warnings: List[str] = field(default_factory=list)
    mutated: bool = False


class IdempotentStep(ABC):
    """
    Base class for registered operations.

    Subclasses declare:
        control_plane: Which client find/create use
        outputs: Output names always produced
        required_inputs: Inputs that must be present and non-empty
        natural_key_input: Input holding the natural key
        default_tolerance: Poll-timeout behavior when the plan is silent
        default_poll_interval: Operation-specific poll interval
    """

    operation: ClassVar[str] = ""
    control_plane: ClassVar[ControlPlane] = ControlPlane.FABRIC
    outputs: ClassVar[Tuple[str, ...]] = ()
    required_inputs: ClassVar[Tuple[str, ...]] = ()
    natural_key_input: ClassVar[str] = "display_name"
    default_tolerance: ClassVar[PollTolerance] = PollTolerance.FAIL
    default_poll_interval: ClassVar[Optional[float]] = None

    def __init__(self, runtime: StepRuntime):
        self.runtime = runtime
        self.context = runtime.context

    # ------------------------------------------------------------------
    # HOOKS
    # ------------------------------------------------------------------

    @property
    def client(self) -> RemoteResourceClient:
        return self.context.client(self.control_plane)

    def natural_key(self, inputs: Dict[str, Any]) -> str:
        return str(inputs[self.natural_key_input])

    @abstractmethod
    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        """Exact-match lookup on the natural key; None when absent."""

    @abstractmethod
    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        """Issue the creation call; None when the provider accepted it asynchronously."""

    @abstractmethod
    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize a provider resource into named outputs."""

    async def reconcile(self, resource: Resource, inputs: Dict[str, Any]) -> Resource:
        """
        Bring an existing resource in line with inputs.

        Call mark_mutated() when a mutating request was issued.
        """
        return resource

    async def converge(self, created: Optional[Resource], inputs: Dict[str, Any]) -> Resource:
        """Wait for an asynchronously created resource to become visible."""
        if created is not None:
            return created

        key = self.natural_key(inputs)
        found: Dict[str, Resource] = {}

        async def visible() -> bool:
            resource = await self.find_existing(inputs)
            if resource is not None:
                found["resource"] = resource
            return resource is not None

        result = await self.poller().poll_until(
            visible,
            is_terminal=bool,
            interval=self.runtime.poll.interval_seconds,
            timeout=self.runtime.poll.timeout_seconds,
            describe=f"{self.operation} '{key}'",
        )
        if "resource" not in found:
            # Cannot produce outputs without the identifier; let the retry
            # policy re-run the step, which will find it once visible
            raise NotReadyError(
                f"'{key}' accepted but not yet visible after {result.elapsed_seconds:.0f}s"
            )
        return found["resource"]

    # ------------------------------------------------------------------
    # ALGORITHM
    # ------------------------------------------------------------------

    async def execute(self, inputs: Dict[str, Any]) -> StepOutcome:
        """Run the existence-check-before-create algorithm once."""
        self._check_inputs(inputs)
        key = self.natural_key(inputs)

        try:
            existing = await self.find_existing(inputs)
            if existing is not None:
                logger.info(f"{self.operation}: '{key}' already exists")
                resource = await self.reconcile(existing, inputs)
                return self._outcome(resource, inputs, existed=not self.runtime.mutated)

            logger.info(f"{self.operation}: creating '{key}'")
            try:
                created = await self.create(inputs)
            except ProvisioningError as e:
                if e.classification != ErrorClass.CONFLICT:
                    raise
                logger.info(f"{self.operation}: create reported conflict for '{key}', re-querying")
                existing = await self.find_existing(inputs)
                if existing is None:
                    raise ConflictUnresolvedError(
                        f"{self.operation}: '{key}' reported as existing but lookup finds nothing"
                    ) from e
                resource = await self.reconcile(existing, inputs)
                return self._outcome(resource, inputs, existed=not self.runtime.mutated)

            self.mark_mutated()
            resource = await self.converge(created, inputs)
            resource = await self.reconcile(resource, inputs)
            return self._outcome(resource, inputs, existed=False)

        except ProvisioningError as e:
            if e.classification in (ErrorClass.NOT_FOUND, ErrorClass.CONFLICT):
                raise FatalError(f"{self.operation}: unresolved {e.classification.value}: {e}") from e
            raise

    def _check_inputs(self, inputs: Dict[str, Any]) -> None:
        missing = [
            name for name in (*self.required_inputs, self.natural_key_input)
            if name and inputs.get(name) in (None, "")
        ]
        if missing:
            raise FatalError(f"{self.operation}: missing required input(s) {sorted(set(missing))}")

    def _outcome(self, resource: Resource, inputs: Dict[str, Any], existed: bool) -> StepOutcome:
        return StepOutcome(
            outputs=self.to_outputs(resource, inputs),
            existed=existed,
            warnings=list(self.runtime.warnings),
        )

    # ------------------------------------------------------------------
    # HELPERS FOR SUBCLASSES
    # ------------------------------------------------------------------

    def mark_mutated(self) -> None:
        """Record that a mutating call was issued (status becomes Succeeded)."""
        self.runtime.mutated = True

    def warn(self, message: str) -> None:
        logger.warning(f"{self.operation}: {message}")
        self.runtime.warnings.append(message)

    def poller(self) -> ConvergencePoller:
        return ConvergencePoller(self.context.clock, self.context.cancel_event)

    async def wait_for_state(
        self,
        status_fn: Callable[[], Awaitable[Any]],
        target_states: Collection[Any],
        failure_states: Collection[Any] = (),
        describe: str = "resource",
    ) -> PollResult:
        """
        Poll with this step's resolved settings and apply its tolerance.

        Returns:
            PollResult (converged, or timed out/cancelled under PROCEED)

        Raises:
            ConvergenceFailedError: failure state observed
            PollTimeoutError: timed out/cancelled under FAIL
        """
        poll = self.runtime.poll
        result = await self.poller().poll_until(
            status_fn,
            is_terminal=target_states,
            interval=poll.interval_seconds,
            timeout=poll.timeout_seconds,
            failure_states=failure_states,
            describe=describe,
        )
        if result.converged:
            return result

        reason = "cancelled" if result.cancelled else f"timed out after {result.elapsed_seconds:.0f}s"
        message = f"{describe} {reason} waiting for {sorted(map(str, target_states))} (last state={result.final_state})"
        if poll.on_timeout == PollTolerance.PROCEED:
            self.warn(f"{message}; continuing anyway")
            return result
        raise PollTimeoutError(message, last_state=result.final_state)


__all__ = ["IdempotentStep", "StepOutcome", "StepRuntime", "Resource"]
