# ============================================================================
# RUN CONTEXT
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Per-run collaborators
# PURPOSE: Settings, token cache, clients, clock and cancel signal for one run
# CREATED: 18 OCT 2026
# ============================================================================
"""
Run Context

Everything a step needs from its environment, owned by one run:
- ProvisioningSettings (built once by the caller)
- TokenProvider (the only shared token cache)
- One RemoteResourceClient per control plane, created on first use
- Clock (real or fake) for sleeps and elapsed time
- Cancellation event

No process-wide singletons: two contexts never share state.
"""

import asyncio
import logging
import time
from typing import Dict, Optional

import httpx

from core.config.defaults import ProvisioningSettings
from core.contracts import ControlPlane
from core.errors import FatalError
from infrastructure.auth.token_provider import TokenProvider
from infrastructure.http_client import RemoteResourceClient

logger = logging.getLogger(__name__)


class Clock:
    """Monotonic clock with cancellable sleep."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """
        Sleep for seconds, waking early if cancel_event is set.

        Returns:
            True if the sleep ended because of cancellation
        """
        if cancel_event is None:
            await asyncio.sleep(max(seconds, 0))
            return False
        if cancel_event.is_set():
            return True
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=max(seconds, 0))
            return True
        except asyncio.TimeoutError:
            return False


class RunContext:
    """
    Collaborators for one orchestration run.

    Args:
        settings: Configuration for this run
        tokens: Token provider (built from settings when None)
        clients: Pre-built clients per plane (tests inject these)
        clock: Clock implementation
        transport: httpx transport for lazily built clients
    """

    def __init__(
        self,
        settings: Optional[ProvisioningSettings] = None,
        tokens: Optional[TokenProvider] = None,
        clients: Optional[Dict[ControlPlane, RemoteResourceClient]] = None,
        clock: Optional[Clock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or ProvisioningSettings()
        self.tokens = tokens or TokenProvider(client_id=self.settings.endpoints.client_id)
        self.clock = clock or Clock()
        self.cancel_event = asyncio.Event()
        self._clients: Dict[ControlPlane, RemoteResourceClient] = dict(clients or {})
        self._transport = transport

    # ------------------------------------------------------------------
    # CANCELLATION
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Raise the run's single cancellation signal."""
        if not self.cancel_event.is_set():
            logger.warning("Cancellation requested; no new steps will be scheduled")
            self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Cancellable sleep on the run's clock. True if cancelled."""
        return await self.clock.sleep(seconds, self.cancel_event)

    # ------------------------------------------------------------------
    # CLIENTS
    # ------------------------------------------------------------------

    def client(self, plane: ControlPlane) -> RemoteResourceClient:
        """
        Get (or build) the client for a control plane.

        Raises:
            FatalError: If the plane has no configured endpoint
        """
        if plane not in self._clients:
            endpoints = self.settings.endpoints
            if plane == ControlPlane.FABRIC:
                base_url, scope = endpoints.fabric_api_url, endpoints.fabric_scope
            elif plane == ControlPlane.ARM:
                base_url, scope = endpoints.arm_api_url, endpoints.arm_scope
            else:
                base_url, scope = endpoints.resolved_purview_url(), endpoints.purview_scope
                if not base_url:
                    raise FatalError(
                        "Purview endpoint not configured (set PURVIEW_ACCOUNT_NAME or PURVIEW_API_URL)"
                    )
            self._clients[plane] = RemoteResourceClient(
                plane,
                base_url,
                scope,
                self.tokens,
                timeout=endpoints.http_timeout_seconds,
                transport=self._transport,
            )
        return self._clients[plane]

    def request_count(self) -> int:
        """Total remote requests sent through this context's clients."""
        return sum(c.request_count for c in self._clients.values())

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()

    async def __aenter__(self) -> "RunContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = ["Clock", "RunContext"]
