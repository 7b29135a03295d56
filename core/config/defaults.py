# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Default configuration values
# PURPOSE: Retry, polling, worker-pool, and endpoint defaults
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides defaults for retry budgets, convergence polling, the worker
pool and the remote endpoints. Every value can be overridden via
environment variables; steps can further override retry/poll values
in the plan file.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- No process-wide instance: the caller builds ProvisioningSettings once
  and hands it to the RunContext
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RetryDefaults:
    """
    Defaults for the retry/backoff policy.

    TRANSIENT failures back off exponentially:
        delay = min(base_delay * 2 ** attempt, max_delay)
    NOT_READY failures wait a fixed interval until the time budget is spent.
    """
    max_attempts: int = 5
    base_delay_seconds: float = 2.0
    max_delay_seconds: float = 60.0

    not_ready_interval_seconds: float = 15.0
    not_ready_timeout_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> "RetryDefaults":
        """Create from environment variables."""
        return cls(
            max_attempts=int(os.getenv("PROVISION_MAX_ATTEMPTS", 5)),
            base_delay_seconds=float(os.getenv("PROVISION_BASE_DELAY", 2.0)),
            max_delay_seconds=float(os.getenv("PROVISION_MAX_DELAY", 60.0)),
            not_ready_interval_seconds=float(os.getenv("PROVISION_NOT_READY_INTERVAL", 15.0)),
            not_ready_timeout_seconds=float(os.getenv("PROVISION_NOT_READY_TIMEOUT", 300.0)),
        )


@dataclass(frozen=True)
class PollDefaults:
    """
    Defaults for convergence polling.

    Capacity resume is the slow case: 20s interval, 15 minute ceiling.
    """
    interval_seconds: float = 20.0
    timeout_seconds: float = 900.0

    @classmethod
    def from_env(cls) -> "PollDefaults":
        """Create from environment variables."""
        return cls(
            interval_seconds=float(os.getenv("PROVISION_POLL_INTERVAL", 20.0)),
            timeout_seconds=float(os.getenv("PROVISION_POLL_TIMEOUT", 900.0)),
        )


@dataclass(frozen=True)
class ExecutorDefaults:
    """Defaults for the dependency graph executor."""
    # Small pool; remote rate limits are the main transient-failure source
    max_workers: int = 4

    @classmethod
    def from_env(cls) -> "ExecutorDefaults":
        """Create from environment variables."""
        return cls(max_workers=int(os.getenv("PROVISION_MAX_WORKERS", 4)))


@dataclass(frozen=True)
class EndpointDefaults:
    """
    Remote control plane endpoints and token scopes.

    The Purview data plane URL is derived from the account name when
    PURVIEW_API_URL is not set.
    """
    fabric_api_url: str = "https://api.fabric.microsoft.com/v1"
    arm_api_url: str = "https://management.azure.com"
    purview_account_name: Optional[str] = None
    purview_api_url: Optional[str] = None

    fabric_scope: str = "https://api.fabric.microsoft.com/.default"
    arm_scope: str = "https://management.azure.com/.default"
    purview_scope: str = "https://purview.azure.net/.default"

    http_timeout_seconds: float = 60.0

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None

    def resolved_purview_url(self) -> Optional[str]:
        """Purview data plane base URL, or None when no account is configured."""
        if self.purview_api_url:
            return self.purview_api_url.rstrip("/")
        if self.purview_account_name:
            return f"https://{self.purview_account_name}.purview.azure.com"
        return None

    @classmethod
    def from_env(cls) -> "EndpointDefaults":
        """Create from environment variables."""
        return cls(
            fabric_api_url=os.getenv("FABRIC_API_URL", "https://api.fabric.microsoft.com/v1"),
            arm_api_url=os.getenv("ARM_API_URL", "https://management.azure.com"),
            purview_account_name=os.getenv("PURVIEW_ACCOUNT_NAME") or None,
            purview_api_url=os.getenv("PURVIEW_API_URL") or None,
            http_timeout_seconds=float(os.getenv("PROVISION_HTTP_TIMEOUT", 60.0)),
            tenant_id=os.getenv("AZURE_TENANT_ID") or None,
            client_id=os.getenv("AZURE_CLIENT_ID") or None,
        )


# ============================================================================
# SETTINGS CONTAINER
# ============================================================================

@dataclass(frozen=True)
class ProvisioningSettings:
    """Container for all configuration used by one run."""
    retry: RetryDefaults = field(default_factory=RetryDefaults)
    poll: PollDefaults = field(default_factory=PollDefaults)
    executor: ExecutorDefaults = field(default_factory=ExecutorDefaults)
    endpoints: EndpointDefaults = field(default_factory=EndpointDefaults)

    @classmethod
    def from_env(cls) -> "ProvisioningSettings":
        """Create all defaults from environment variables."""
        return cls(
            retry=RetryDefaults.from_env(),
            poll=PollDefaults.from_env(),
            executor=ExecutorDefaults.from_env(),
            endpoints=EndpointDefaults.from_env(),
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RetryDefaults",
    "PollDefaults",
    "ExecutorDefaults",
    "EndpointDefaults",
    "ProvisioningSettings",
]
