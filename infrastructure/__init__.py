# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Infrastructure - Remote control plane access
# PURPOSE: Token cache, HTTP client, and error classification
# CREATED: 18 OCT 2026
# ============================================================================
"""
Infrastructure module for the provisioning orchestrator.

Provides:
- TokenProvider: per-scope Azure token cache with single-flight refresh
- RemoteResourceClient: async httpx client per control plane
- classify: HTTP status + provider code -> ErrorClass

Usage:
    from infrastructure import RemoteResourceClient, TokenProvider

    tokens = TokenProvider()
    fabric = RemoteResourceClient(
        ControlPlane.FABRIC,
        "https://api.fabric.microsoft.com/v1",
        "https://api.fabric.microsoft.com/.default",
        tokens,
    )
    workspaces = await fabric.list_items("/workspaces")
"""

from infrastructure.auth import TokenCache, TokenProvider
from infrastructure.classification import classify, extract_error_code
from infrastructure.http_client import RemoteResourceClient, RemoteResponse

__all__ = [
    "TokenCache",
    "TokenProvider",
    "classify",
    "extract_error_code",
    "RemoteResourceClient",
    "RemoteResponse",
]
