# ============================================================================
# AZURE TOKEN PROVIDER
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# PURPOSE: Per-scope OAuth token cache for Fabric, ARM and Purview
# CREATED: 18 OCT 2026
# ============================================================================
"""
Azure token provider for the remote resource clients.

Acquires OAuth tokens with azure-identity and caches them per scope.
Tokens are refreshed automatically before expiry.

Authentication Flow:
-------------------
1. Remote client needs a token -> get_token(scope)
2. Cached token returned if it has more than 5 minutes left
3. Otherwise the credential is called in a worker thread (it is
   synchronous) while holding the scope's asyncio.Lock
4. On 401 the client calls force_refresh(scope, stale_token) once;
   concurrent callers holding the same stale token share one refresh

Credential selection:
--------------------
AZURE_CLIENT_ID set   -> ManagedIdentityCredential(client_id=...)
otherwise             -> DefaultAzureCredential (az login, env, MI)

The provider is owned by one RunContext; there is no module-level cache.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from core.errors import FatalError

logger = logging.getLogger(__name__)

# Refresh tokens when less than 5 minutes until expiry
TOKEN_REFRESH_BUFFER_SECS = 300


@dataclass
class TokenCache:
    """
    Last AccessToken issued for one scope.

    Keeps the credential's AccessToken as-is; expires_on is epoch seconds.
    """
    access_token: Optional[AccessToken] = None

    @property
    def token(self) -> Optional[str]:
        return self.access_token.token if self.access_token else None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.access_token is None:
            return None
        return datetime.fromtimestamp(self.access_token.expires_on, tz=timezone.utc)

    def usable(self, buffer_seconds: int = 0) -> Optional[str]:
        """Bearer string while more than buffer_seconds of lifetime remain."""
        if self.access_token is None or self.ttl_seconds() <= buffer_seconds:
            return None
        return self.access_token.token

    def store(self, access_token: AccessToken) -> None:
        self.access_token = access_token

    def clear(self) -> None:
        self.access_token = None

    def ttl_seconds(self) -> float:
        if self.access_token is None:
            return 0
        return self.access_token.expires_on - time.time()


def build_default_credential(client_id: Optional[str] = None) -> Any:
    """Pick the azure-identity credential the way the deployment expects."""
    from azure.identity import DefaultAzureCredential, ManagedIdentityCredential

    if client_id:
        logger.info(f"Using user-assigned Managed Identity: {client_id[:8]}...")
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using DefaultAzureCredential (az login, environment, or system MI)")
    return DefaultAzureCredential()


class TokenProvider:
    """
    Per-scope bearer token cache with single-flight refresh.

    Args:
        credential: Any azure-identity style credential exposing
            get_token(scope) -> AccessToken. Built lazily when None.
        client_id: User-assigned identity client id for the lazy credential.
        refresh_buffer_seconds: Refresh when TTL drops below this.
    """

    def __init__(
        self,
        credential: Any = None,
        client_id: Optional[str] = None,
        refresh_buffer_seconds: int = TOKEN_REFRESH_BUFFER_SECS,
    ):
        self._credential = credential
        self._client_id = client_id
        self._refresh_buffer = refresh_buffer_seconds
        self._caches: Dict[str, TokenCache] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.acquisitions = 0

    def _cache(self, scope: str) -> TokenCache:
        if scope not in self._caches:
            self._caches[scope] = TokenCache()
        return self._caches[scope]

    def _lock(self, scope: str) -> asyncio.Lock:
        if scope not in self._locks:
            self._locks[scope] = asyncio.Lock()
        return self._locks[scope]

    @property
    def credential(self) -> Any:
        if self._credential is None:
            self._credential = build_default_credential(self._client_id)
        return self._credential

    async def get_token(self, scope: str) -> str:
        """
        Get a bearer token for scope, acquiring one if needed.

        Raises:
            FatalError: If the credential cannot authenticate.
        """
        cache = self._cache(scope)
        cached = cache.usable(self._refresh_buffer)
        if cached:
            return cached

        async with self._lock(scope):
            # Another task may have refreshed while we waited
            cached = cache.usable(self._refresh_buffer)
            if cached:
                return cached
            return await self._acquire(scope)

    async def force_refresh(self, scope: str, stale_token: Optional[str]) -> str:
        """
        Replace stale_token after the remote side rejected it.

        Only the first caller holding stale_token triggers acquisition;
        the rest get the already refreshed token.
        """
        cache = self._cache(scope)
        async with self._lock(scope):
            if cache.token and cache.token != stale_token and cache.usable(0):
                logger.debug(f"Token for {scope} already refreshed by another step")
                return cache.token
            cache.clear()
            logger.info(f"Forcing token refresh for {scope}")
            return await self._acquire(scope)

    async def _acquire(self, scope: str) -> str:
        loop = asyncio.get_running_loop()
        try:
            access_token = await loop.run_in_executor(None, self.credential.get_token, scope)
        except ClientAuthenticationError as e:
            logger.error(f"Failed to acquire token for {scope}: {e}")
            raise FatalError(f"Authentication failed for scope {scope}: {e}") from e

        cache = self._cache(scope)
        cache.store(access_token)
        self.acquisitions += 1
        logger.info(f"Token acquired for {scope}, expires: {cache.expires_at.isoformat()}")
        return access_token.token

    def status(self) -> Dict[str, Any]:
        """
        Token status per scope for diagnostics.

        Returns:
            Dict of scope -> cached/ttl/expiry information.
        """
        return {
            scope: {
                "token_cached": cache.token is not None,
                "ttl_seconds": cache.ttl_seconds() if cache.token else 0,
                "expires_at": cache.expires_at.isoformat() if cache.expires_at else None,
            }
            for scope, cache in self._caches.items()
        }


__all__ = [
    "TokenCache",
    "TokenProvider",
    "build_default_credential",
    "TOKEN_REFRESH_BUFFER_SECS",
]
