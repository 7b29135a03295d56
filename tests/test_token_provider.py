# ============================================================================
# TOKEN PROVIDER TESTS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Tests - Run-scoped token cache
# PURPOSE: Verify caching, single concurrent refresh, auth failure mapping
# CREATED: 18 OCT 2026
# ============================================================================
"""
Token Provider Tests

Run with:
    pytest tests/test_token_provider.py -v
"""

import asyncio
import time
from unittest.mock import MagicMock

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from core.contracts import ErrorClass
from core.errors import FatalError
from infrastructure.auth.token_provider import TokenCache, TokenProvider

SCOPE = "https://api.fabric.microsoft.com/.default"
OTHER_SCOPE = "https://purview.azure.net/.default"


class TestTokenProvider:

    def test_token_cached_per_scope(self, tokens, credential):
        async def scenario():
            first = await tokens.get_token(SCOPE)
            second = await tokens.get_token(SCOPE)
            other = await tokens.get_token(OTHER_SCOPE)
            return first, second, other

        first, second, other = asyncio.run(scenario())

        assert first == second
        assert other != first
        assert credential.calls == [(SCOPE,), (OTHER_SCOPE,)]

    def test_near_expiry_token_reacquired(self, credential):
        # lifetime below the refresh buffer: every call is a cache miss
        credential.lifetime_seconds = 60
        provider = TokenProvider(credential=credential, refresh_buffer_seconds=300)

        async def scenario():
            await provider.get_token(SCOPE)
            await provider.get_token(SCOPE)

        asyncio.run(scenario())
        assert len(credential.calls) == 2

    def test_concurrent_force_refresh_acquires_once(self, tokens, credential):
        async def scenario():
            stale = await tokens.get_token(SCOPE)
            fresh = await asyncio.gather(*[tokens.force_refresh(SCOPE, stale) for _ in range(5)])
            return stale, fresh

        stale, fresh = asyncio.run(scenario())

        assert len(set(fresh)) == 1
        assert fresh[0] != stale
        assert len(credential.calls) == 2

    def test_authentication_failure_is_fatal(self):
        credential = MagicMock()
        credential.get_token.side_effect = ClientAuthenticationError("no identity")
        provider = TokenProvider(credential=credential)

        with pytest.raises(FatalError) as exc:
            asyncio.run(provider.get_token(SCOPE))
        assert exc.value.classification == ErrorClass.FATAL

    def test_status_reports_scopes(self, tokens):
        asyncio.run(tokens.get_token(SCOPE))
        status = tokens.status()
        assert SCOPE in str(status)


class TestTokenCache:

    def test_empty_cache_has_nothing_usable(self):
        cache = TokenCache()
        assert cache.usable() is None
        assert cache.expires_at is None
        assert cache.ttl_seconds() == 0

    def test_usable_respects_buffer(self):
        cache = TokenCache()
        cache.store(AccessToken("abc", int(time.time()) + 600))

        assert cache.usable(0) == "abc"
        assert cache.usable(300) == "abc"
        assert cache.usable(900) is None
        assert cache.expires_at.timestamp() == cache.access_token.expires_on

    def test_clear_drops_token(self):
        cache = TokenCache(AccessToken("abc", int(time.time()) + 600))
        cache.clear()
        assert cache.token is None
        assert cache.usable() is None
