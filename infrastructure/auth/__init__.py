# ============================================================================
# AUTHENTICATION MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# PURPOSE: Azure authentication for Fabric, ARM and Purview
# CREATED: 18 OCT 2026
# ============================================================================
"""
Authentication module for the provisioning orchestrator.

Usage:
    from infrastructure.auth import TokenProvider

    tokens = TokenProvider(client_id=settings.endpoints.client_id)
    bearer = await tokens.get_token("https://api.fabric.microsoft.com/.default")
"""

from infrastructure.auth.token_provider import (
    TOKEN_REFRESH_BUFFER_SECS,
    TokenCache,
    TokenProvider,
    build_default_credential,
)

__all__ = [
    'TokenCache',
    'TokenProvider',
    'build_default_credential',
    'TOKEN_REFRESH_BUFFER_SECS',
]
