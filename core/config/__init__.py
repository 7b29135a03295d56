# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Provides environment-driven defaults for the provisioning orchestrator.
"""

from core.config.defaults import (
    RetryDefaults,
    PollDefaults,
    ExecutorDefaults,
    EndpointDefaults,
    ProvisioningSettings,
)

__all__ = [
    "RetryDefaults",
    "PollDefaults",
    "ExecutorDefaults",
    "EndpointDefaults",
    "ProvisioningSettings",
]
