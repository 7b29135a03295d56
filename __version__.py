# ============================================================================
# VERSION - PROVISIONING ORCHESTRATOR
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# ============================================================================
"""
Version information for the provisioning orchestrator.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
# Criteria for 0.3 - full Fabric + Purview plan converges on re-run
__version__ = "0.3.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-18"

EPOCH = 1
CODENAME = "Provisioning Orchestrator"
