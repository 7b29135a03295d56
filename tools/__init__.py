# ============================================================================
# COMMAND-LINE TOOLS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Tools
# PURPOSE: Entry points that drive the orchestrator
# CREATED: 18 OCT 2026
# ============================================================================
"""Command-line tools."""
