# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Plan and report handling
# PURPOSE: Load plans, persist and scope run reports
# CREATED: 18 OCT 2026
# ============================================================================
"""
Services Module

Usage:
    from services import PlanService, load_report, save_report

    plan = PlanService().load_file("workflows/fabric_purview.yaml")
    prior = load_report("reports/last.json")
"""

from .plan_service import PlanService, apply_overrides
from .report_service import load_report, rerun_subset, save_report, summarize, summary_dict

__all__ = [
    "PlanService",
    "apply_overrides",
    "save_report",
    "load_report",
    "rerun_subset",
    "summarize",
    "summary_dict",
]
