# ============================================================================
# REPORT SERVICE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Service - Run report persistence
# PURPOSE: Save / load run reports and scope resumed runs
# CREATED: 18 OCT 2026
# ============================================================================
"""
Report Service

A saved report is what makes a run resumable: load it, hand it to the
executor as prior_report, and only the failed/skipped subset runs again.
"""

import logging
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from core.errors import ConfigurationError
from core.models import RunReport

logger = logging.getLogger(__name__)


def save_report(report: RunReport, path: Union[str, Path]) -> Path:
    """Write a report as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2))
    logger.info(f"Saved report {report.run_id} to {path}")
    return path


def load_report(path: Union[str, Path]) -> RunReport:
    """
    Raises:
        ConfigurationError: missing file or not a valid report
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"Cannot read report {path}: {e}") from e
    try:
        report = RunReport.model_validate_json(text)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid report {path}: {e}") from e
    logger.info(f"Loaded report {report.run_id} ({report.outcome.value}) from {path}")
    return report


def rerun_subset(report: RunReport) -> List[str]:
    """Failed and skipped steps, in report order."""
    failed = set(report.failed_steps) | set(report.skipped_steps)
    return [name for name in report.records if name in failed]


def summarize(report: RunReport) -> str:
    """Plain-text table for terminals."""
    lines = [f"Run {report.run_id}  outcome={report.outcome.value}"]
    if report.error:
        lines.append(f"  error: {report.error}")
    width = max((len(name) for name in report.records), default=4)
    for name, record in report.records.items():
        line = f"  {name:<{width}}  {record.status.value:<18}  attempts={record.attempts}"
        if record.last_error and not record.is_successful:
            line += f"  [{record.last_error.value}] {record.error_message or ''}"
        elif record.skipped_because:
            line += f"  ({record.skipped_because})"
        if record.carried_over:
            line += "  (carried over)"
        lines.append(line)
        for warning in record.warnings:
            lines.append(f"  {'':<{width}}  warning: {warning}")
    return "\n".join(lines)


def summary_dict(report: RunReport) -> dict:
    """Compact JSON-ready summary for pipelines."""
    return {
        "run_id": report.run_id,
        "outcome": report.outcome.value,
        "failed_steps": report.failed_steps,
        "skipped_steps": report.skipped_steps,
        "error": report.error,
    }


__all__ = ["save_report", "load_report", "rerun_subset", "summarize", "summary_dict"]
