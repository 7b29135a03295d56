#!/usr/bin/env python3
# ============================================================================
# CLI PROVISIONING TOOL
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Tool - Run a provisioning plan
# PURPOSE: Thin command-line entry point around the executor
# CREATED: 18 OCT 2026
# ============================================================================
"""
Run a provisioning plan.

Usage:
    # Full run, save the report
    python tools/provision.py workflows/fabric_purview.yaml --report reports/run.json

    # Re-run only what failed or was skipped last time
    python tools/provision.py workflows/fabric_purview.yaml --resume reports/run.json

    # Override plan config values
    python tools/provision.py workflows/fabric_purview.yaml --set workspace.name=ws-test

Exit codes:
    0  every step succeeded
    1  partial failure (see the report)
    2  configuration error (nothing was executed)

Requires:
    Azure credentials usable by DefaultAzureCredential (or AZURE_CLIENT_ID
    for a user-assigned managed identity), PURVIEW_ACCOUNT_NAME for the
    Purview steps.
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import signal
import sys
from typing import Any, Dict, List, Optional

import yaml

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from __version__ import __version__
from core.config import ProvisioningSettings
from core.contracts import RunOutcome
from core.errors import ConfigurationError
from core.logging import configure_logging
from core.models import ProvisioningPlan, RunReport
from orchestrator import RunContext
from orchestrator.executor import ProvisioningExecutor
from services import PlanService, apply_overrides, load_report, save_report, summarize

logger = logging.getLogger("provision")

EXIT_CODES = {
    RunOutcome.ALL_SUCCEEDED: 0,
    RunOutcome.PARTIAL_FAILURE: 1,
    RunOutcome.CONFIGURATION_ERROR: 2,
}


def parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """key=value pairs; values are parsed as YAML scalars/lists."""
    overrides: Dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ConfigurationError(f"--set expects key=value, got '{pair}'")
        key, raw = pair.split("=", 1)
        overrides[key.strip()] = yaml.safe_load(raw) if raw else ""
    return overrides


def _install_signal_handlers(context: RunContext) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, context.cancel)
        except NotImplementedError:
            # Windows event loops: Ctrl+C falls back to KeyboardInterrupt
            logger.debug(f"Signal handler for {sig.name} not supported on this platform")


async def run_plan(
    plan: ProvisioningPlan,
    settings: ProvisioningSettings,
    prior: Optional[RunReport] = None,
    only: Optional[List[str]] = None,
) -> RunReport:
    async with RunContext(settings) as context:
        _install_signal_handlers(context)
        executor = ProvisioningExecutor(context)
        report = await executor.run(
            plan.steps,
            config=plan.config,
            prior_report=prior,
            only=only,
            plan_id=plan.plan_id,
        )
        logger.info(f"Executor stats: {executor.stats}")
        return report


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Provision Fabric and Purview resources from a plan",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s workflows/fabric_purview.yaml --report reports/run.json
  %(prog)s workflows/fabric_purview.yaml --resume reports/run.json --report reports/rerun.json
  %(prog)s workflows/fabric_purview.yaml --set workspace.name=ws-test --max-workers 2
        """,
    )
    parser.add_argument("plan", help="Plan YAML file")
    parser.add_argument("--report", "-r", help="Write the run report (JSON) here")
    parser.add_argument("--resume", help="Prior report; re-run only its failed/skipped steps")
    parser.add_argument("--only", help="Comma-separated steps to run (needs --resume)")
    parser.add_argument("--set", "-s", action="append", default=[], metavar="KEY=VALUE",
                        help="Override a plan config value (repeatable)")
    parser.add_argument("--max-workers", "-w", type=int, help="Concurrent step limit")
    parser.add_argument("--log-level", "-l", default=os.getenv("LOG_LEVEL", "INFO"),
                        help="Log level (default: INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON on stdout")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args(argv)
    configure_logging(args.log_level, json_output=args.json_logs)

    try:
        plan = PlanService().load_file(args.plan)
        overrides = parse_overrides(args.set)
        if overrides:
            plan = apply_overrides(plan, overrides)
        prior = load_report(args.resume) if args.resume else None
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CODES[RunOutcome.CONFIGURATION_ERROR]

    settings = ProvisioningSettings.from_env()
    if args.max_workers:
        settings = dataclasses.replace(
            settings, executor=dataclasses.replace(settings.executor, max_workers=args.max_workers)
        )

    only = [name.strip() for name in args.only.split(",") if name.strip()] if args.only else None

    report = asyncio.run(run_plan(plan, settings, prior, only))

    if args.report:
        save_report(report, args.report)

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print(summarize(report))
        if report.outcome != RunOutcome.ALL_SUCCEEDED and not report.error:
            print(json.dumps({"rerun": report.failed_steps + report.skipped_steps}))

    return EXIT_CODES[report.outcome]


if __name__ == "__main__":
    sys.exit(main())
