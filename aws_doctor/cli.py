"""Command line interface for aws-doctor."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import __version__
from .clients import AwsClients
from .concurrency import CancelToken
from .config import WasteConfig
from .core import run_cost_comparison, run_trend, run_waste_workflow
from .errors import AwsDoctorError, describe_error
from .output import (
    FORMAT_TABLE,
    OUTPUT_FORMATS,
    export_findings_to_excel,
    render_cost_comparison,
    render_trend,
    render_waste,
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed command line arguments."""

    parser = argparse.ArgumentParser(
        description="Compare AWS costs, show the spend trend and find wasted resources."
    )
    parser.add_argument("--profile", help="AWS CLI profile to use", default=None)
    parser.add_argument(
        "--region",
        help="AWS region (defaults to AWS_REGION, AWS_DEFAULT_REGION or ~/.aws/config)",
        default=None,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--trend", action="store_true", help="Display the spend of the last 6 months")
    mode.add_argument("--waste", action="store_true", help="Display the AWS waste report")
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default=FORMAT_TABLE,
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--stale-days",
        type=int,
        default=WasteConfig.stale_days,
        help="Age in days after which unused AMIs and snapshots are reported (default: 90)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the report if AWS has not answered within this many seconds",
    )
    parser.add_argument(
        "--excel",
        dest="excel_path",
        help="With --waste, also export the findings as an Excel workbook (.xlsx)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"aws-doctor {__version__}")
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point used by ``python -m aws_doctor``."""

    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = WasteConfig(stale_days=args.stale_days)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.excel_path and not args.waste:
        print("Warning: --excel is only used together with --waste", file=sys.stderr)

    cancel = CancelToken(timeout=args.timeout)
    try:
        session = boto3.Session(profile_name=args.profile, region_name=args.region)
        clients = AwsClients.from_session(session)
        if args.waste:
            report = run_waste_workflow(clients, cancel, config)
        elif args.trend:
            trend = run_trend(clients, cancel)
        else:
            comparison = run_cost_comparison(clients, cancel)
    except (BotoCoreError, ClientError, AwsDoctorError) as exc:
        logger.debug("Report failed", exc_info=True)
        print(f"Error: {describe_error(exc)}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        cancel.cancel()
        print("Error: interrupted", file=sys.stderr)
        return 130

    if args.waste:
        render_waste(report, args.output)
        if args.excel_path:
            try:
                path = export_findings_to_excel(report.findings(), args.excel_path)
            except RuntimeError as exc:
                print(f"Failed to export Excel report: {exc}", file=sys.stderr)
                return 1
            print(f"Excel report written to {path}", file=sys.stderr)
    elif args.trend:
        render_trend(trend, args.output)
    else:
        render_cost_comparison(comparison, args.output)
    return 0


__all__ = ["configure_logging", "main", "parse_args"]
