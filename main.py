# main.py
"""
CLI entrypoint for the public bucket audit.

- Supports two reporting modes:
  * analyzer-assisted: report buckets found public by the probe or by IAM Access Analyzer
  * probe-only: report every bucket's probe verdict, no analyzer lookup
- Prints one line per reported bucket; optionally a summary table and JSON/CSV/HTML reports.
"""

import argparse
import logging
import sys
import time

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from bucketscan.access_analyzer import AccessAnalyzerFindings, AnalyzerReconciler
from bucketscan.audit import AuditSetupError, run_audit
from bucketscan.aws_s3 import AnonymousReader, BucketProbe, S3ObjectStore
from config import (
    DEFAULT_AWS_CONNECT_TIMEOUT,
    DEFAULT_AWS_MAX_ATTEMPTS,
    DEFAULT_AWS_READ_TIMEOUT,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_WORKERS,
    EXIT_FATAL,
    EXIT_OK,
    EXIT_PUBLIC_FOUND,
    MODE_ANALYZER_ASSISTED,
    REPORT_MODES,
    resolve_profile,
    resolve_region,
)
from utils import print_report_lines, print_summary, save_report

logger = logging.getLogger("bucket_audit")


def build_clients(profile: str = None, region: str = None):
    """
    Create the S3 and Access Analyzer clients for one account/region.

    Credential model:
    - AWS Vault (or similar) may inject temporary credentials via environment variables.
    - A named profile is used when given.
    """
    try:
        session = boto3.Session(profile_name=profile, region_name=region) if profile \
            else boto3.Session(region_name=region)
        client_config = Config(
            connect_timeout=DEFAULT_AWS_CONNECT_TIMEOUT,
            read_timeout=DEFAULT_AWS_READ_TIMEOUT,
            retries={"max_attempts": DEFAULT_AWS_MAX_ATTEMPTS},
        )
        s3 = session.client("s3", config=client_config)
        aa = session.client("accessanalyzer", config=client_config)
    except BotoCoreError as e:
        raise AuditSetupError("unable to load AWS config", e) from e
    return s3, aa


def run_aws(profile: str = None, region: str = None, mode: str = MODE_ANALYZER_ASSISTED,
            workers: int = DEFAULT_WORKERS, timeout: float = DEFAULT_HTTP_TIMEOUT,
            deadline: float = None, report_dir: str = None, print_table: bool = False) -> int:
    """
    Run the audit against a live AWS account and return the process exit code.
    """
    region = resolve_region(region)
    profile = resolve_profile(profile)
    logger.info("Running %s audit (region=%s, profile=%s)", mode, region, profile or "-")

    try:
        s3, aa = build_clients(profile, region)
        store = S3ObjectStore(s3)
        probe = BucketProbe(store, AnonymousReader(timeout=timeout), region)
        report = run_audit(
            store,
            probe,
            reconciler=AnalyzerReconciler(AccessAnalyzerFindings(aa)),
            mode=mode,
            region=region,
            workers=workers,
            deadline=time.monotonic() + deadline if deadline else None,
        )
    except AuditSetupError as e:
        logger.error("fatal: %s", e)
        return EXIT_FATAL

    print_report_lines(report)
    report_paths = save_report(report, out_dir=report_dir) if report_dir else None
    if print_table or report_paths:
        print_summary(report, report_paths)

    if report.public_records:
        return EXIT_PUBLIC_FOUND
    return EXIT_OK


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Find publicly readable S3 buckets (probe + IAM Access Analyzer)."
    )
    p.add_argument(
        "--mode",
        choices=REPORT_MODES,
        default=MODE_ANALYZER_ASSISTED,
        help="Reporting mode (default: analyzer-assisted)",
    )
    p.add_argument(
        "--profile",
        help="AWS profile name (optional; env AWS_PROFILE)",
    )
    p.add_argument(
        "--region",
        help="AWS region (optional; env AWS_REGION)",
    )
    p.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help="Buckets probed in parallel (default: 1, sequential)",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_HTTP_TIMEOUT,
        help="Per-request timeout in seconds for the anonymous check",
    )
    p.add_argument(
        "--deadline",
        type=float,
        help="Overall run deadline in seconds; no new probes start after it",
    )
    p.add_argument(
        "--report-dir",
        help="Directory to save JSON/CSV/HTML reports (default: don't save)",
    )
    p.add_argument(
        "--print-table",
        action="store_true",
        help="Print a summary table after the report lines",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Only log fatal errors",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        help="Log level (DEBUG, INFO, ...)",
    )
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    level = logging.ERROR if args.quiet else getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)

    return run_aws(
        profile=args.profile,
        region=args.region,
        mode=args.mode,
        workers=args.workers,
        timeout=args.timeout,
        deadline=args.deadline,
        report_dir=args.report_dir,
        print_table=args.print_table,
    )


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
