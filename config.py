"""
Central configuration and tunable constants.

- Default AWS profile and region can be overridden by CLI args or environment variables.
- Probe, timeout and exit-code constants are centralized for easy tuning.
"""

import os
from typing import Optional

# AWS Vault model:
# - We do NOT use a default profile (AWS Vault injects credentials)
# - We DO need a default region for boto3.Session(region_name=...)
DEFAULT_AWS_PROFILE = None
DEFAULT_AWS_REGION = "eu-west-1"

# Probe object: constant content, fresh key per probe
PROBE_CONTENT = b"test-please-delete-this-file"
PROBE_KEY_PREFIX = "bucketscan-probe-"

# Access Analyzer
S3_BUCKET_RESOURCE_TYPE = "AWS::S3::Bucket"
S3_BUCKET_ARN_PREFIX = "arn:aws:s3:::"

# Timeouts (seconds)
DEFAULT_HTTP_TIMEOUT = 5.0
DEFAULT_AWS_CONNECT_TIMEOUT = 5
DEFAULT_AWS_READ_TIMEOUT = 30
DEFAULT_AWS_MAX_ATTEMPTS = 3

# 1 worker keeps the probe loop strictly sequential
DEFAULT_WORKERS = 1

# Reporting
MODE_ANALYZER_ASSISTED = "analyzer-assisted"
MODE_PROBE_ONLY = "probe-only"
REPORT_MODES = (MODE_ANALYZER_ASSISTED, MODE_PROBE_ONLY)
REPORT_NAME_WIDTH = 60

EXIT_OK = 0
EXIT_PUBLIC_FOUND = 1
EXIT_FATAL = 3


def resolve_region(region: Optional[str] = None) -> str:
    """Resolve region: CLI -> env -> config default."""
    return region or os.environ.get("AWS_REGION") or DEFAULT_AWS_REGION


def resolve_profile(profile: Optional[str] = None) -> Optional[str]:
    """Resolve profile: CLI -> env -> config default (None lets AWS Vault inject credentials)."""
    return profile or os.environ.get("AWS_PROFILE") or DEFAULT_AWS_PROFILE
