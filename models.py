# models.py
"""
Data models used by the audit.

- Keep simple, serializable dataclasses for findings, records and the report.
- Bucket identities are plain bucket-name strings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from config import S3_BUCKET_ARN_PREFIX, S3_BUCKET_RESOURCE_TYPE


@dataclass(frozen=True)
class AnalyzerFinding:
    """
    A single Access Analyzer finding, reduced to the fields the audit needs.

    Fields:
    - resource: resource ARN (e.g., "arn:aws:s3:::my-bucket")
    - resource_type: analyzer resource type (e.g., "AWS::S3::Bucket")
    - is_public: analyzer's public flag
    """
    resource: str
    resource_type: str
    is_public: bool

    @classmethod
    def from_summary(cls, summary: Dict[str, Any]) -> "AnalyzerFinding":
        return cls(
            resource=summary.get("resource", "") or "",
            resource_type=summary.get("resourceType", "") or "",
            is_public=bool(summary.get("isPublic", False)),
        )

    @property
    def is_public_bucket(self) -> bool:
        return self.is_public and self.resource_type == S3_BUCKET_RESOURCE_TYPE

    @property
    def bucket_name(self) -> str:
        if self.resource.startswith(S3_BUCKET_ARN_PREFIX):
            return self.resource[len(S3_BUCKET_ARN_PREFIX):]
        return self.resource


@dataclass(frozen=True)
class AuditRecord:
    """
    One line of the audit report.

    Fields:
    - bucket: bucket name
    - probe_public: anonymous read of a freshly written object succeeded
    - analyzer_public: Access Analyzer reports the bucket as public
    """
    bucket: str
    probe_public: bool
    analyzer_public: bool = False

    @property
    def is_public(self) -> bool:
        return self.probe_public or self.analyzer_public

    @property
    def signals(self) -> List[str]:
        fired = []
        if self.probe_public:
            fired.append("probe")
        if self.analyzer_public:
            fired.append("analyzer")
        return fired


@dataclass
class AuditReport:
    """
    Result of one audit run.

    analyzer_status is one of "ok", "partial", "no-analyzer", "error" or "disabled";
    analyzer_failed_pages counts findings pages that could not be read;
    skipped lists buckets never probed because the run was cancelled or hit its deadline.
    """
    mode: str
    region: str
    buckets_scanned: int
    records: List[AuditRecord] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    analyzer_status: str = "disabled"
    analyzer_failed_pages: int = 0

    @property
    def public_records(self) -> List[AuditRecord]:
        return [r for r in self.records if r.is_public]

    def summary(self) -> Dict[str, Any]:
        return {
            "buckets_scanned": self.buckets_scanned,
            "records_count": len(self.records),
            "public_count": len(self.public_records),
            "skipped_count": len(self.skipped),
            "analyzer_status": self.analyzer_status,
            "analyzer_failed_pages": self.analyzer_failed_pages,
        }
