# bucketscan/access_analyzer.py
"""
IAM Access Analyzer reconciliation.

- AccessAnalyzerFindings wraps a boto3 accessanalyzer client.
- AnalyzerReconciler reads the first analyzer's public S3 bucket findings and
  reduces them to a set of bucket names.

This signal is best-effort: a missing analyzer or a failed page shrinks the
set, it never stops the audit.
"""

import logging
from typing import Any, Dict, Iterator, List, Protocol, Set

from botocore.exceptions import BotoCoreError, ClientError

from config import S3_BUCKET_RESOURCE_TYPE
from models import AnalyzerFinding

logger = logging.getLogger(__name__)

AWS_ERRORS = (ClientError, BotoCoreError)

PUBLIC_BUCKET_FILTER = {
    "resourceType": {"eq": [S3_BUCKET_RESOURCE_TYPE]},
    "isPublic": {"eq": ["true"]},
}


class FindingSource(Protocol):
    def list_analyzers(self) -> List[Dict[str, Any]]: ...

    def finding_pages(self, analyzer_arn: str,
                      criteria: Dict[str, Any]) -> Iterator[List[Dict[str, Any]]]: ...


# --- Live AWS helpers -----------------------------------------------------

class AccessAnalyzerFindings:
    """Finding source backed by a boto3 accessanalyzer client."""

    def __init__(self, client):
        self.client = client

    def list_analyzers(self) -> List[Dict[str, Any]]:
        # unused-access analyzers have no public-access findings
        resp = self.client.list_analyzers(type="ACCOUNT")
        return resp.get("analyzers", []) or []

    def finding_pages(self, analyzer_arn: str, criteria: Dict[str, Any]) -> Iterator[List[Dict[str, Any]]]:
        """
        Yield the findings of each list_findings page.
        A failed page raises and ends iteration; the next token is lost with it.
        """
        paginator = self.client.get_paginator("list_findings")
        for page in paginator.paginate(analyzerArn=analyzer_arn, filter=criteria):
            yield page.get("findings", []) or []


# --- Reconciliation -------------------------------------------------------

class AnalyzerReconciler:
    """
    Collects bucket names Access Analyzer already considers public.

    After list_public_buckets() returns, status is one of:
    - "ok": every findings page was read
    - "partial": some findings pages failed and were skipped
    - "no-analyzer": the account/region has no analyzer
    - "error": analyzers could not be listed, or no findings page could be read
    """

    def __init__(self, source: FindingSource):
        self.source = source
        self.status = "ok"
        self.failed_pages = 0

    def list_public_buckets(self) -> Set[str]:
        self.failed_pages = 0
        try:
            return self._collect()
        except Exception:
            logger.warning("unable to read Access Analyzer findings", exc_info=True)
            self.status = "error"
            return set()

    def _collect(self) -> Set[str]:
        try:
            analyzers = self.source.list_analyzers()
        except AWS_ERRORS as err:
            logger.warning("unable to list analysers: %s", err)
            self.status = "error"
            return set()

        if not analyzers:
            logger.warning("no analysers found in account")
            self.status = "no-analyzer"
            return set()

        # just take the first; accounts normally have one account-level analyzer
        analyzer = analyzers[0]
        logger.debug("using analyser %s", analyzer.get("name", analyzer.get("arn")))

        buckets: Set[str] = set()
        read_pages = 0
        pages = iter(self.source.finding_pages(analyzer["arn"], PUBLIC_BUCKET_FILTER))
        while True:
            try:
                page = next(pages)
            except StopIteration:
                break
            except AWS_ERRORS as err:
                logger.warning("pagination error for list findings: %s", err)
                self.failed_pages += 1
                continue
            read_pages += 1
            for summary in page:
                finding = AnalyzerFinding.from_summary(summary)
                if finding.is_public_bucket:
                    buckets.add(finding.bucket_name)

        if not self.failed_pages:
            self.status = "ok"
        elif read_pages:
            self.status = "partial"
        else:
            self.status = "error"
        return buckets
