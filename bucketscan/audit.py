# bucketscan/audit.py
"""
Audit orchestration.

- list_bucket_names is the only fatal step: no listing, no report.
- probe_buckets runs the probe over a bounded thread pool and stops launching
  new probes once cancelled or past the deadline.
- merge_records combines probe verdicts with the analyzer's public set.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional, Set

from botocore.exceptions import BotoCoreError, ClientError

from config import DEFAULT_WORKERS, MODE_ANALYZER_ASSISTED, MODE_PROBE_ONLY, REPORT_MODES
from models import AuditRecord, AuditReport

logger = logging.getLogger(__name__)


class AuditSetupError(Exception):
    """Fatal setup failure: credentials, configuration or bucket listing."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation}: {cause}")
        self.operation = operation
        self.cause = cause


def list_bucket_names(store) -> List[str]:
    try:
        return store.list_buckets()
    except (ClientError, BotoCoreError) as e:
        raise AuditSetupError("unable to list buckets", e) from e


def _safe_probe(probe, bucket: str) -> bool:
    # one bucket's failure must not abort the run
    try:
        return probe.probe(bucket)
    except Exception:
        logger.warning("probe of %s failed; treating as not public", bucket, exc_info=True)
        return False


def probe_buckets(probe, buckets: Iterable[str], workers: int = DEFAULT_WORKERS,
                  cancel: Optional[threading.Event] = None,
                  deadline: Optional[float] = None) -> Dict[str, bool]:
    """
    Probe each bucket and return {bucket: verdict} for the buckets actually probed.

    deadline is an absolute time.monotonic() value. Buckets not launched before
    cancellation or the deadline are absent from the result; probes already in
    flight always run to completion so their cleanup happens.
    """
    cancel = cancel or threading.Event()
    workers = max(1, workers)
    pending = iter(buckets)
    verdicts: Dict[str, bool] = {}

    def should_stop() -> bool:
        if cancel.is_set():
            return True
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("run deadline reached; no new probes will be started")
            cancel.set()
            return True
        return False

    with ThreadPoolExecutor(max_workers=workers) as executor:
        in_flight = {}

        def launch():
            while len(in_flight) < workers and not should_stop():
                bucket = next(pending, None)
                if bucket is None:
                    return
                in_flight[executor.submit(_safe_probe, probe, bucket)] = bucket

        launch()
        while in_flight:
            try:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            except KeyboardInterrupt:
                logger.warning("interrupted; waiting for %d in-flight probe(s) to clean up", len(in_flight))
                cancel.set()
                continue
            for future in done:
                verdicts[in_flight.pop(future)] = future.result()
            launch()

    return verdicts


def merge_records(buckets: Iterable[str], verdicts: Dict[str, bool],
                  analyzer_public: Set[str], mode: str = MODE_ANALYZER_ASSISTED) -> List[AuditRecord]:
    """
    Build report records in bucket listing order.

    analyzer-assisted: a bucket is reported when either signal fired.
    probe-only: every probed bucket is reported with its probe verdict.
    """
    records: List[AuditRecord] = []
    for name in buckets:
        if mode == MODE_PROBE_ONLY:
            if name in verdicts:
                records.append(AuditRecord(bucket=name, probe_public=verdicts[name]))
            continue
        record = AuditRecord(
            bucket=name,
            probe_public=verdicts.get(name, False),
            analyzer_public=name in analyzer_public,
        )
        if record.is_public:
            records.append(record)
    return records


def run_audit(store, probe, reconciler=None, mode: str = MODE_ANALYZER_ASSISTED,
              region: str = "", workers: int = DEFAULT_WORKERS,
              cancel: Optional[threading.Event] = None,
              deadline: Optional[float] = None) -> AuditReport:
    """
    Run one audit: list buckets, consult the analyzer once, probe each bucket, merge.

    Raises AuditSetupError when the bucket listing fails. Everything after that
    degrades to negative verdicts instead of raising.
    """
    if mode not in REPORT_MODES:
        raise ValueError(f"unknown report mode: {mode}")

    buckets = list_bucket_names(store)
    logger.info("found %d bucket(s)", len(buckets))

    analyzer_public: Set[str] = set()
    analyzer_status = "disabled"
    analyzer_failed_pages = 0
    if mode == MODE_ANALYZER_ASSISTED and reconciler is not None:
        analyzer_public = reconciler.list_public_buckets()
        analyzer_status = reconciler.status
        analyzer_failed_pages = reconciler.failed_pages
        logger.info("aa buckets: %s", sorted(analyzer_public))

    verdicts = probe_buckets(probe, buckets, workers=workers, cancel=cancel, deadline=deadline)
    skipped = [b for b in buckets if b not in verdicts]
    if skipped:
        logger.warning("%d bucket(s) were not probed", len(skipped))

    return AuditReport(
        mode=mode,
        region=region,
        buckets_scanned=len(buckets),
        records=merge_records(buckets, verdicts, analyzer_public, mode),
        skipped=skipped,
        analyzer_status=analyzer_status,
        analyzer_failed_pages=analyzer_failed_pages,
    )
