# utils.py
"""
Utility helpers: report lines, report generation, and console output.

- Report lines go to stdout, one per reported bucket.
- Uses Rich for colorful, wrapped tables in the terminal.
- Saves JSON, CSV, and HTML reports.
"""

from dataclasses import asdict
from datetime import datetime, timezone
from html import escape
from typing import Dict, List
import csv
import json
import os

from rich.console import Console
from rich.table import Table
from rich.text import Text

from config import REPORT_NAME_WIDTH
from models import AuditRecord, AuditReport

_console = Console()

RECORD_FIELDS = ["bucket", "probe_public", "analyzer_public", "signals"]


def format_report_line(record: AuditRecord, width: int = REPORT_NAME_WIDTH) -> str:
    """
    Format one record as '<bucket padded to width>\t(public: X, awspublic: Y)'.
    """
    return f"{record.bucket:<{width}}\t(public: {str(record.probe_public).lower()}, " \
           f"awspublic: {str(record.analyzer_public).lower()})"


def print_report_lines(report: AuditReport) -> None:
    for record in report.records:
        print(format_report_line(record))


def ensure_reports_dir(path: str = "reports") -> str:
    os.makedirs(path, exist_ok=True)
    return path


def record_to_dict(record: AuditRecord) -> Dict[str, object]:
    row = asdict(record)
    row["signals"] = ",".join(record.signals)
    return row


def report_to_dict(report: AuditReport, scan_time: str) -> dict:
    return {
        "scan_time": scan_time,
        "mode": report.mode,
        "summary": report.summary(),
        "records": [record_to_dict(r) for r in report.records],
        "extra": {"region": report.region, "skipped": list(report.skipped)},
    }


def save_report(report: AuditReport, out_dir: str = "reports") -> Dict[str, str]:
    """
    Save JSON, CSV, and HTML reports and return their paths.
    """
    out_dir = ensure_reports_dir(out_dir)
    now = datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"
    data = report_to_dict(report, now)

    base_ts = now.replace(":", "-")
    json_path = os.path.join(out_dir, f"scan-{base_ts}-{report.mode}.json")
    csv_path = os.path.join(out_dir, f"scan-{base_ts}-{report.mode}.csv")
    html_path = os.path.join(out_dir, f"scan-{base_ts}-{report.mode}.html")

    # JSON
    with open(json_path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)

    # CSV
    with open(csv_path, "w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=RECORD_FIELDS)
        writer.writeheader()
        for row in data["records"]:
            writer.writerow({k: row.get(k, "") for k in RECORD_FIELDS})

    # HTML
    html_rows: List[str] = []
    html_rows.append("<!doctype html>")
    html_rows.append("<html><head><meta charset='utf-8'><title>Public Bucket Audit</title>")
    html_rows.append("<style>body{font-family:Arial,Helvetica,sans-serif;margin:20px}table{border-collapse:collapse;width:100%}th,td{border:1px solid #ddd;padding:8px}th{background:#f2f2f2;text-align:left}tr:nth-child(even){background:#fafafa}</style>")
    html_rows.append("</head><body>")
    html_rows.append(f"<h2>Public Bucket Audit - {now} - mode: {escape(report.mode)}</h2>")
    html_rows.append("<div><strong>Summary:</strong><ul>")
    for k, v in data["summary"].items():
        html_rows.append(f"<li>{k}: {escape(str(v))}</li>")
    html_rows.append(f"<li>region: {escape(report.region)}</li>")
    html_rows.append("</ul></div>")
    html_rows.append("<table><thead><tr><th>Bucket</th><th>Probe</th><th>Analyzer</th><th>Signals</th></tr></thead><tbody>")
    for row in data["records"]:
        html_rows.append(
            f"<tr><td>{escape(row['bucket'])}</td><td>{row['probe_public']}</td>"
            f"<td>{row['analyzer_public']}</td><td>{escape(row['signals'])}</td></tr>"
        )
    html_rows.append("</tbody></table></body></html>")
    with open(html_path, "w", encoding="utf-8") as fh:
        fh.write("\n".join(html_rows))

    return {"json": json_path, "csv": csv_path, "html": html_path}

# --- Console printing with color/wrapping ---

def _rich_verdict_text(verdict: bool):
    if verdict:
        return Text("public", style="bold red")
    return Text("-", style="green")


def print_summary(report: AuditReport, report_paths: Dict[str, str] = None, console: Console = None):
    """
    Print a compact summary and a colorful table of records.
    """
    console = console or _console
    summary = report.summary()
    console.print("\nAudit summary:")
    console.print(f"- Mode: {report.mode} (region={report.region})")
    console.print(f"- Buckets scanned: {summary['buckets_scanned']}")
    console.print(f"- Public buckets: {summary['public_count']}")
    console.print(f"- Access Analyzer: {summary['analyzer_status']}")
    if report.analyzer_failed_pages:
        console.print(f"- Access Analyzer pages skipped: {report.analyzer_failed_pages}")
    if report.skipped:
        console.print(f"- Not probed: {', '.join(report.skipped)}")
    if report.records:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Bucket", style="cyan", overflow="fold")
        table.add_column("Probe")
        table.add_column("Analyzer")
        for r in report.records:
            table.add_row(r.bucket, _rich_verdict_text(r.probe_public), _rich_verdict_text(r.analyzer_public))
        console.print(table)
    if report_paths:
        console.print("\nSaved reports:")
        console.print(f"- JSON: {report_paths.get('json')}")
        console.print(f"- CSV:  {report_paths.get('csv')}")
        console.print(f"- HTML: {report_paths.get('html')}\n")
