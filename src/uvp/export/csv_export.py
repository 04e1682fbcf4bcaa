from __future__ import annotations

import base64
import csv
import hashlib
import io
import json
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from ..api.models import UserRecord, VerificationOutcome, VerificationReport

HEADER = ("ID", "Email", "Role", "Status", "CreatedAt", "SignatureValid")


def iso_utc(ts: datetime) -> str:
    """Locale independent ISO-8601, UTC with a ``Z`` suffix. Naive values are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def signature_cell(outcome: VerificationOutcome | None) -> str:
    # "Yes" means provably valid; invalid, indeterminate and unknown all render "No"
    return "Yes" if outcome is VerificationOutcome.VALID else "No"


def _row(record: UserRecord, outcome: VerificationOutcome | None) -> list[str]:
    return [
        record.id,
        record.email,
        record.role,
        record.status,
        iso_utc(record.created_at) if record.created_at is not None else "",
        signature_cell(outcome),
    ]


def encode_rows(rows: Iterable[Iterable[str]]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def to_csv(records: Iterable[UserRecord], outcomes: Mapping[str, VerificationOutcome]) -> bytes:
    """Render records and their outcomes as CSV bytes, one row per record in input order."""
    return encode_rows([HEADER, *(_row(r, outcomes.get(r.id)) for r in records)])


def report_to_csv(report: VerificationReport) -> bytes:
    # Per-position outcomes, so duplicate ids keep their own result
    return encode_rows([HEADER, *(_row(rec, res.outcome) for rec, res in zip(report.records, report.results))])


def export_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return f"users_export_{int(now.timestamp() * 1000)}.csv"


def sha256_b64(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode()


def build_manifest(report: VerificationReport, csv_bytes: bytes, filename: str, generated_at: datetime) -> dict:
    return {
        "file": filename,
        "csv_sha256_b64": sha256_b64(csv_bytes),
        "rows": len(report.records),
        "counts": report.counts.model_dump(),
        "provenance": report.provenance.value,
        "byte_size": report.byte_size,
        "fetched_at": iso_utc(report.fetched_at),
        "generated_at": iso_utc(generated_at),
    }


def canonical_json(obj: dict) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def write_export(report: VerificationReport, out_dir: Path, now: datetime | None = None) -> tuple[Path, Path]:
    """Write ``users_export_<ms>.csv`` and its ``.manifest.json`` sidecar. Returns both paths."""
    now = now or datetime.now(timezone.utc)
    out_dir.mkdir(parents=True, exist_ok=True)
    name = export_filename(now)
    csv_bytes = report_to_csv(report)
    csv_path = out_dir / name
    csv_path.write_bytes(csv_bytes)
    manifest_path = out_dir / f"{name}.manifest.json"
    manifest_path.write_bytes(canonical_json(build_manifest(report, csv_bytes, name, now)))
    return csv_path, manifest_path


def check_manifest(csv_path: Path, manifest_path: Path) -> bool:
    """Re-hash an exported CSV and compare against its manifest."""
    manifest = json.loads(manifest_path.read_text())
    csv_bytes = csv_path.read_bytes()
    try:
        text = csv_bytes.decode("utf-8")
    except UnicodeDecodeError:
        # Exports are always UTF-8
        return False
    parsed = csv.reader(io.StringIO(text, newline=""))
    rows = max(sum(1 for _ in parsed) - 1, 0)
    return sha256_b64(csv_bytes) == manifest.get("csv_sha256_b64") and rows == manifest.get("rows")


__all__ = [
    "HEADER",
    "build_manifest",
    "check_manifest",
    "export_filename",
    "report_to_csv",
    "to_csv",
    "write_export",
]
