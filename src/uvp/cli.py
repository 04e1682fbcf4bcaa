from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .api.models import Provenance
from .client.fetch import RecordBatchFetcher, batch_from_payload
from .errors import NetworkError, PayloadShapeError
from .export.csv_export import check_manifest, write_export
from .settings import Settings, load_settings
from .verify.report import build_report


def _fetcher(settings: Settings) -> RecordBatchFetcher:
    return RecordBatchFetcher(
        settings.api_base_url,
        timeout=settings.http_timeout_seconds,
        binary_accept=settings.binary_accept,
    )


def _load_batch(args: argparse.Namespace, settings: Settings):
    if getattr(args, "input", None):
        payload = json.loads(Path(args.input).read_text())
        return batch_from_payload(payload)
    with _fetcher(settings) as fetcher:
        return fetcher.fetch()


def cmd_fetch(args: argparse.Namespace, settings: Settings) -> int:
    with _fetcher(settings) as fetcher:
        batch = fetcher.fetch()
    print(json.dumps({
        "provenance": batch.provenance.value,
        "byteSize": batch.byte_size,
        "fetchedAt": batch.fetched_at.isoformat(),
        "records": len(batch.records),
    }, indent=2))
    return 0


def cmd_verify(args: argparse.Namespace, settings: Settings) -> int:
    report = build_report(_load_batch(args, settings), max_workers=settings.verify_max_workers)
    out = report.summary()
    if args.details:
        out["results"] = [r.model_dump(mode="json") for r in report.results]
    print(json.dumps(out, indent=2))
    return 0


def cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    report = build_report(_load_batch(args, settings), max_workers=settings.verify_max_workers)
    out_dir = Path(args.out) if args.out else settings.export_dir
    csv_path, manifest_path = write_export(report, out_dir)
    if report.provenance is Provenance.FALLBACK:
        print("Using fallback endpoint (binary export not available)", file=sys.stderr)
    print(f"Wrote {csv_path}")
    print(f"Wrote {manifest_path}")
    return 0


def cmd_check_manifest(args: argparse.Namespace, settings: Settings) -> int:
    csv_path, manifest_path = Path(args.csv), Path(args.manifest)
    for p in (csv_path, manifest_path):
        if not p.exists():
            print(f"Not found: {p}", file=sys.stderr)
            return 2
    if not check_manifest(csv_path, manifest_path):
        print("MISMATCH", file=sys.stderr)
        return 4
    print("OK")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="uvp", description="Fetch, verify and export signed user records")
    p.add_argument("--base-url", help="Directory service root (overrides UVP_API_BASE_URL)")
    p.add_argument("--log-level", help="Logging level (overrides UVP_LOG_LEVEL)")
    sub = p.add_subparsers(dest="cmd", required=True)

    fetch_p = sub.add_parser("fetch", help="Fetch a batch and print its metadata")
    fetch_p.set_defaults(func=cmd_fetch)

    verify_p = sub.add_parser("verify", help="Verify record signatures and print counts")
    verify_p.add_argument("--input", help="Verify a local JSON payload ({users: [...]} or [...]) instead of fetching")
    verify_p.add_argument("--details", action="store_true", help="Include per-record outcomes")
    verify_p.set_defaults(func=cmd_verify)

    export_p = sub.add_parser("export", help="Write users_export_<ms>.csv plus manifest")
    export_p.add_argument("--input", help="Export a local JSON payload instead of fetching")
    export_p.add_argument("--out", help="Output directory (default: UVP_EXPORT_DIR)")
    export_p.set_defaults(func=cmd_export)

    check_p = sub.add_parser("check-manifest", help="Re-hash an exported CSV against its manifest")
    check_p.add_argument("--csv", required=True)
    check_p.add_argument("--manifest", required=True)
    check_p.set_defaults(func=cmd_check_manifest)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {}
    if args.base_url:
        overrides["api_base_url"] = args.base_url
    if args.log_level:
        overrides["log_level"] = args.log_level
    settings = load_settings(**overrides)
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args, settings)
    except NetworkError as e:
        print(f"Error loading user data: {e}", file=sys.stderr)
        return 1
    except (PayloadShapeError, json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
