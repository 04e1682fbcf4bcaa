from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import Body, FastAPI, HTTPException, Response

from ..client.fetch import RecordBatchFetcher, batch_from_payload
from ..errors import NetworkError, PayloadShapeError
from ..export.csv_export import export_filename, report_to_csv
from ..settings import Settings, load_settings
from ..verify.report import build_report
from ..verify.signature import SignatureVerifier
from .models import Batch, VerificationReport

logger = logging.getLogger(__name__)


def report_body(report: VerificationReport) -> dict[str, Any]:
    body = report.summary()
    body["records"] = [
        {
            "id": rec.id,
            "email": rec.email,
            "role": rec.role,
            "status": rec.status,
            "createdAt": rec.created_at.isoformat() if rec.created_at else None,
            "outcome": res.outcome.value,
            "reason": res.reason,
        }
        for rec, res in zip(report.records, report.results)
    ]
    return body


def create_app(settings: Settings | None = None, *, transport: httpx.BaseTransport | None = None) -> FastAPI:
    """Build the API. Configuration and the directory transport are bound here, not read globally."""
    settings = settings or load_settings()
    app = FastAPI(title="uvp - user signature verification & export")
    app.state.settings = settings
    app.state.verifier = SignatureVerifier()

    def _fetch_batch() -> Batch:
        with RecordBatchFetcher(
            settings.api_base_url,
            timeout=settings.http_timeout_seconds,
            binary_accept=settings.binary_accept,
            transport=transport,
        ) as fetcher:
            try:
                return fetcher.fetch()
            except NetworkError as e:
                raise HTTPException(status_code=502, detail=str(e)) from e

    def _report(batch: Batch) -> VerificationReport:
        return build_report(batch, app.state.verifier, max_workers=settings.verify_max_workers)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/verify")
    def verify_remote():
        return report_body(_report(_fetch_batch()))

    @app.post("/verify/records")
    def verify_records(payload: Any = Body(...)):
        try:
            batch = batch_from_payload(payload)
        except PayloadShapeError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return report_body(_report(batch))

    @app.get("/export.csv")
    def export_csv():
        report = _report(_fetch_batch())
        name = export_filename()
        logger.info(
            "Export %s: %d rows, provenance=%s", name, len(report.records), report.provenance.value
        )
        return Response(
            content=report_to_csv(report),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{name}"',
                "X-Batch-Provenance": report.provenance.value,
            },
        )

    return app


app = create_app()
