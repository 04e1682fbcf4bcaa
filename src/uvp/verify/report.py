from __future__ import annotations

from collections import Counter
from concurrent.futures import ThreadPoolExecutor

from ..api.models import (
    Batch,
    VerificationCounts,
    VerificationOutcome,
    VerificationReport,
    VerificationResult,
)
from .signature import SignatureVerifier


def count_outcomes(results: tuple[VerificationResult, ...] | list[VerificationResult]) -> VerificationCounts:
    tally = Counter(r.outcome for r in results)
    return VerificationCounts(
        valid=tally[VerificationOutcome.VALID],
        invalid=tally[VerificationOutcome.INVALID],
        indeterminate=tally[VerificationOutcome.INDETERMINATE],
    )


def build_report(
    batch: Batch,
    verifier: SignatureVerifier | None = None,
    *,
    max_workers: int = 8,
) -> VerificationReport:
    """Verify every record of ``batch`` concurrently and join into a report.

    Records are independent (each is checked only against its own key), so they
    run on a thread pool with no shared state. ``map`` keeps input order, and all
    results are collected before counting. Nothing is filtered out.
    """
    verifier = verifier or SignatureVerifier()
    records = batch.records
    if records:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(records)))) as pool:
            results = tuple(pool.map(verifier.verify_detailed, records))
    else:
        results = ()
    return VerificationReport(
        records=records,
        results=results,
        counts=count_outcomes(results),
        provenance=batch.provenance,
        byte_size=batch.byte_size,
        fetched_at=batch.fetched_at,
    )


__all__ = ["build_report", "count_outcomes"]
