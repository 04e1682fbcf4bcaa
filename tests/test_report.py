from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import flip_bit, make_user
from uvp.api.models import Batch, Provenance, UserRecord, VerificationOutcome
from uvp.verify.report import build_report
from uvp.verify.signing import sign_record_rsa


def _batch(users: list[dict]) -> Batch:
    return Batch(
        records=tuple(UserRecord.model_validate(u) for u in users),
        provenance=Provenance.FALLBACK,
        byte_size=123,
        fetched_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


def test_counts_sum_to_record_count(rsa_key):
    users = []
    for i in range(12):
        u = sign_record_rsa(make_user(i), rsa_key)
        if i % 3 == 1:
            u["signature"] = flip_bit(u["signature"])
        elif i % 3 == 2:
            u.pop("publicKey")
        users.append(u)
    report = build_report(_batch(users), max_workers=4)
    assert report.counts.valid == 4
    assert report.counts.invalid == 4
    assert report.counts.indeterminate == 4
    assert report.counts.total == len(report.records) == 12


def test_no_records_dropped_and_order_kept(rsa_key):
    users = [make_user(i) for i in range(5)]  # no proof at all
    users[2] = sign_record_rsa(users[2], rsa_key)
    report = build_report(_batch(users))
    assert [r.id for r in report.records] == [u["id"] for u in users]
    assert [r.record_id for r in report.results] == [u["id"] for u in users]
    assert report.outcomes["u2"] is VerificationOutcome.VALID
    assert report.counts.indeterminate == 4


def test_empty_batch_report():
    report = build_report(_batch([]))
    assert report.records == ()
    assert report.counts.total == 0
    assert report.outcomes == {}


def test_report_carries_batch_metadata():
    report = build_report(_batch([make_user(1)]))
    summary = report.summary()
    assert summary["provenance"] == "fallback"
    assert summary["byteSize"] == 123
    assert summary["counts"] == {"valid": 0, "invalid": 0, "indeterminate": 1}


def test_rebuilding_report_recomputes_outcomes(signed_rsa_user):
    batch = _batch([signed_rsa_user])
    first = build_report(batch)
    second = build_report(batch)
    assert first.outcomes == second.outcomes == {"u1": VerificationOutcome.VALID}
    # Records are never annotated with their outcome
    assert not hasattr(batch.records[0], "outcome")


def test_counts_cannot_be_edited_after_build():
    report = build_report(_batch([make_user(1)]))
    with pytest.raises(ValidationError):
        report.counts.indeterminate = 0
    assert report.counts.indeterminate == 1
