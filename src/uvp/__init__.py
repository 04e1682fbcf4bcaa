"""uvp package: fetch user records, verify their embedded signatures, export audited CSV.

The pipeline never trusts a server-supplied "verified" flag. Each record's
``signature`` is checked against its own ``emailHash`` and ``publicKey`` and the
outcome is recomputed on every run.
"""
from .api.models import Batch, Provenance, UserRecord, VerificationOutcome  # noqa: F401
from .client.fetch import RecordBatchFetcher  # noqa: F401
from .export.csv_export import to_csv  # noqa: F401
from .verify.report import build_report  # noqa: F401
from .verify.signature import SignatureVerifier  # noqa: F401

__version__ = "0.1.0"
