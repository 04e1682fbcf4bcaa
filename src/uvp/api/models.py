from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

KNOWN_ROLES = ("user", "admin")
KNOWN_STATUSES = ("active", "inactive")


def _scalar_text(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    return str(value)


class UserRecord(BaseModel):
    """One directory entry as served by ``getUsers``. Read-only to the pipeline.

    ``role``/``status`` are normally one of ``KNOWN_ROLES``/``KNOWN_STATUSES`` but are
    kept as served; they do not take part in verification.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: str
    email: str = ""
    role: str = ""
    status: str = ""
    created_at: datetime | None = Field(default=None, alias="createdAt")
    # Proof material; any of these missing means no proof was offered
    email_hash: str | None = Field(default=None, alias="emailHash")
    signature: str | None = None
    public_key: str | None = Field(default=None, alias="publicKey")
    # Set when the served entry could not be read as a record; never verifiable
    malformed: bool = False

    @classmethod
    def from_malformed(cls, item: Any, position: int) -> UserRecord:
        """Keep an unreadable entry in the batch with whatever identity it shows."""
        fields = item if isinstance(item, dict) else {}
        return cls(
            id=_scalar_text(fields.get("id")) or f"#{position}",
            email=_scalar_text(fields.get("email")) or "",
            role=_scalar_text(fields.get("role")) or "",
            status=_scalar_text(fields.get("status")) or "",
            malformed=True,
        )


class Provenance(str, Enum):
    BINARY = "binary"
    FALLBACK = "fallback"


class Batch(BaseModel):
    model_config = ConfigDict(frozen=True)

    records: tuple[UserRecord, ...] = ()
    provenance: Provenance
    byte_size: int  # binary payload length, or compact JSON size of the structured records
    fetched_at: datetime


class VerificationOutcome(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    INDETERMINATE = "indeterminate"


class VerificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: str
    outcome: VerificationOutcome
    reason: str | None = None  # None when valid


class VerificationCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: int = 0
    invalid: int = 0
    indeterminate: int = 0

    @property
    def total(self) -> int:
        return self.valid + self.invalid + self.indeterminate


class VerificationReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    records: tuple[UserRecord, ...]
    results: tuple[VerificationResult, ...]  # same order and length as records
    counts: VerificationCounts
    provenance: Provenance
    byte_size: int
    fetched_at: datetime

    @property
    def outcomes(self) -> dict[str, VerificationOutcome]:
        return {r.record_id: r.outcome for r in self.results}

    def summary(self) -> dict:
        return {
            "provenance": self.provenance.value,
            "byteSize": self.byte_size,
            "fetchedAt": self.fetched_at.isoformat(),
            "total": len(self.records),
            "counts": self.counts.model_dump(),
        }
