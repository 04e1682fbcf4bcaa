from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from ..api.models import Batch, Provenance, UserRecord
from ..errors import NetworkError, PayloadShapeError, TransportError

logger = logging.getLogger(__name__)

BINARY_CHANNEL = "binary"
STRUCTURED_CHANNEL = "structured"


class PayloadShape(str, Enum):
    """Transport shapes accepted from ``getUsers``."""

    WRAPPED = "wrapped"  # {"users": [...]}
    BARE = "bare"  # [...]


def detect_shape(payload: Any) -> PayloadShape:
    if isinstance(payload, list):
        return PayloadShape.BARE
    if isinstance(payload, dict) and isinstance(payload.get("users"), list):
        return PayloadShape.WRAPPED
    raise PayloadShapeError(
        STRUCTURED_CHANNEL, f"unrecognised payload shape ({type(payload).__name__})"
    )


def normalize_payload(payload: Any) -> list[Any]:
    """Return the raw record array from either recognised shape."""
    if detect_shape(payload) is PayloadShape.WRAPPED:
        return payload["users"]
    return payload


def parse_record(item: Any, position: int) -> UserRecord:
    """Read one entry. An unreadable entry stays in the batch as a malformed record."""
    try:
        return UserRecord.model_validate(item)
    except ValidationError as e:
        logger.warning("Record at position %d is malformed (%d error(s)), kept as unverifiable", position, e.error_count())
        return UserRecord.from_malformed(item, position)


def parse_records(items: list[Any]) -> tuple[UserRecord, ...]:
    return tuple(parse_record(item, i) for i, item in enumerate(items))


def serialized_size(items: list[Any]) -> int:
    """Compact UTF-8 JSON size of the record array actually used."""
    return len(json.dumps(items, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


@dataclass(frozen=True)
class BinaryProbe:
    byte_size: int
    fetched_at: datetime


class RecordBatchFetcher:
    """Acquire one batch of user records from the directory service.

    The binary ``/export`` channel is tried first and only contributes transport
    metadata (byte count, timestamp); its payload is not decoded. Records always
    come from the structured ``/getUsers`` channel. Provenance says which channel
    the batch metadata came from so a fallback batch is never passed off as binary.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        binary_accept: str = "application/x-protobuf",
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.binary_accept = binary_accept
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> RecordBatchFetcher:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _get(self, channel: str, path: str, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            r = self._client.get(path, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(channel, f"request failed: {e}") from e
        if not r.is_success:
            raise TransportError(
                channel, f"HTTP {r.status_code} {r.reason_phrase}", status_code=r.status_code
            )
        return r

    def probe_binary(self) -> BinaryProbe | None:
        """Try the binary channel. Returns None (never raises) when it is unavailable."""
        try:
            r = self._get(BINARY_CHANNEL, "/export", headers={"Accept": self.binary_accept})
        except TransportError as e:
            logger.info("Binary export unavailable, using fallback: %s", e)
            return None
        probe = BinaryProbe(byte_size=len(r.content), fetched_at=datetime.now(timezone.utc))
        logger.info("Binary export received: %d bytes", probe.byte_size)
        return probe

    def fetch_structured(self) -> list[Any]:
        r = self._get(STRUCTURED_CHANNEL, "/getUsers", headers={"Accept": "application/json"})
        try:
            payload = r.json()
        except ValueError as e:
            raise PayloadShapeError(STRUCTURED_CHANNEL, "response body is not JSON") from e
        return normalize_payload(payload)

    def fetch(self) -> Batch:
        binary = self.probe_binary()
        try:
            items = self.fetch_structured()
            records = parse_records(items)
        except TransportError as e:
            logger.exception("No channel produced records")
            raise NetworkError(f"Failed to fetch users: {e}") from e

        if binary is not None:
            return Batch(
                records=records,
                provenance=Provenance.BINARY,
                byte_size=binary.byte_size,
                fetched_at=binary.fetched_at,
            )
        return Batch(
            records=records,
            provenance=Provenance.FALLBACK,
            byte_size=serialized_size(items),
            fetched_at=datetime.now(timezone.utc),
        )


def batch_from_payload(payload: Any) -> Batch:
    """Build a fallback-provenance batch from an already-loaded JSON payload (file, POST body)."""
    items = normalize_payload(payload)
    return Batch(
        records=parse_records(items),
        provenance=Provenance.FALLBACK,
        byte_size=serialized_size(items),
        fetched_at=datetime.now(timezone.utc),
    )


__all__ = [
    "PayloadShape",
    "RecordBatchFetcher",
    "batch_from_payload",
    "detect_shape",
    "normalize_payload",
]
