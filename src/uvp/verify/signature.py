from __future__ import annotations

import logging

from ..api.models import UserRecord, VerificationOutcome, VerificationResult
from ..errors import VerificationFailure
from .keys import Indeterminate, KeyHandle, KeyMaterialDecoder

logger = logging.getLogger(__name__)

_PROOF_FIELDS = (
    ("signature", "missing_signature"),
    ("email_hash", "missing_email_hash"),
    ("public_key", "missing_public_key"),
)


class SignatureVerifier:
    """Classify one record's signature as valid, invalid or indeterminate.

    Indeterminate means no usable proof was presented (field absent or not
    decodable). Invalid means a proof was decoded and the cryptographic check
    did not pass, including when the check itself raised. The two must stay
    distinct in reported counts.
    """

    def __init__(self, decoder: KeyMaterialDecoder | None = None):
        self.decoder = decoder or KeyMaterialDecoder()

    def verify_detailed(self, record: UserRecord) -> VerificationResult:
        if record.malformed:
            return VerificationResult(
                record_id=record.id, outcome=VerificationOutcome.INDETERMINATE, reason="malformed_record"
            )
        for field, reason in _PROOF_FIELDS:
            if not getattr(record, field):
                return VerificationResult(
                    record_id=record.id, outcome=VerificationOutcome.INDETERMINATE, reason=reason
                )

        material = self.decoder.decode(record.public_key, record.signature, record.email_hash)
        if isinstance(material, Indeterminate):
            return VerificationResult(
                record_id=record.id, outcome=VerificationOutcome.INDETERMINATE, reason=material.reason
            )

        try:
            self._check(material.key_handle, material.signature_bytes, material.hash_bytes)
        except VerificationFailure as e:
            logger.debug("Signature check failed for record %s: %s", record.id, e)
            return VerificationResult(record_id=record.id, outcome=VerificationOutcome.INVALID, reason=e.reason)
        return VerificationResult(record_id=record.id, outcome=VerificationOutcome.VALID)

    def verify(self, record: UserRecord) -> VerificationOutcome:
        return self.verify_detailed(record).outcome

    @staticmethod
    def _check(key_handle: KeyHandle, signature: bytes, message: bytes) -> None:
        try:
            key_handle.verify(signature, message)
        except Exception as e:  # noqa: BLE001 - InvalidSignature, BadSignatureError, length errors
            raise VerificationFailure("signature_mismatch", f"{key_handle.alg} verify failed: {e!r}") from e


__all__ = ["SignatureVerifier"]
