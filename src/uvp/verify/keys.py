"""Decode a record's transport-encoded proof material into a usable verification key.

``publicKey`` is base64 of a JSON Web Key (RFC 7517). The JWK ``alg`` member picks
the scheme and digest; nothing is defaulted, so a descriptor without ``alg`` or
with an algorithm we do not implement is indeterminate rather than being checked
under a guessed scheme.

Supported descriptors::

    {"kty": "RSA", "alg": "RS256" | "RS384" | "RS512", "n": "<b64url>", "e": "<b64url>"}
    {"kty": "OKP", "crv": "Ed25519", "alg": "EdDSA", "x": "<b64url>"}

Every failure in here is a ``DecodeError`` internally and surfaces to callers as an
``Indeterminate`` value; ``decode`` never raises.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey

from ..errors import DecodeError

logger = logging.getLogger(__name__)

RSA_PKCS1_DIGESTS: dict[str, type[hashes.HashAlgorithm]] = {
    "RS256": hashes.SHA256,
    "RS384": hashes.SHA384,
    "RS512": hashes.SHA512,
}
EDDSA_CURVES = {"Ed25519"}
SUPPORTED_ALGS = frozenset([*RSA_PKCS1_DIGESTS, "EdDSA"])


class KeyHandle(Protocol):
    alg: str

    def verify(self, signature: bytes, message: bytes) -> None:
        """Raise if ``signature`` is not a valid signature over ``message``."""


@dataclass(frozen=True)
class RsaPkcs1KeyHandle:
    alg: str
    key: rsa.RSAPublicKey
    digest: hashes.HashAlgorithm

    def verify(self, signature: bytes, message: bytes) -> None:
        # PKCS#1 v1.5: the digest is computed over ``message`` by the library
        self.key.verify(signature, message, padding.PKCS1v15(), self.digest)


@dataclass(frozen=True)
class Ed25519KeyHandle:
    alg: str
    key: VerifyKey

    def verify(self, signature: bytes, message: bytes) -> None:
        self.key.verify(message, signature)


@dataclass(frozen=True)
class DecodedKeyMaterial:
    key_handle: KeyHandle
    signature_bytes: bytes
    hash_bytes: bytes


@dataclass(frozen=True)
class Indeterminate:
    reason: str


def _b64decode(value: str, *, urlsafe: bool = False) -> bytes:
    s = value.strip()
    s += "=" * (-len(s) % 4)
    return base64.b64decode(s, altchars=b"-_" if urlsafe else None, validate=True)


def _b64_field(value: str, reason: str) -> bytes:
    try:
        return _b64decode(value)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(reason, f"{reason}: {e}") from e


def _b64url_int(jwk: dict[str, Any], member: str) -> int:
    raw = jwk.get(member)
    if not isinstance(raw, str) or not raw:
        raise DecodeError("bad_key_descriptor", f"JWK member '{member}' missing")
    try:
        return int.from_bytes(_b64decode(raw, urlsafe=True), "big")
    except (binascii.Error, ValueError) as e:
        raise DecodeError("bad_key_descriptor", f"JWK member '{member}' not base64url") from e


def parse_descriptor(public_key_b64: str) -> dict[str, Any]:
    raw = _b64_field(public_key_b64, "bad_public_key_encoding")
    try:
        jwk = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError("bad_key_descriptor", "public key descriptor is not JSON") from e
    if not isinstance(jwk, dict):
        raise DecodeError("bad_key_descriptor", "public key descriptor is not a JSON object")
    return jwk


def _check_usage(jwk: dict[str, Any]) -> None:
    use = jwk.get("use")
    if use is not None and use != "sig":
        raise DecodeError("key_not_for_verify", f"JWK use={use!r}")
    key_ops = jwk.get("key_ops")
    if key_ops is not None and (not isinstance(key_ops, list) or "verify" not in key_ops):
        raise DecodeError("key_not_for_verify", f"JWK key_ops={key_ops!r}")


def import_jwk(jwk: dict[str, Any]) -> KeyHandle:
    """Import a JWK using exactly the algorithm it names."""
    alg = jwk.get("alg")
    if alg not in SUPPORTED_ALGS:
        raise DecodeError("unsupported_alg", f"unsupported or missing alg: {alg!r}")
    _check_usage(jwk)
    kty = jwk.get("kty")
    if alg in RSA_PKCS1_DIGESTS:
        if kty != "RSA":
            raise DecodeError("bad_key_descriptor", f"alg {alg} requires kty RSA, got {kty!r}")
        n = _b64url_int(jwk, "n")
        e = _b64url_int(jwk, "e")
        try:
            key = rsa.RSAPublicNumbers(e, n).public_key()
        except ValueError as err:
            raise DecodeError("key_import_failed", f"RSA key rejected: {err}") from err
        return RsaPkcs1KeyHandle(alg=alg, key=key, digest=RSA_PKCS1_DIGESTS[alg]())
    # EdDSA
    if kty != "OKP" or jwk.get("crv") not in EDDSA_CURVES:
        raise DecodeError("bad_key_descriptor", f"EdDSA requires kty OKP/crv Ed25519, got {kty!r}/{jwk.get('crv')!r}")
    x = jwk.get("x")
    if not isinstance(x, str) or not x:
        raise DecodeError("bad_key_descriptor", "JWK member 'x' missing")
    try:
        return Ed25519KeyHandle(alg=alg, key=VerifyKey(_b64decode(x, urlsafe=True)))
    except (binascii.Error, ValueError, TypeError, CryptoError) as err:
        raise DecodeError("key_import_failed", f"Ed25519 key rejected: {err}") from err


class KeyMaterialDecoder:
    """Turn (publicKey, signature, emailHash) base64 strings into verification inputs."""

    def decode_or_raise(
        self, public_key_b64: str, signature_b64: str, email_hash_b64: str
    ) -> DecodedKeyMaterial:
        signature_bytes = _b64_field(signature_b64, "bad_signature_encoding")
        hash_bytes = _b64_field(email_hash_b64, "bad_hash_encoding")
        key_handle = import_jwk(parse_descriptor(public_key_b64))
        return DecodedKeyMaterial(key_handle, signature_bytes, hash_bytes)

    def decode(
        self, public_key_b64: str, signature_b64: str, email_hash_b64: str
    ) -> DecodedKeyMaterial | Indeterminate:
        try:
            return self.decode_or_raise(public_key_b64, signature_b64, email_hash_b64)
        except DecodeError as e:
            logger.debug("Key material decode failed: %s", e)
            return Indeterminate(e.reason)
        except Exception as e:  # noqa: BLE001 - any library failure during import is "no usable proof"
            logger.debug("Unexpected key material decode failure: %s", e)
            return Indeterminate("key_import_failed")


__all__ = [
    "DecodedKeyMaterial",
    "Ed25519KeyHandle",
    "Indeterminate",
    "KeyHandle",
    "KeyMaterialDecoder",
    "RsaPkcs1KeyHandle",
    "import_jwk",
    "parse_descriptor",
]
