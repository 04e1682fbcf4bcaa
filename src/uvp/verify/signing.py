"""Produce signed record proof material (emailHash, signature, publicKey).

Used for fixtures and demo data. The verifier never calls into this module.
"""
from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

from cryptography.hazmat.primitives.asymmetric import padding, rsa
from nacl.encoding import RawEncoder
from nacl.signing import SigningKey

from .keys import RSA_PKCS1_DIGESTS


def email_hash_b64(email: str) -> str:
    return base64.b64encode(hashlib.sha384(email.encode("utf-8")).digest()).decode()


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_uint(n: int) -> str:
    return _b64url(n.to_bytes((n.bit_length() + 7) // 8 or 1, "big"))


def rsa_public_jwk(public_key: rsa.RSAPublicKey, alg: str = "RS384") -> dict[str, Any]:
    nums = public_key.public_numbers()
    return {"kty": "RSA", "alg": alg, "n": _b64url_uint(nums.n), "e": _b64url_uint(nums.e), "ext": True, "key_ops": ["verify"]}


def ed25519_public_jwk(vk_bytes: bytes) -> dict[str, Any]:
    return {"kty": "OKP", "crv": "Ed25519", "alg": "EdDSA", "x": _b64url(vk_bytes)}


def encode_descriptor(jwk: dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(jwk, sort_keys=True, separators=(",", ":")).encode()).decode()


def gen_rsa_key(bits: int = 2048) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


def gen_ed25519_keypair() -> tuple[bytes, bytes]:
    sk = SigningKey.generate()
    return (bytes(sk), bytes(sk.verify_key))


def sign_record_rsa(record: dict[str, Any], private_key: rsa.RSAPrivateKey, alg: str = "RS384") -> dict[str, Any]:
    """Return a copy of wire-form ``record`` with RSASSA-PKCS1-v1_5 proof fields."""
    email_hash = email_hash_b64(record["email"])
    sig = private_key.sign(base64.b64decode(email_hash), padding.PKCS1v15(), RSA_PKCS1_DIGESTS[alg]())
    return {
        **record,
        "emailHash": email_hash,
        "signature": base64.b64encode(sig).decode(),
        "publicKey": encode_descriptor(rsa_public_jwk(private_key.public_key(), alg)),
    }


def sign_record_ed25519(record: dict[str, Any], sk_bytes: bytes) -> dict[str, Any]:
    email_hash = email_hash_b64(record["email"])
    sk = SigningKey(sk_bytes)
    sig = sk.sign(base64.b64decode(email_hash), encoder=RawEncoder).signature  # 64 bytes
    return {
        **record,
        "emailHash": email_hash,
        "signature": base64.b64encode(sig).decode(),
        "publicKey": encode_descriptor(ed25519_public_jwk(bytes(sk.verify_key))),
    }


__all__ = [
    "email_hash_b64",
    "encode_descriptor",
    "ed25519_public_jwk",
    "gen_ed25519_keypair",
    "gen_rsa_key",
    "rsa_public_jwk",
    "sign_record_ed25519",
    "sign_record_rsa",
]
