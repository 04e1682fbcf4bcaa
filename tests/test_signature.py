import pytest

from conftest import flip_bit, make_user
from uvp.api.models import UserRecord, VerificationOutcome
from uvp.verify.keys import KeyMaterialDecoder
from uvp.verify.signature import SignatureVerifier
from uvp.verify.signing import gen_ed25519_keypair, sign_record_ed25519, sign_record_rsa


def _verify(user: dict) -> VerificationOutcome:
    return SignatureVerifier().verify(UserRecord.model_validate(user))


@pytest.mark.parametrize("alg", ["RS256", "RS384", "RS512"])
def test_rsa_signed_record_is_valid(rsa_key, alg):
    assert _verify(sign_record_rsa(make_user(1), rsa_key, alg)) is VerificationOutcome.VALID


def test_ed25519_signed_record_is_valid(signed_ed_user):
    assert _verify(signed_ed_user) is VerificationOutcome.VALID


@pytest.mark.parametrize("field", ["signature", "emailHash", "publicKey"])
def test_missing_proof_field_is_indeterminate(signed_rsa_user, field):
    user = dict(signed_rsa_user)
    del user[field]
    assert _verify(user) is VerificationOutcome.INDETERMINATE
    user[field] = ""
    assert _verify(user) is VerificationOutcome.INDETERMINATE


def test_missing_proof_skips_decoding(signed_rsa_user):
    class ExplodingDecoder(KeyMaterialDecoder):
        def decode(self, *args):
            raise AssertionError("decode must not be called")

    user = dict(signed_rsa_user)
    del user["signature"]
    result = SignatureVerifier(ExplodingDecoder()).verify_detailed(UserRecord.model_validate(user))
    assert result.outcome is VerificationOutcome.INDETERMINATE
    assert result.reason == "missing_signature"


@pytest.mark.parametrize("byte_index", [0, 17, -1])
def test_flipped_signature_bit_is_invalid(signed_rsa_user, byte_index):
    user = dict(signed_rsa_user, signature=flip_bit(signed_rsa_user["signature"], byte_index))
    assert _verify(user) is VerificationOutcome.INVALID


def test_flipped_ed25519_signature_bit_is_invalid(signed_ed_user):
    user = dict(signed_ed_user, signature=flip_bit(signed_ed_user["signature"], 5))
    assert _verify(user) is VerificationOutcome.INVALID


def test_signature_from_other_key_is_invalid(signed_ed_user):
    other_sk, _ = gen_ed25519_keypair()
    forged = sign_record_ed25519(make_user(2), other_sk)
    # Signature from one key presented with the record's own embedded key
    user = dict(signed_ed_user, signature=forged["signature"])
    assert _verify(user) is VerificationOutcome.INVALID


def test_hash_substitution_is_invalid(signed_rsa_user, rsa_key):
    other = sign_record_rsa(make_user(3), rsa_key)
    user = dict(signed_rsa_user, emailHash=other["emailHash"])
    assert _verify(user) is VerificationOutcome.INVALID


def test_truncated_signature_is_invalid_not_indeterminate(signed_ed_user):
    # Decodes fine but the verify call itself raises on the wrong length
    user = dict(signed_ed_user, signature="AAAA")
    result = SignatureVerifier().verify_detailed(UserRecord.model_validate(user))
    assert result.outcome is VerificationOutcome.INVALID
    assert result.reason == "signature_mismatch"


def test_undecodable_proof_is_indeterminate_not_invalid(signed_rsa_user):
    user = dict(signed_rsa_user, publicKey="@@not-a-key@@")
    result = SignatureVerifier().verify_detailed(UserRecord.model_validate(user))
    assert result.outcome is VerificationOutcome.INDETERMINATE
    assert result.reason == "bad_public_key_encoding"
