import base64

import httpx
import pytest

from uvp.verify.signing import gen_ed25519_keypair, gen_rsa_key, sign_record_ed25519, sign_record_rsa

BASE_URL = "http://directory.test/api_v1/user"


def make_user(i: int, **extra) -> dict:
    user = {
        "id": f"u{i}",
        "email": f"user{i}@example.com",
        "role": "admin" if i % 2 else "user",
        "status": "active",
        "createdAt": f"2024-03-0{(i % 9) + 1}T10:15:00Z",
    }
    user.update(extra)
    return user


def flip_bit(b64: str, byte_index: int = 0) -> str:
    raw = bytearray(base64.b64decode(b64))
    raw[byte_index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode()


def directory_transport(binary=None, structured=None, calls: list | None = None) -> httpx.MockTransport:
    """Mock directory service. ``binary``/``structured`` are httpx.Response factories or exceptions."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        path = request.url.path
        if path.endswith("/export"):
            target = binary
        elif path.endswith("/getUsers"):
            target = structured
        else:
            return httpx.Response(404, request=request)
        if target is None:
            return httpx.Response(404, request=request)
        if isinstance(target, Exception):
            raise target
        return target(request)

    return httpx.MockTransport(handler)


@pytest.fixture(scope="session")
def rsa_key():
    return gen_rsa_key(2048)


@pytest.fixture(scope="session")
def ed_keypair():
    return gen_ed25519_keypair()


@pytest.fixture()
def signed_rsa_user(rsa_key):
    return sign_record_rsa(make_user(1), rsa_key, "RS384")


@pytest.fixture()
def signed_ed_user(ed_keypair):
    sk, _vk = ed_keypair
    return sign_record_ed25519(make_user(2), sk)
