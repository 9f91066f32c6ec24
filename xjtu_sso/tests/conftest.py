"""
Shared fixtures for the SSO client tests.

HTTP traffic is served by ``httpx.MockTransport`` through ``FakeBackend``,
which records every request so tests can assert on exact calls.
"""

import base64
from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from xjtu_sso.auth.encoder import CredentialEncoder, load_public_key
from xjtu_sso.config import Settings


# Test RSA key pair generation for encrypting/decrypting credentials
def generate_test_keys():
    """Generate RSA key pair for testing"""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return private_key, public_pem.decode()


# Generate test keys once for reuse
TEST_PRIVATE_KEY, TEST_PUBLIC_KEY = generate_test_keys()


def decrypt_credential(value: str, marker: str = "__RSA__") -> str:
    """Reverse CredentialEncoder.encode with the test private key."""
    assert value.startswith(marker)
    ciphertext = base64.b64decode(value[len(marker):])
    block = TEST_PRIVATE_KEY.key_size // 8
    return b"".join(
        TEST_PRIVATE_KEY.decrypt(ciphertext[i:i + block], padding.PKCS1v15())
        for i in range(0, len(ciphertext), block)
    ).decode("utf-8")


# ============================================================================
# Fake Backend
# ============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


def respond(status_code: int = 200, json=None, headers=None) -> Handler:
    """Build a route handler returning a fresh response on every call."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=json, headers=headers)
    return handler


class FakeBackend:
    """
    Routes requests by (method, path) to queued handlers.

    The last handler of a route is reused once the queue is down to one.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Handler]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *handlers: Union[Handler, dict]) -> "FakeBackend":
        queue = self.routes.setdefault((method, path), [])
        for handler in handlers:
            queue.append(respond(200, json=handler) if isinstance(handler, dict) else handler)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "no route"})
        handler = queue.pop(0) if len(queue) > 1 else queue[0]
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Settings using the test key pair"""
    return Settings(RSA_PUBLIC_KEY=TEST_PUBLIC_KEY)


@pytest.fixture
def encoder():
    return CredentialEncoder(load_public_key(TEST_PUBLIC_KEY))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def factory(**overrides) -> Settings:
        overrides.setdefault("RSA_PUBLIC_KEY", TEST_PUBLIC_KEY)
        return Settings(**overrides)
    return factory
