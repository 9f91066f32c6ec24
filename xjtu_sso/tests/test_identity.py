"""
Identity Session Tests
"""

import time

import jwt
import pytest

from xjtu_sso.auth.identity import USER_AGENTS, IdentitySession
from xjtu_sso.errors import NoActiveSession
from xjtu_sso.models import LoginCredentials, TokenCredentials


def make_token(claims: dict) -> str:
    return jwt.encode(claims, "test-secret", algorithm="HS256")


class TestConstruction:
    """Test suite for building identity sessions"""

    def test_from_login_credentials(self):
        session = IdentitySession.from_credentials(
            LoginCredentials(netid="2221000001", password="pw", device_id="dev-1")
        )

        assert session.has_credentials is True
        assert session.has_token is False
        assert session.device_id == "dev-1"
        assert session.user_agent in USER_AGENTS

    def test_from_token_credentials(self):
        session = IdentitySession.from_credentials(
            TokenCredentials(id_token="id-1", user_agent="custom-agent")
        )

        assert session.has_credentials is False
        assert session.id_token == "id-1"
        assert session.refresh_token == ""
        assert session.user_agent == "custom-agent"

    def test_empty_session(self):
        session = IdentitySession.from_credentials(None)

        assert session.has_credentials is False
        assert session.has_token is False

    def test_device_markers_generated(self):
        first, second = IdentitySession(), IdentitySession()

        assert first.device_id != second.device_id
        assert first.client_id != first.device_id


class TestSetTokens:
    """Test suite for token replacement"""

    def test_replaces_pair(self):
        session = IdentitySession(id_token="old-id", refresh_token="old-refresh")

        pair = session.set_tokens("new-id", "new-refresh")

        assert pair.id_token == "new-id"
        assert session.tokens.refresh_token == "new-refresh"

    def test_missing_refresh_token_clears_old_one(self):
        session = IdentitySession(id_token="old-id", refresh_token="old-refresh")

        session.set_tokens("new-id")

        assert session.id_token == "new-id"
        assert session.refresh_token == ""


class TestTokenInspection:
    """Test suite for unverified JWT inspection"""

    def test_claims(self):
        session = IdentitySession(id_token=make_token({"sub": "2221000001"}))

        assert session.token_claims()["sub"] == "2221000001"

    def test_no_token(self):
        with pytest.raises(NoActiveSession):
            IdentitySession().token_claims()

    def test_not_a_jwt(self):
        with pytest.raises(jwt.InvalidTokenError):
            IdentitySession(id_token="opaque").token_claims()

    def test_expiry(self):
        exp = int(time.time()) + 3600
        session = IdentitySession(id_token=make_token({"exp": exp}))

        assert int(session.token_expiry().timestamp()) == exp
        assert session.is_token_expired() is False

    def test_expired_token(self):
        session = IdentitySession(id_token=make_token({"exp": int(time.time()) - 3600}))

        assert session.is_token_expired() is True

    def test_token_without_exp(self):
        session = IdentitySession(id_token=make_token({"sub": "x"}))

        assert session.token_expiry() is None
        assert session.is_token_expired() is True
