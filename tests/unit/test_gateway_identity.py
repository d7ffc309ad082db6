"""Unit tests for caller identity, eligibility and JWT verification."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from config.settings import settings
from src.pm_common.errors import AdminRequiredError, NotEligibleError, UnauthenticatedError
from src.pm_gateway.auth.identity import CallerIdentity, is_eligible_email
from src.pm_gateway.auth.jwt_handler import create_access_token, decode_token


class TestEligibility:
    def test_domain_match_is_case_insensitive(self) -> None:
        assert is_eligible_email(" Alice@Cornell.EDU ", "cornell.edu")

    def test_subdomain_lookalike_rejected(self) -> None:
        assert not is_eligible_email("alice@notcornell.edu", "cornell.edu")
        assert not is_eligible_email("alice@cornell.edu.evil.com", "cornell.edu")

    def test_missing_email(self) -> None:
        assert not is_eligible_email(None, "cornell.edu")
        assert not is_eligible_email("", "cornell.edu")

    def test_allowlist_overrides_domain(self) -> None:
        caller = CallerIdentity.build("bot-1", "bot@example.com", allowlist=frozenset({"bot-1"}))
        assert caller.eligible

    def test_outsider_not_eligible(self) -> None:
        caller = CallerIdentity.build("eve", "eve@example.com", allowlist=frozenset())
        assert not caller.eligible
        with pytest.raises(NotEligibleError) as exc_info:
            caller.require_eligible()
        assert "cornell.edu" in exc_info.value.message


class TestRoles:
    def test_roles_from_list(self) -> None:
        caller = CallerIdentity.from_claims({"sub": "root", "email": "root@cornell.edu", "roles": ["admin"]})
        assert caller.is_admin
        assert caller.require_admin() is caller

    def test_roles_from_string(self) -> None:
        caller = CallerIdentity.from_claims({"sub": "root", "roles": "admin"})
        assert caller.is_admin

    def test_no_roles(self) -> None:
        caller = CallerIdentity.from_claims({"sub": "alice", "email": "alice@cornell.edu"})
        assert caller.eligible
        assert not caller.is_admin
        with pytest.raises(AdminRequiredError):
            caller.require_admin()

    def test_admin_need_not_be_eligible(self) -> None:
        caller = CallerIdentity.from_claims({"sub": "ops", "email": "ops@example.com", "roles": ["admin"]})
        assert not caller.eligible
        caller.require_admin()


class TestJwt:
    def test_round_trip(self) -> None:
        token = create_access_token("alice", "alice@cornell.edu", ["admin"])
        claims = decode_token(token)
        assert claims["sub"] == "alice"
        assert claims["email"] == "alice@cornell.edu"
        assert claims["roles"] == ["admin"]
        assert claims["type"] == "access"

    def test_email_omitted_when_none(self) -> None:
        assert "email" not in decode_token(create_access_token("alice"))

    def test_expired(self) -> None:
        past = datetime.now(UTC) - timedelta(hours=1)
        token = jwt.encode(
            {"sub": "alice", "type": "access", "iat": past, "exp": past + timedelta(minutes=1)},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(UnauthenticatedError):
            decode_token(token)

    def test_wrong_secret(self) -> None:
        token = jwt.encode({"sub": "alice", "type": "access"}, "other-secret", algorithm="HS256")
        with pytest.raises(UnauthenticatedError):
            decode_token(token)

    def test_tampered(self) -> None:
        header, _, signature = create_access_token("alice").split(".")
        forged_payload = create_access_token("mallory", roles=["admin"]).split(".")[1]
        with pytest.raises(UnauthenticatedError):
            decode_token(f"{header}.{forged_payload}.{signature}")

    def test_refresh_type_rejected(self) -> None:
        token = jwt.encode({"sub": "alice", "type": "refresh"}, settings.JWT_SECRET, algorithm="HS256")
        with pytest.raises(UnauthenticatedError):
            decode_token(token)

    def test_missing_subject(self) -> None:
        token = jwt.encode({"type": "access"}, settings.JWT_SECRET, algorithm="HS256")
        with pytest.raises(UnauthenticatedError):
            decode_token(token)

    def test_garbage(self) -> None:
        with pytest.raises(UnauthenticatedError):
            decode_token("not-a-jwt")
