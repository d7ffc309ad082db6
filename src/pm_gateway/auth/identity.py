"""Caller identity as asserted by the external identity provider."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from config.settings import settings
from src.pm_common.errors import AdminRequiredError, NotEligibleError

ADMIN_ROLE = "admin"


def is_eligible_email(email: str | None, domain: str) -> bool:
    if not email:
        return False
    return email.strip().lower().endswith(f"@{domain.lower()}")


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    email: str | None
    eligible: bool
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    def require_eligible(self) -> "CallerIdentity":
        if not self.eligible:
            raise NotEligibleError(settings.ELIGIBLE_EMAIL_DOMAIN)
        return self

    def require_admin(self) -> "CallerIdentity":
        if not self.is_admin:
            raise AdminRequiredError()
        return self

    @classmethod
    def build(
        cls,
        user_id: str,
        email: str | None,
        roles: Iterable[str] = (),
        domain: str | None = None,
        allowlist: frozenset[str] | None = None,
    ) -> "CallerIdentity":
        domain = domain or settings.ELIGIBLE_EMAIL_DOMAIN
        allowlist = settings.allowlisted_user_ids if allowlist is None else allowlist
        eligible = is_eligible_email(email, domain) or user_id in allowlist
        return cls(user_id=user_id, email=email, eligible=eligible, roles=frozenset(roles))

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "CallerIdentity":
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        return cls.build(
            user_id=str(claims["sub"]),
            email=claims.get("email"),
            roles=[str(r) for r in roles],
        )
