"""JWT verification for tokens issued by the identity provider.

HS256 (symmetric HMAC): the provider and this service share JWT_SECRET.
Only access tokens are accepted; sign-in, refresh and revocation live with
the provider.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.pm_common.errors import UnauthenticatedError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)


def create_access_token(
    user_id: str, email: str | None = None, roles: Iterable[str] = ()
) -> str:
    """Issue an access token. Used by local tooling and tests in place of the provider."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": user_id,
        "type": "access",
        "iat": now,
        "exp": now + _ACCESS_EXPIRE,
        "roles": list(roles),
    }
    if email is not None:
        payload["email"] = email
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        UnauthenticatedError: signature, expiry, type or subject is invalid.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise UnauthenticatedError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise UnauthenticatedError()
    return payload
