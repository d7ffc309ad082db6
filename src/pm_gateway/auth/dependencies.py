"""FastAPI dependencies: caller identity, eligibility and admin role.

Usage in any protected router:
    from src.pm_gateway.auth.dependencies import require_eligible_caller

    @router.post("/trades/bet")
    async def bet(caller: Annotated[CallerIdentity, Depends(require_eligible_caller)]):
        ...
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.pm_common.errors import UnauthenticatedError
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_gateway.auth.jwt_handler import decode_token

# auto_error=False so a missing header maps to our own 1001 envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


async def get_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> CallerIdentity:
    """Decode the Bearer token into a CallerIdentity; 401 if missing or invalid."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError()
    return CallerIdentity.from_claims(decode_token(credentials.credentials))


async def require_eligible_caller(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
) -> CallerIdentity:
    return caller.require_eligible()


async def require_admin(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
) -> CallerIdentity:
    """Admin role claim required; eligibility is not."""
    return caller.require_admin()
