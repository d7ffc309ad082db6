"""Which wallet a trade touches.

A scoped market trades against the caller's wallet in that scope; a global
market against the caller's global wallet. Balances never move between the two.
"""

from src.pm_common.errors import InvalidParameterError, ScopeMismatchError
from src.pm_market.domain.models import Market
from src.pm_wallet.domain.models import WalletKey


def normalize_scope_id(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidParameterError("scope_id must be a string or null")
    return value.strip() or None


def assert_matching_scope(requested_scope_id: str | None, market: Market) -> None:
    """The client's idea of the market's scope must match the stored one."""
    if normalize_scope_id(requested_scope_id) != normalize_scope_id(market.scope_id):
        raise ScopeMismatchError()


def resolve_wallet_key(user_id: str, market: Market) -> WalletKey:
    return WalletKey(user_id=user_id, scope_id=normalize_scope_id(market.scope_id))
