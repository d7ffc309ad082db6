"""003: create wallets table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            user_id                     VARCHAR(64)         NOT NULL,
            scope_id                    VARCHAR(128),
            balance                     DOUBLE PRECISION    NOT NULL,
            lifetime_rep                DOUBLE PRECISION    NOT NULL DEFAULT 0,
            stipend_last_injected_at    TIMESTAMPTZ,
            version                     BIGINT              NOT NULL DEFAULT 1,
            created_at                  TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallets_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    # NULL scope = global wallet; one wallet per (user, scope) including the global one
    op.execute(
        "CREATE UNIQUE INDEX uq_wallets_user_scope ON wallets (user_id, COALESCE(scope_id, ''));"
    )
    op.execute("CREATE INDEX idx_wallets_scope ON wallets (scope_id);")
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
