"""004: create ledger_entries table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              VARCHAR(64)         PRIMARY KEY,
            user_id         VARCHAR(64)         NOT NULL,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets (id),
            scope_id        VARCHAR(128),
            side            VARCHAR(3)          NOT NULL,
            entry_type      VARCHAR(4)          NOT NULL,
            amount          DOUBLE PRECISION    NOT NULL,
            shares          DOUBLE PRECISION    NOT NULL,
            probability     DOUBLE PRECISION    NOT NULL,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            refunded        BOOLEAN             NOT NULL DEFAULT FALSE,
            refunded_at     TIMESTAMPTZ,
            refunded_by     VARCHAR(64),
            CONSTRAINT ck_ledger_side CHECK (side IN ('YES', 'NO')),
            CONSTRAINT ck_ledger_entry_type CHECK (entry_type IN ('BUY', 'SELL')),
            CONSTRAINT ck_ledger_signs CHECK (
                (entry_type = 'BUY' AND amount > 0 AND shares >= 0)
                OR (entry_type = 'SELL' AND amount <= 0 AND shares < 0)
            ),
            CONSTRAINT ck_ledger_probability CHECK (probability >= 0 AND probability <= 1),
            CONSTRAINT ck_ledger_refund_buy_only CHECK (NOT refunded OR entry_type = 'BUY')
        );
    """)
    op.execute("CREATE INDEX idx_ledger_market_user ON ledger_entries (market_id, user_id);")
    op.execute("CREATE INDEX idx_ledger_user_created ON ledger_entries (user_id, created_at);")
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_guard
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_guard_ledger_entry();
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'Append-only BUY/SELL trades; refund marker is the only update';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
