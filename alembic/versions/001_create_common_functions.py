"""001: create common trigger functions

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_touch_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    # Ledger rows are immutable apart from the one-way refund marker
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_guard_ledger_entry()
        RETURNS TRIGGER AS $$
        BEGIN
            IF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION 'ledger entry % cannot be deleted', OLD.id;
            END IF;
            IF OLD.refunded THEN
                RAISE EXCEPTION 'ledger entry % is already refunded', OLD.id;
            END IF;
            IF (NEW.id, NEW.user_id, NEW.market_id, NEW.side, NEW.entry_type,
                NEW.amount, NEW.shares, NEW.probability, NEW.created_at)
               IS DISTINCT FROM
               (OLD.id, OLD.user_id, OLD.market_id, OLD.side, OLD.entry_type,
                OLD.amount, OLD.shares, OLD.probability, OLD.created_at)
            THEN
                RAISE EXCEPTION 'ledger entry % is append-only', OLD.id;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS fn_guard_ledger_entry();")
    op.execute("DROP FUNCTION IF EXISTS fn_touch_updated_at();")
