"""005: create settlements, notifications and admin_log tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Primary key doubles as the idempotency marker for bulk settlement
    op.execute("""
        CREATE TABLE settlements (
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets (id),
            user_id         VARCHAR(64)         NOT NULL,
            scope_id        VARCHAR(128),
            kind            VARCHAR(10)         NOT NULL,
            amount          DOUBLE PRECISION    NOT NULL,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            PRIMARY KEY (market_id, user_id),
            CONSTRAINT ck_settlements_kind CHECK (kind IN ('PAYOUT', 'REFUND')),
            CONSTRAINT ck_settlements_amount_gte_0 CHECK (amount >= 0)
        );
    """)
    op.execute("""
        CREATE TABLE notifications (
            id              VARCHAR(64)         PRIMARY KEY,
            user_id         VARCHAR(64)         NOT NULL,
            type            VARCHAR(16)         NOT NULL,
            category        VARCHAR(32)         NOT NULL,
            amount          DOUBLE PRECISION    NOT NULL,
            message         VARCHAR(1000),
            market_id       VARCHAR(64),
            market_question VARCHAR(500),
            resolution      VARCHAR(3),
            read            BOOLEAN             NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_notifications_type CHECK (type IN ('payout', 'loss', 'refund', 'stipend'))
        );
    """)
    op.execute("CREATE INDEX idx_notifications_user ON notifications (user_id, created_at DESC);")
    op.execute("""
        CREATE TABLE admin_log (
            id              VARCHAR(64)     PRIMARY KEY,
            action          VARCHAR(32)     NOT NULL,
            detail          TEXT            NOT NULL,
            actor           VARCHAR(64)     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS admin_log CASCADE;")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
    op.execute("DROP TABLE IF EXISTS settlements CASCADE;")
