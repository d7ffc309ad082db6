"""002: create markets table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id                  VARCHAR(64)         PRIMARY KEY,
            question            VARCHAR(500)        NOT NULL,
            pool_yes            DOUBLE PRECISION    NOT NULL DEFAULT 0,
            pool_no             DOUBLE PRECISION    NOT NULL DEFAULT 0,
            b                   DOUBLE PRECISION    NOT NULL,
            probability         DOUBLE PRECISION    NOT NULL DEFAULT 0.5,
            status              VARCHAR(20)         NOT NULL DEFAULT 'OPEN',
            resolution          VARCHAR(3),
            scope_id            VARCHAR(128),
            total_volume        DOUBLE PRECISION    NOT NULL DEFAULT 0,
            category            VARCHAR(64),
            created_by          VARCHAR(64),
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            locked_at           TIMESTAMPTZ,
            resolved_at         TIMESTAMPTZ,
            cancelled_at        TIMESTAMPTZ,
            cancellation_reason VARCHAR(500),
            settlement_pending  BOOLEAN             NOT NULL DEFAULT FALSE,
            version             BIGINT              NOT NULL DEFAULT 1,
            updated_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_b_positive CHECK (b > 0),
            CONSTRAINT ck_markets_probability CHECK (probability >= 0 AND probability <= 1),
            CONSTRAINT ck_markets_status CHECK (
                status IN ('OPEN', 'LOCKED', 'RESOLVED', 'CANCELLED')
            ),
            CONSTRAINT ck_markets_resolution CHECK (
                (status = 'RESOLVED' AND resolution IN ('YES', 'NO'))
                OR (status <> 'RESOLVED' AND resolution IS NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_markets_status_scope ON markets (status, scope_id);")
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE markets IS 'Binary LMSR markets: pool state, lifecycle, resolution';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
