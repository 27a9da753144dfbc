"""001 – Initial schema: leave types, balances, requests, holidays, audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("leave_type_status", ["active", "inactive"]),
    ("holiday_type", ["public", "optional", "restricted"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id               UUID NOT NULL,
            code                    VARCHAR(20)  NOT NULL,
            name                    VARCHAR(100) NOT NULL,
            description             TEXT,
            is_system_defined       BOOLEAN DEFAULT FALSE,
            days_per_year           NUMERIC(5,2),
            allow_carry_forward     BOOLEAN DEFAULT FALSE,
            max_carry_forward_days  NUMERIC(5,2),
            min_notice_days         INTEGER DEFAULT 0,
            max_consecutive_days    INTEGER,
            is_paid                 BOOLEAN DEFAULT TRUE,
            color                   VARCHAR(7),
            status                  leave_type_status DEFAULT 'active',
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_type_tenant_code UNIQUE (tenant_id, code)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_type_tenant_status
            ON leave_types(tenant_id, status)
    """)

    # ── 2. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id       UUID NOT NULL,
            user_id         UUID NOT NULL,
            leave_type_id   UUID NOT NULL REFERENCES leave_types(id),
            year            INTEGER NOT NULL,
            total_allocated NUMERIC(5,2) NOT NULL DEFAULT 0,
            used            NUMERIC(5,2) NOT NULL DEFAULT 0,
            pending         NUMERIC(5,2) NOT NULL DEFAULT 0,
            available       NUMERIC(5,2) NOT NULL DEFAULT 0,
            carry_forward   NUMERIC(5,2) NOT NULL DEFAULT 0,
            version         INTEGER NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance_user_type_year
                UNIQUE (tenant_id, user_id, leave_type_id, year),
            CONSTRAINT ck_leave_balance_available CHECK (available >= 0),
            CONSTRAINT ck_leave_balance_pending   CHECK (pending >= 0),
            CONSTRAINT ck_leave_balance_used      CHECK (used >= 0)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_balance_tenant_user_year
            ON leave_balances(tenant_id, user_id, year)
    """)

    # ── 3. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id           UUID NOT NULL,
            user_id             UUID NOT NULL,
            leave_type_id       UUID NOT NULL REFERENCES leave_types(id),
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            total_days          NUMERIC(5,2) NOT NULL,
            reason              TEXT,
            status              leave_status DEFAULT 'pending',
            applied_date        TIMESTAMPTZ DEFAULT NOW(),
            approved_date       TIMESTAMPTZ,
            rejected_date       TIMESTAMPTZ,
            cancelled_date      TIMESTAMPTZ,
            rejection_reason    TEXT,
            reviewed_by         UUID,
            reviewer_comments   TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_request_tenant_user
            ON leave_requests(tenant_id, user_id)
    """)
    op.execute("""
        CREATE INDEX ix_leave_request_tenant_status
            ON leave_requests(tenant_id, status)
    """)
    op.execute("""
        CREATE INDEX ix_leave_request_dates
            ON leave_requests(tenant_id, start_date, end_date)
    """)

    # ── 4. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id   UUID NOT NULL,
            name        VARCHAR(200) NOT NULL,
            date        DATE NOT NULL,
            type        holiday_type DEFAULT 'public',
            description TEXT,
            is_optional BOOLEAN DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_holiday_tenant_date UNIQUE (tenant_id, date)
        )
    """)
    op.execute("CREATE INDEX ix_holiday_tenant_type ON holidays(tenant_id, type)")

    # ── 5. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id   UUID NOT NULL,
            actor_id    UUID,
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_tenant_actor
            ON audit_trail(tenant_id, actor_id)
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_entity
            ON audit_trail(entity_type, entity_id)
    """)
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "audit_trail",
        "holidays",
        "leave_requests",
        "leave_balances",
        "leave_types",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
