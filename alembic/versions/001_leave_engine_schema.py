"""001: Leave engine schema: profiles, contracts, requests, holidays, audit.

Enum-typed columns are stored as VARCHAR (non-native enums in the ORM),
so no CREATE TYPE statements are needed.

Revision ID: 001_leave_engine_schema
Revises:
Create Date: 2026-03-02 09:00:00.000000+07:00
"""

from alembic import op

# Revision identifiers
revision = "001_leave_engine_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Columns every approvable request table shares (ApprovalMixin)
APPROVAL_COLUMNS = """
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            requester_employee_id  VARCHAR(64)  NOT NULL,
            requester_login_id     VARCHAR(100) NOT NULL,
            approval_mode          VARCHAR(32)  NOT NULL,
            status                 VARCHAR(32)  NOT NULL,
            manager_login_id       VARCHAR(100),
            gm_login_id            VARCHAR(100),
            coo_login_id           VARCHAR(100),
            approvals              JSONB        NOT NULL DEFAULT '[]'::jsonb,
            revision               INTEGER      NOT NULL DEFAULT 1,
            cancelled_at           TIMESTAMPTZ,
            cancelled_by           VARCHAR(100),
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW()"""

REQUEST_TABLES = ["leave_requests", "swap_working_day_requests", "replace_day_requests"]


def _approval_indexes(table: str) -> None:
    for col in ("requester_employee_id", "status", "manager_login_id", "gm_login_id", "coo_login_id"):
        op.execute(f"CREATE INDEX ix_{table}_{col} ON {table} ({col})")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. employee_directory (read-only mirror of the HR directory) ─────
    op.execute("""
        CREATE TABLE employee_directory (
            employee_id  VARCHAR(64) PRIMARY KEY,
            login_id     VARCHAR(100),
            name         VARCHAR(200) NOT NULL,
            department   VARCHAR(100),
            is_active    BOOLEAN DEFAULT TRUE
        )
    """)
    op.execute("CREATE INDEX ix_employee_directory_login_id ON employee_directory (login_id)")

    # ── 2. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            holiday_date  DATE PRIMARY KEY,
            name          VARCHAR(200) NOT NULL,
            created_by    VARCHAR(100),
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. leave_profiles ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_profiles (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id             VARCHAR(64)  NOT NULL UNIQUE,
            employee_login_id       VARCHAR(100) NOT NULL,
            join_date               DATE NOT NULL,
            current_contract_start  DATE,
            manager_login_id        VARCHAR(100),
            gm_login_id             VARCHAR(100),
            coo_login_id            VARCHAR(100),
            approval_mode           VARCHAR(32) NOT NULL DEFAULT 'MANAGER_AND_GM',
            is_active               BOOLEAN NOT NULL DEFAULT TRUE,
            balances_cache          JSONB,
            balances_as_of          DATE,
            version                 INTEGER NOT NULL DEFAULT 1,
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    for col in ("manager_login_id", "gm_login_id", "coo_login_id"):
        op.execute(f"CREATE INDEX ix_leave_profiles_{col} ON leave_profiles ({col})")

    # ── 4. leave_contracts ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_contracts (
            id                       UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            profile_id               UUID NOT NULL REFERENCES leave_profiles(id) ON DELETE CASCADE,
            contract_no              INTEGER NOT NULL,
            start_date               DATE NOT NULL,
            end_date                 DATE,
            al_carry_in              NUMERIC(5, 1) NOT NULL DEFAULT 0,
            accrual_baseline_months  INTEGER NOT NULL DEFAULT 0,
            opened_by                VARCHAR(100),
            closed_at                TIMESTAMPTZ,
            closed_by                VARCHAR(100),
            close_snapshot           JSONB,
            note                     TEXT,
            created_at               TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_contracts_profile_no UNIQUE (profile_id, contract_no),
            CONSTRAINT ck_leave_contracts_carry_debt_only CHECK (al_carry_in <= 0)
        )
    """)

    # ── 5. leave_requests ─────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_requests ({APPROVAL_COLUMNS},
            leave_type   VARCHAR(8) NOT NULL,
            start_date   DATE NOT NULL,
            end_date     DATE NOT NULL,
            start_half   VARCHAR(4),
            end_half     VARCHAR(4),
            total_days   NUMERIC(5, 1) NOT NULL,
            reason       TEXT
        )
    """)
    _approval_indexes("leave_requests")
    op.execute(
        "CREATE INDEX ix_leave_requests_requester_dates "
        "ON leave_requests (requester_employee_id, start_date)"
    )

    # ── 6. swap_working_day_requests ──────────────────────────────────────
    op.execute(f"""
        CREATE TABLE swap_working_day_requests ({APPROVAL_COLUMNS},
            request_start_date  DATE NOT NULL,
            request_end_date    DATE NOT NULL,
            request_total_days  INTEGER NOT NULL,
            off_start_date      DATE NOT NULL,
            off_end_date        DATE NOT NULL,
            off_total_days      INTEGER NOT NULL,
            reason              TEXT
        )
    """)
    _approval_indexes("swap_working_day_requests")

    # ── 7. replace_day_requests ───────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE replace_day_requests ({APPROVAL_COLUMNS},
            request_date       DATE NOT NULL,
            compensatory_date  DATE NOT NULL,
            total_days         NUMERIC(5, 1) NOT NULL DEFAULT 1,
            reason             TEXT
        )
    """)
    _approval_indexes("replace_day_requests")
    op.execute(
        "CREATE UNIQUE INDEX uq_replace_day_requests_live_pair "
        "ON replace_day_requests (requester_employee_id, request_date, compensatory_date) "
        "WHERE status <> 'CANCELLED'"
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     VARCHAR(100),
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    VARCHAR(64) NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail (actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail (entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail (action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "audit_trail",
        *reversed(REQUEST_TABLES),
        "leave_contracts",
        "leave_profiles",
        "holidays",
        "employee_directory",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
