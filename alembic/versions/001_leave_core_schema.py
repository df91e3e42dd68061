"""001 – Leave core schema: directory tables, leave catalog, ledger, requests.

Revision ID: 001_leave_core_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_leave_core_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("gender_type", ["male", "female", "other", "undisclosed"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
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
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL,
            code        VARCHAR(20) UNIQUE,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. teams ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE teams (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name          VARCHAR(150) NOT NULL,
            department_id UUID REFERENCES departments(id),
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code     VARCHAR(20)  NOT NULL UNIQUE,
            first_name        VARCHAR(100) NOT NULL,
            last_name         VARCHAR(100) NOT NULL,
            display_name      VARCHAR(255),
            email             VARCHAR(255) NOT NULL UNIQUE,
            gender            gender_type,
            date_of_joining   DATE NOT NULL,
            department_id     UUID REFERENCES departments(id),
            team_id           UUID REFERENCES teams(id),
            profile_photo_url TEXT,
            is_active         BOOLEAN DEFAULT TRUE,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_team ON employees(team_id)")
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")

    # ── 4. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code                         VARCHAR(10)  NOT NULL UNIQUE,
            name                         VARCHAR(100) NOT NULL,
            description                  TEXT,
            color                        VARCHAR(7) DEFAULT '#4CAF50',
            is_paid                      BOOLEAN DEFAULT TRUE,
            max_days_per_year            NUMERIC(5,1) DEFAULT 0,
            allow_half_day               BOOLEAN DEFAULT TRUE,
            allow_carryover              BOOLEAN DEFAULT FALSE,
            max_carryover_days           NUMERIC(5,1) DEFAULT 0,
            requires_document_after_days INTEGER,
            applicable_gender            gender_type,
            min_service_months           INTEGER DEFAULT 0,
            allow_negative_balance       BOOLEAN DEFAULT FALSE,
            is_active                    BOOLEAN DEFAULT TRUE,
            created_at                   TIMESTAMPTZ DEFAULT NOW(),
            updated_at                   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id           UUID NOT NULL REFERENCES employees(id),
            leave_type_id         UUID NOT NULL REFERENCES leave_types(id),
            year                  INTEGER NOT NULL,
            accrued_balance       NUMERIC(5,1) DEFAULT 0,
            current_balance       NUMERIC(5,1) DEFAULT 0,
            used_balance          NUMERIC(5,1) DEFAULT 0,
            pending_balance       NUMERIC(5,1) DEFAULT 0,
            carry_forward_balance NUMERIC(5,1) DEFAULT 0,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type_id, year),
            CONSTRAINT ck_leave_balance_ledger CHECK (
                current_balance + used_balance
                    = accrued_balance + carry_forward_balance
            ),
            CONSTRAINT ck_leave_balance_pending CHECK (pending_balance >= 0),
            CONSTRAINT ck_leave_balance_used CHECK (used_balance >= 0)
        )
    """)

    # ── 6. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id),
            leave_type_id       UUID NOT NULL REFERENCES leave_types(id),
            balance_year        INTEGER NOT NULL,
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            days_requested      NUMERIC(5,1) NOT NULL,
            reason              TEXT,
            status              leave_status DEFAULT 'pending',
            reviewed_by         UUID REFERENCES employees(id),
            reviewed_at         TIMESTAMPTZ,
            manager_comments    TEXT,
            rejection_reason    TEXT,
            cancelled_by        UUID REFERENCES employees(id),
            cancelled_at        TIMESTAMPTZ,
            cancellation_reason TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_days CHECK (days_requested > 0),
            CONSTRAINT ck_leave_request_dates CHECK (start_date <= end_date)
        )
    """)
    op.execute("""
        CREATE INDEX idx_leave_req_emp_dates
            ON leave_requests(employee_id, start_date, end_date)
    """)
    op.execute("CREATE INDEX idx_leave_req_status ON leave_requests(status)")

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    op.execute("""
        INSERT INTO leave_types
            (code, name, description, color, max_days_per_year, is_paid,
             allow_half_day, allow_carryover, max_carryover_days,
             requires_document_after_days, applicable_gender,
             min_service_months, allow_negative_balance)
        VALUES
            ('AL',  'Annual Leave',      'Paid yearly leave for rest and vacation',  '#4CAF50',  20, TRUE,  TRUE,  TRUE,  5, NULL, NULL,     0, FALSE),
            ('SL',  'Sick Leave',        'Leave for illness or medical reasons',     '#F44336',  12, TRUE,  TRUE,  FALSE, 0,    2, NULL,     0, FALSE),
            ('CL',  'Casual Leave',      'Short-term unplanned personal leave',      '#2196F3',   6, TRUE,  TRUE,  FALSE, 0, NULL, NULL,     0, FALSE),
            ('ML',  'Maternity Leave',   'Leave for expecting mothers',              '#E91E63', 182, TRUE,  FALSE, FALSE, 0,    1, 'female', 6, FALSE),
            ('PL',  'Paternity Leave',   'Leave for new fathers',                    '#9C27B0',  15, TRUE,  FALSE, FALSE, 0,    1, 'male',   6, FALSE),
            ('BL',  'Bereavement Leave', 'Leave for family loss',                    '#607D8B',   5, TRUE,  FALSE, FALSE, 0,    1, NULL,     0, FALSE),
            ('MR',  'Marriage Leave',    'Leave for wedding',                        '#FF9800',   5, TRUE,  FALSE, FALSE, 0,    1, NULL,     3, FALSE),
            ('CO',  'Compensatory Off',  'Earned leave for extra work',              '#00BCD4',   0, TRUE,  TRUE,  FALSE, 0, NULL, NULL,     0, FALSE),
            ('LOP', 'Loss of Pay',       'Unpaid leave when other leaves exhausted', '#795548', 999, FALSE, TRUE,  FALSE, 0, NULL, NULL,     0, TRUE),
            ('WFH', 'Work From Home',    'Work remotely from home',                  '#673AB7',   0, TRUE,  TRUE,  FALSE, 0, NULL, NULL,     0, FALSE)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "leave_requests",
        "leave_balances",
        "leave_types",
        "employees",
        "teams",
        "departments",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
