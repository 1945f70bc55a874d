"""001 – Initial schema: departments, employees, leave, performance reviews.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+00:00
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

# Enumerations are VARCHAR + CHECK so new values need no type migration
CHECKED_VALUES: dict[str, list[str]] = {
    "employee_status": ["ACTIVE", "INACTIVE", "TERMINATED", "ON_LEAVE"],
    "employee_role": ["EMPLOYEE", "MANAGER", "HR", "ADMIN"],
    "leave_type": ["ANNUAL", "SICK", "MATERNITY", "PATERNITY", "EMERGENCY", "PERSONAL"],
    "leave_status": ["PENDING", "APPROVED", "REJECTED", "CANCELLED"],
    "review_period": ["QUARTERLY", "HALF_YEARLY", "ANNUAL", "PROBATION"],
    "review_status": ["DRAFT", "SUBMITTED", "COMPLETED", "ARCHIVED"],
    "goal_status": ["NOT_STARTED", "IN_PROGRESS", "COMPLETED", "EXCEEDED", "NOT_ACHIEVED"],
}

# Tables whose updated_at is maintained by trigger
TIMESTAMPED_TABLES = [
    "departments",
    "employees",
    "leave_balances",
    "leaves",
    "performance_reviews",
]


def _in(column: str, kind: str) -> str:
    vals = ", ".join(f"'{v}'" for v in CHECKED_VALUES[kind])
    return f"CHECK ({column} IN ({vals}))"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ── 1. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name         VARCHAR(100) NOT NULL UNIQUE,
            description  TEXT,
            manager_id   UUID,  -- FK added after employees table
            budget       NUMERIC(14, 2) CONSTRAINT ck_department_budget CHECK (budget IS NULL OR budget >= 0),
            location     VARCHAR(255),
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at   TIMESTAMPTZ
        )
    """)

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employees (
            id             UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_code  VARCHAR(50)  NOT NULL UNIQUE,
            first_name     VARCHAR(100) NOT NULL,
            last_name      VARCHAR(100) NOT NULL,
            email          VARCHAR(255) NOT NULL UNIQUE,
            phone_number   VARCHAR(20),
            department_id  UUID CONSTRAINT fk_employee_department REFERENCES departments(id),
            position       VARCHAR(100),
            salary         NUMERIC(12, 2),
            hire_date      DATE,
            status         VARCHAR(20) NOT NULL DEFAULT 'ACTIVE' {_in("status", "employee_status")},
            street         VARCHAR(255),
            city           VARCHAR(100),
            state          VARCHAR(100),
            zip_code       VARCHAR(20),
            country        VARCHAR(100),
            password_hash  VARCHAR(255),
            role           VARCHAR(20) NOT NULL DEFAULT 'EMPLOYEE' {_in("role", "employee_role")},
            last_login_at  TIMESTAMPTZ,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at     TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX ix_employees_department_id ON employees(department_id)")
    op.execute("CREATE INDEX ix_employees_status ON employees(status) WHERE deleted_at IS NULL")

    # Deferred FK: departments.manager_id → employees
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_department_manager
            FOREIGN KEY (manager_id) REFERENCES employees(id)
    """)

    # ── 3. leave_balances ─────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leave_balances (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id  UUID NOT NULL REFERENCES employees(id),
            leave_type   VARCHAR(20) NOT NULL {_in("leave_type", "leave_type")},
            year         INTEGER NOT NULL,
            total_days   INTEGER NOT NULL DEFAULT 0,
            used_days    INTEGER NOT NULL DEFAULT 0,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type, year),
            CONSTRAINT ck_leave_balance_total CHECK (total_days >= 0),
            CONSTRAINT ck_leave_balance_used CHECK (used_days >= 0),
            CONSTRAINT ck_leave_balance_used_le_total CHECK (used_days <= total_days)
        )
    """)
    op.execute("CREATE INDEX ix_leave_balances_employee_id ON leave_balances(employee_id)")

    # ── 4. leaves ─────────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE leaves (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id     UUID NOT NULL REFERENCES employees(id),
            leave_type      VARCHAR(20) NOT NULL {_in("leave_type", "leave_type")},
            start_date      DATE NOT NULL,
            end_date        DATE NOT NULL,
            days_requested  INTEGER NOT NULL,
            reason          TEXT,
            status          VARCHAR(20) NOT NULL DEFAULT 'PENDING' {_in("status", "leave_status")},
            approver_id     UUID REFERENCES employees(id),
            comments        TEXT,
            approved_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_dates CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_days_positive CHECK (days_requested > 0)
        )
    """)
    op.execute("CREATE INDEX ix_leaves_employee_status ON leaves(employee_id, status)")
    op.execute("CREATE INDEX ix_leaves_created_at ON leaves(created_at DESC)")

    # ── 5. performance_reviews ────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE performance_reviews (
            id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            reviewer_id       UUID NOT NULL REFERENCES employees(id),
            review_period     VARCHAR(20) NOT NULL {_in("review_period", "review_period")},
            review_date       DATE NOT NULL,
            status            VARCHAR(20) NOT NULL DEFAULT 'DRAFT' {_in("status", "review_status")},
            overall_rating    NUMERIC(3, 2),
            overall_comments  TEXT,
            submitted_at      TIMESTAMPTZ,
            completed_at      TIMESTAMPTZ,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_review_overall_rating
                CHECK (overall_rating IS NULL OR (overall_rating >= 0 AND overall_rating <= 5))
        )
    """)
    op.execute(
        "CREATE INDEX ix_performance_reviews_employee_date "
        "ON performance_reviews(employee_id, review_date)"
    )
    op.execute(
        "CREATE INDEX ix_performance_reviews_reviewer_id ON performance_reviews(reviewer_id)"
    )

    # ── 6. performance_goals ──────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE performance_goals (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            review_id       UUID NOT NULL REFERENCES performance_reviews(id) ON DELETE CASCADE,
            title           VARCHAR(255) NOT NULL,
            description     TEXT,
            target_value    NUMERIC(12, 2),
            achieved_value  NUMERIC(12, 2),
            unit            VARCHAR(50),
            status          VARCHAR(20) NOT NULL DEFAULT 'NOT_STARTED' {_in("status", "goal_status")},
            weight          NUMERIC(3, 2) NOT NULL DEFAULT 1,
            comments        TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_goal_weight CHECK (weight >= 0 AND weight <= 1)
        )
    """)
    op.execute("CREATE INDEX ix_performance_goals_review_id ON performance_goals(review_id)")

    # ── 7. performance_competencies ───────────────────────────────────────
    op.execute("""
        CREATE TABLE performance_competencies (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            review_id    UUID NOT NULL REFERENCES performance_reviews(id) ON DELETE CASCADE,
            name         VARCHAR(100) NOT NULL,
            description  TEXT,
            rating       NUMERIC(3, 2),
            max_rating   NUMERIC(3, 2) NOT NULL DEFAULT 5,
            weight       NUMERIC(3, 2) NOT NULL DEFAULT 1,
            comments     TEXT,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_competency_rating
                CHECK (rating IS NULL OR (rating >= 0 AND rating <= max_rating)),
            CONSTRAINT ck_competency_weight CHECK (weight >= 0 AND weight <= 1)
        )
    """)
    op.execute(
        "CREATE INDEX ix_performance_competencies_review_id "
        "ON performance_competencies(review_id)"
    )

    # ── updated_at trigger ────────────────────────────────────────────────
    op.execute("""
        CREATE OR REPLACE FUNCTION set_updated_at() RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    for table in TIMESTAMPED_TABLES:
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION set_updated_at()
        """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in TIMESTAMPED_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table}")
    op.execute("DROP FUNCTION IF EXISTS set_updated_at()")

    # Drop tables in reverse dependency order
    tables = [
        "performance_competencies",
        "performance_goals",
        "performance_reviews",
        "leaves",
        "leave_balances",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop deferred FK before dropping employees / departments
    op.execute(
        "ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_department_manager"
    )
    op.execute("DROP TABLE IF EXISTS employees CASCADE")
    op.execute("DROP TABLE IF EXISTS departments CASCADE")
