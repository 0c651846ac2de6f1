"""Test Alembic migrations: upgrade, downgrade, and structural checks.

Runs against a throwaway SQLite file so no database server is needed.
"""

import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ALEMBIC_INI = os.path.join(os.path.dirname(__file__), "..", "..", "alembic.ini")

EXPECTED_TABLES = {
    "roles",
    "course_categories",
    "approval_chain_steps",
    "courses",
    "course_enrollments",
    "course_enrollment_approvals",
    "course_attendance",
    "enrollment_email_history",
}


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'coursehub.db'}"


@pytest.fixture
def alembic_cfg(database_url):
    cfg = Config(ALEMBIC_INI)
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


@pytest.fixture
def inspector(database_url):
    engine = create_engine(database_url)
    yield lambda: inspect(engine)
    engine.dispose()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


@pytest.mark.integration
class TestMigrations:
    """Run upgrade, verify, downgrade, verify."""

    def test_upgrade_creates_all_tables(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")

        tables = set(inspector().get_table_names())
        for table in EXPECTED_TABLES:
            assert table in tables, f"Table {table!r} not created by upgrade"
        assert "alembic_version" in tables

    def test_upgrade_is_idempotent(self, alembic_cfg):
        command.upgrade(alembic_cfg, "head")
        command.upgrade(alembic_cfg, "head")  # should be a no-op

    def test_current_revision(self, alembic_cfg, database_url):
        command.upgrade(alembic_cfg, "head")

        engine = create_engine(database_url)
        with engine.connect() as conn:
            row = conn.execute(text("SELECT version_num FROM alembic_version")).fetchone()
        engine.dispose()

        assert row[0] == "0001"

    # -- Column / constraint checks ------------------------------------------

    def test_enrollment_columns(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")

        cols = {c["name"] for c in inspector().get_columns("course_enrollments")}
        expected = {
            "id", "course_id", "user_id", "organization_id", "status", "final_approval",
            "confirmation_sent", "confirmation_sent_at", "final_approval_sent",
            "final_approval_sent_at", "status_sent", "status_sent_at",
            "enrolled_at", "updated_at", "version",
        }
        assert cols == expected

    def test_approval_step_columns(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")

        cols = {c["name"] for c in inspector().get_columns("course_enrollment_approvals")}
        assert {
            "approval_order", "is_head_approval", "is_final", "role_id", "is_implicit",
            "approved_by", "approved_at", "is_approved", "is_rejected", "comment",
        } <= cols

    def test_unique_constraints(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")

        enrollment_uq = {uc["name"] for uc in inspector().get_unique_constraints("course_enrollments")}
        assert "uq_course_enrollments_course_user" in enrollment_uq

        chain_uq = {uc["name"] for uc in inspector().get_unique_constraints("approval_chain_steps")}
        assert "uq_approval_chain_steps_category_order" in chain_uq

    def test_indexes(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")

        enrollment_idx = {idx["name"] for idx in inspector().get_indexes("course_enrollments")}
        assert "ix_course_enrollments_status" in enrollment_idx

        history_idx = {idx["name"] for idx in inspector().get_indexes("enrollment_email_history")}
        assert "ix_enrollment_email_history_sent_at" in history_idx

    # -- Downgrade tests -----------------------------------------------------

    def test_downgrade_removes_all_tables(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "base")

        tables = set(inspector().get_table_names())
        for table in EXPECTED_TABLES:
            assert table not in tables, f"Table {table!r} still present after downgrade"

    def test_upgrade_after_downgrade(self, alembic_cfg, inspector):
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "base")
        command.upgrade(alembic_cfg, "head")

        assert EXPECTED_TABLES <= set(inspector().get_table_names())
