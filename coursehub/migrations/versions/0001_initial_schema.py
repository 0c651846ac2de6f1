"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create roles table
    op.create_table(
        'roles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('applies_to_all_organizations', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_roles_organization_id', 'roles', ['organization_id'])

    # Create course_categories table
    op.create_table(
        'course_categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('excuse_window_hours', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_course_categories_organization_id', 'course_categories', ['organization_id'])

    # Create approval_chain_steps table
    op.create_table(
        'approval_chain_steps',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('approval_order', sa.Integer(), nullable=False),
        sa.Column('is_head_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_final', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('role_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['category_id'], ['course_categories.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category_id', 'approval_order', name='uq_approval_chain_steps_category_order')
    )
    op.create_index('ix_approval_chain_steps_category_id', 'approval_chain_steps', ['category_id'])

    # Create courses table
    op.create_table(
        'courses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='draft'),
        sa.Column('start_at', sa.DateTime(), nullable=True),
        sa.Column('end_at', sa.DateTime(), nullable=True),
        sa.Column('available_seats', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['category_id'], ['course_categories.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_courses_category_id', 'courses', ['category_id'])
    op.create_index('ix_courses_organization_id', 'courses', ['organization_id'])
    op.create_index('ix_courses_status', 'courses', ['status'])

    # Create course_enrollments table
    op.create_table(
        'course_enrollments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('final_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('confirmation_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('confirmation_sent_at', sa.DateTime(), nullable=True),
        sa.Column('final_approval_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('final_approval_sent_at', sa.DateTime(), nullable=True),
        sa.Column('status_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status_sent_at', sa.DateTime(), nullable=True),
        sa.Column('enrolled_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('course_id', 'user_id', name='uq_course_enrollments_course_user')
    )
    op.create_index('ix_course_enrollments_course_id', 'course_enrollments', ['course_id'])
    op.create_index('ix_course_enrollments_user_id', 'course_enrollments', ['user_id'])
    op.create_index('ix_course_enrollments_status', 'course_enrollments', ['status'])
    op.create_index('ix_course_enrollments_enrolled_at', 'course_enrollments', ['enrolled_at'])

    # Create course_enrollment_approvals table
    op.create_table(
        'course_enrollment_approvals',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('chain_step_id', sa.Uuid(), nullable=True),
        sa.Column('approval_order', sa.Integer(), nullable=False),
        sa.Column('is_head_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_final', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('role_id', sa.Uuid(), nullable=True),
        sa.Column('is_implicit', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approved_by', sa.Uuid(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_rejected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['course_enrollments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['chain_step_id'], ['approval_chain_steps.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_course_enrollment_approvals_enrollment_id', 'course_enrollment_approvals', ['enrollment_id'])

    # Create course_attendance table
    op.create_table(
        'course_attendance',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('checked_in_at', sa.DateTime(), nullable=False),
        sa.Column('checked_out_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['course_enrollments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_course_attendance_enrollment_id', 'course_attendance', ['enrollment_id'])

    # Create enrollment_email_history table
    op.create_table(
        'enrollment_email_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('kind', sa.String(50), nullable=False),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(512), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_success', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_by', sa.String(255), nullable=False, server_default='system'),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['course_enrollments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_enrollment_email_history_enrollment_id', 'enrollment_email_history', ['enrollment_id'])
    op.create_index('ix_enrollment_email_history_sent_at', 'enrollment_email_history', ['sent_at'])


def downgrade() -> None:
    op.drop_table('enrollment_email_history')
    op.drop_table('course_attendance')
    op.drop_table('course_enrollment_approvals')
    op.drop_table('course_enrollments')
    op.drop_table('courses')
    op.drop_table('approval_chain_steps')
    op.drop_table('course_categories')
    op.drop_table('roles')
