"""initial schema

Revision ID: 3f1c9a7d2b10
Revises: 
Create Date: 2026-10-17 10:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='staff'),
        sa.Column('dept_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_type', sa.String(), nullable=False),
        sa.Column('category1', sa.String(), nullable=True),
        sa.Column('category2', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='inProgress'),
        sa.Column('performance_type', sa.String(), nullable=True),
        sa.Column('evaluation_type', sa.String(), nullable=True),
        sa.Column('metric', sa.String(), nullable=True),
        sa.Column('target_value', sa.Float(), nullable=True),
        sa.Column('reverse_yn', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('dept_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_tasks_task_type', 'tasks', ['task_type'])
    op.create_table(
        'task_managers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.UniqueConstraint('task_id', 'user_id', name='uq_task_manager'),
    )
    op.create_table(
        'monthly_activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('activity_content', sa.Text(), nullable=False),
        sa.Column('actual_value', sa.Float(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('task_id', 'year', 'month', name='uq_task_year_month'),
    )
    op.create_table(
        'activity_attachments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('activity_id', sa.Integer(), sa.ForeignKey('monthly_activities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'monthly_goals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('target_value', sa.Float(), nullable=False, server_default='0'),
        sa.UniqueConstraint('task_id', 'year', 'month', name='uq_goal_task_year_month'),
    )
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipient_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('sender_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('task_type', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='sent'),
        sa.Column('resend_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sent_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('monthly_goals')
    op.drop_table('activity_attachments')
    op.drop_table('monthly_activities')
    op.drop_table('task_managers')
    op.drop_index('ix_tasks_task_type', table_name='tasks')
    op.drop_table('tasks')
    op.drop_table('users')
    op.drop_table('departments')
