"""Initial schema - users, sprints, tasks, attachments, status history

Revision ID: 7f3a9c2d1e01
Revises:
Create Date: 2026-10-18 09:00:00.000000

New tables:
    - users: identity store (no credentials)
    - sprints: iteration container
    - tasks: task aggregate root (version column for optimistic locking)
    - task_attachments: uploaded-file metadata
    - task_history: append-only status ledger
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7f3a9c2d1e01'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── Users table ──────────────────────────────────────────────────────
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='DEVELOPER', comment='ADMIN | MANAGER | DEVELOPER | REPORTER'),
        sa.Column('profile_picture', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )

    # ── Sprints table ────────────────────────────────────────────────────
    op.create_table('sprints',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, comment='e.g. Sprint 1, Iteration 2.3'),
        sa.Column('description', sa.Text(), server_default=''),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PLANNING', comment='PLANNING | ACTIVE | COMPLETED'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=False, comment='Immutable after creation'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_date < end_date', name='ck_sprint_date_window'),
    )

    # ── Tasks table ──────────────────────────────────────────────────────
    op.create_table('tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('description', sa.Text(), server_default=''),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='MEDIUM', comment='LOW | MEDIUM | HIGH | URGENT'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='TO_DO', comment='TO_DO | IN_PROGRESS | REVIEW | DONE'),
        sa.Column('assignee_id', sa.Integer(), nullable=False),
        sa.Column('reporter_id', sa.Integer(), nullable=False, comment='Immutable after creation'),
        sa.Column('sprint_id', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['assignee_id'], ['users.id']),
        sa.ForeignKeyConstraint(['reporter_id'], ['users.id']),
        sa.ForeignKeyConstraint(['sprint_id'], ['sprints.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_task_status', 'tasks', ['status'])
    op.create_index('idx_task_sprint', 'tasks', ['sprint_id'])
    op.create_index('idx_task_assignee', 'tasks', ['assignee_id'])
    op.create_index('idx_task_reporter', 'tasks', ['reporter_id'])

    # ── Task Attachments table ───────────────────────────────────────────
    op.create_table('task_attachments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('path', sa.String(length=500), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('uploaded_by_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['uploaded_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_task_attachments_task_id'), 'task_attachments', ['task_id'])

    # ── Task History table (append-only) ─────────────────────────────────
    op.create_table('task_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('updated_by_id', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['updated_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_task_history_task_id'), 'task_history', ['task_id'])


def downgrade():
    op.drop_index(op.f('ix_task_history_task_id'), table_name='task_history')
    op.drop_table('task_history')
    op.drop_index(op.f('ix_task_attachments_task_id'), table_name='task_attachments')
    op.drop_table('task_attachments')
    op.drop_index('idx_task_reporter', table_name='tasks')
    op.drop_index('idx_task_assignee', table_name='tasks')
    op.drop_index('idx_task_sprint', table_name='tasks')
    op.drop_index('idx_task_status', table_name='tasks')
    op.drop_table('tasks')
    op.drop_table('sprints')
    op.drop_table('users')
