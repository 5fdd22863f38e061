"""Create board tables (boards, columns, tasks and task sub-entities)

Revision ID: a3d9c1e7f2b4
Revises:
Create Date: 2026-10-19 00:00:00.000000

Adds 8 tables:
- boards, board_columns (one board per workflow type, ordered columns)
- board_tasks (task cards, ordered within a column)
- task_labels, task_assignees, task_checklists, task_comments, task_attachments
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = 'a3d9c1e7f2b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ---- boards ----
    op.create_table(
        'boards',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_boards_type', 'boards', ['type'])
    op.create_index('idx_board_type_created', 'boards', ['type', 'created_at'])

    # ---- board_columns ----
    op.create_table(
        'board_columns',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('board_id', sa.String(), sa.ForeignKey('boards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_board_columns_board_id', 'board_columns', ['board_id'])
    op.create_index('idx_col_board_pos', 'board_columns', ['board_id', 'position'])

    # ---- board_tasks ----
    op.create_table(
        'board_tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('board_id', sa.String(), sa.ForeignKey('boards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('column_id', sa.String(), sa.ForeignKey('board_columns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('priority', sa.Enum('BAJA', 'MEDIA', 'ALTA', 'CRITICA', name='taskpriority'), nullable=False, server_default='MEDIA'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_board_tasks_board_id', 'board_tasks', ['board_id'])
    op.create_index('ix_board_tasks_column_id', 'board_tasks', ['column_id'])
    op.create_index('idx_task_col_pos', 'board_tasks', ['column_id', 'position'])

    # ---- task_labels ----
    op.create_table(
        'task_labels',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('board_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('color', sa.String(), nullable=False, server_default='blue'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_labels_task_id', 'task_labels', ['task_id'])

    # ---- task_assignees ----
    op.create_table(
        'task_assignees',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('board_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('user_initials', sa.String(), nullable=False, server_default='??'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_assignees_task_id', 'task_assignees', ['task_id'])

    # ---- task_checklists ----
    op.create_table(
        'task_checklists',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('board_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_checklists_task_id', 'task_checklists', ['task_id'])

    # ---- task_comments ----
    op.create_table(
        'task_comments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('board_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_name', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_comments_task_id', 'task_comments', ['task_id'])
    op.create_index('idx_comment_task_time', 'task_comments', ['task_id', 'created_at'])

    # ---- task_attachments ----
    op.create_table(
        'task_attachments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('board_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(), nullable=True),
        sa.Column('size', sa.BigInteger(), nullable=True, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_attachments_task_id', 'task_attachments', ['task_id'])


def downgrade() -> None:
    op.drop_table('task_attachments')
    op.drop_table('task_comments')
    op.drop_table('task_checklists')
    op.drop_table('task_assignees')
    op.drop_table('task_labels')
    op.drop_table('board_tasks')
    sa.Enum(name='taskpriority').drop(op.get_bind(), checkfirst=True)
    op.drop_table('board_columns')
    op.drop_table('boards')
