"""create timing and qualification tables

Revision ID: 5c2a9e7d1b40
Revises:
Create Date: 2025-09-15 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_name', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_team_team_name', 'team', ['team_name'], unique=True)

    op.create_table(
        'admin',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'puzzle',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('puzzle_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=128), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('level', 'puzzle_number', name='uq_puzzle_level_number'),
    )
    op.create_index('ix_puzzle_level', 'puzzle', ['level'])

    op.create_table(
        'hint',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('puzzle_id', sa.Integer(), sa.ForeignKey('puzzle.id'), nullable=False),
        sa.Column('hint_number', sa.Integer(), nullable=False),
        sa.Column('hint_text', sa.Text(), nullable=False),
        sa.Column('time_penalty_seconds', sa.Integer(), nullable=True),
        sa.Column('penalty_multiplier', sa.Float(), nullable=False),
        sa.Column('unlock_after_seconds', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hint_puzzle_id', 'hint', ['puzzle_id'])

    op.create_table(
        'team_session',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('session_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('session_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('questions_completed', sa.Integer(), nullable=False),
        sa.Column('questions_skipped', sa.Integer(), nullable=False),
        sa.Column('active_time_seconds', sa.Integer(), nullable=False),
        sa.Column('skip_penalty_seconds', sa.Integer(), nullable=False),
        sa.Column('hint_penalty_seconds', sa.Integer(), nullable=False),
        sa.Column('total_penalty_seconds', sa.Integer(), nullable=False),
        sa.Column('current_question_id', sa.Integer(), sa.ForeignKey('puzzle.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id'),
    )

    op.create_table(
        'question_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('puzzle_id', sa.Integer(), sa.ForeignKey('puzzle.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('first_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_paused_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('skip_count', sa.Integer(), nullable=False),
        sa.Column('skip_penalty_seconds', sa.Integer(), nullable=False),
        sa.Column('time_penalty_seconds', sa.Integer(), nullable=False),
        sa.Column('hints_used', sa.Integer(), nullable=False),
        sa.Column('last_hint_number', sa.Integer(), nullable=False),
        sa.Column('correct', sa.Boolean(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'puzzle_id', name='uq_progress_team_puzzle'),
    )
    op.create_index('ix_question_progress_team_id', 'question_progress', ['team_id'])
    op.create_index('ix_question_progress_puzzle_id', 'question_progress', ['puzzle_id'])
    op.create_index('ix_question_progress_status', 'question_progress', ['status'])

    op.create_table(
        'hint_usage',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('hint_id', sa.Integer(), sa.ForeignKey('hint.id'), nullable=False),
        sa.Column('puzzle_id', sa.Integer(), sa.ForeignKey('puzzle.id'), nullable=False),
        sa.Column('penalty_seconds', sa.Integer(), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'hint_id', name='uq_hint_usage_team_hint'),
    )
    op.create_index('ix_hint_usage_team_id', 'hint_usage', ['team_id'])

    op.create_table(
        'level_status',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('level_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('qualification_status', sa.String(length=16), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('questions_answered', sa.Integer(), nullable=False),
        sa.Column('questions_correct', sa.Integer(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=False),
        sa.Column('time_taken_seconds', sa.Integer(), nullable=False),
        sa.Column('hints_used', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('qualification_decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('qualification_reason', sa.Text(), nullable=True),
        sa.Column('was_manually_overridden', sa.Boolean(), nullable=False),
        sa.Column('override_by', sa.Integer(), sa.ForeignKey('admin.id'), nullable=True),
        sa.Column('override_reason', sa.String(length=255), nullable=True),
        sa.Column('override_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'level_id', name='uq_level_status_team_level'),
    )
    op.create_index('ix_level_status_team_id', 'level_status', ['team_id'])

    op.create_table(
        'qualification_cutoff',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('level_id', sa.Integer(), nullable=False),
        sa.Column('min_score', sa.Integer(), nullable=False),
        sa.Column('min_accuracy', sa.Float(), nullable=False),
        sa.Column('max_time_seconds', sa.Integer(), nullable=False),
        sa.Column('max_hints_allowed', sa.Integer(), nullable=False),
        sa.Column('min_questions_correct', sa.Integer(), nullable=False),
        sa.Column('auto_qualify', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('admin.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('level_id'),
    )

    op.create_table(
        'qualification_message',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('level_id', sa.Integer(), nullable=False),
        sa.Column('message_type', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('is_dismissed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('dismissed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_qualification_message_team_id', 'qualification_message', ['team_id'])

    op.create_table(
        'game_setting',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('skip_enabled', sa.Boolean(), nullable=True),
        sa.Column('max_skips_per_team', sa.Integer(), nullable=True),
        sa.Column('skip_penalty_seconds', sa.Integer(), nullable=True),
        sa.Column('hint_penalty_seconds', sa.Integer(), nullable=True),
        sa.Column('max_hints_per_question', sa.Integer(), nullable=True),
        sa.Column('question_time_limit_seconds', sa.Integer(), nullable=True),
        sa.Column('total_game_time_limit_seconds', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('admin.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'audit_event',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('puzzle.id'), nullable=True),
        sa.Column('level_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('time_before', sa.Integer(), nullable=True),
        sa.Column('time_after', sa.Integer(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('actor_type', sa.String(length=16), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_event_team_id', 'audit_event', ['team_id'])
    op.create_index('ix_audit_event_event_type', 'audit_event', ['event_type'])


def downgrade():
    op.drop_index('ix_audit_event_event_type', table_name='audit_event')
    op.drop_index('ix_audit_event_team_id', table_name='audit_event')
    op.drop_table('audit_event')
    op.drop_table('game_setting')
    op.drop_index('ix_qualification_message_team_id', table_name='qualification_message')
    op.drop_table('qualification_message')
    op.drop_table('qualification_cutoff')
    op.drop_index('ix_level_status_team_id', table_name='level_status')
    op.drop_table('level_status')
    op.drop_index('ix_hint_usage_team_id', table_name='hint_usage')
    op.drop_table('hint_usage')
    op.drop_index('ix_question_progress_status', table_name='question_progress')
    op.drop_index('ix_question_progress_puzzle_id', table_name='question_progress')
    op.drop_index('ix_question_progress_team_id', table_name='question_progress')
    op.drop_table('question_progress')
    op.drop_table('team_session')
    op.drop_index('ix_hint_puzzle_id', table_name='hint')
    op.drop_table('hint')
    op.drop_index('ix_puzzle_level', table_name='puzzle')
    op.drop_table('puzzle')
    op.drop_table('admin')
    op.drop_index('ix_team_team_name', table_name='team')
    op.drop_table('team')
