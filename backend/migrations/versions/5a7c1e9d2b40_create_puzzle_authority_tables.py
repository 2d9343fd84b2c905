"""create user, submission, profile, rate limit, leaderboard cache and audit tables

Revision ID: 5a7c1e9d2b40
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a7c1e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'puzzle_submission' not in existing_tables:
        op.create_table(
            'puzzle_submission',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('uid', sa.String(length=64), nullable=False),
            sa.Column('submission_id', sa.String(length=128), nullable=True),
            sa.Column('puzzle_id', sa.String(length=128), nullable=False),
            sa.Column('category', sa.String(length=32), nullable=True),
            sa.Column('solved', sa.Boolean(), nullable=False),
            sa.Column('time_spent', sa.Float(), nullable=False),
            sa.Column('attempts', sa.Integer(), nullable=False),
            sa.Column('hints_used', sa.Integer(), nullable=False),
            sa.Column('difficulty', sa.Integer(), nullable=False),
            sa.Column('client_score', sa.Float(), nullable=False),
            sa.Column('server_score', sa.Integer(), nullable=False),
            sa.Column('anti_cheat_passed', sa.Boolean(), nullable=False),
            sa.Column('client_score_matched', sa.Boolean(), nullable=False),
            sa.Column('extra', sa.Text(), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.UniqueConstraint('uid', 'submission_id', name='uq_puzzle_submission_uid_submission_id'),
        )
        op.create_index('ix_puzzle_submission_uid', 'puzzle_submission', ['uid'])

    if 'player_profile' not in existing_tables:
        op.create_table(
            'player_profile',
            sa.Column('uid', sa.String(length=64), primary_key=True),
            sa.Column('display_name', sa.String(length=64), nullable=False),
            sa.Column('total_score', sa.Integer(), nullable=False),
            sa.Column('puzzles_solved', sa.Integer(), nullable=False),
            sa.Column('current_streak', sa.Integer(), nullable=False),
            sa.Column('best_streak', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('last_solved_at', sa.Float(), nullable=True),
            sa.Column('version_id', sa.Integer(), nullable=False),
        )
        op.create_index('ix_player_profile_total_score', 'player_profile', ['total_score'])

    if 'category_score' not in existing_tables:
        op.create_table(
            'category_score',
            sa.Column('uid', sa.String(length=64), primary_key=True),
            sa.Column('category', sa.String(length=32), primary_key=True),
            sa.Column('display_name', sa.String(length=64), nullable=False),
            sa.Column('total_score', sa.Integer(), nullable=False),
            sa.Column('puzzles_solved', sa.Integer(), nullable=False),
            sa.Column('version_id', sa.Integer(), nullable=False),
        )
        op.create_index('ix_category_score_total_score', 'category_score', ['total_score'])

    if 'rate_limit_window' not in existing_tables:
        op.create_table(
            'rate_limit_window',
            sa.Column('uid', sa.String(length=64), primary_key=True),
            sa.Column('timestamps', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=True),
            sa.Column('version_id', sa.Integer(), nullable=False),
        )

    if 'leaderboard_cache' not in existing_tables:
        op.create_table(
            'leaderboard_cache',
            sa.Column('uid', sa.String(length=64), primary_key=True),
            sa.Column('score', sa.Integer(), nullable=False),
            sa.Column('display_name', sa.String(length=64), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=False),
        )
        op.create_index('ix_leaderboard_cache_score', 'leaderboard_cache', ['score'])

    if 'suspicious_activity' not in existing_tables:
        op.create_table(
            'suspicious_activity',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('uid', sa.String(length=64), nullable=False),
            sa.Column('reason', sa.String(length=256), nullable=False),
            sa.Column('details', sa.Text(), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('reviewed', sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        op.create_index('ix_suspicious_activity_uid', 'suspicious_activity', ['uid'])


def downgrade():
    op.drop_table('suspicious_activity')
    op.drop_table('leaderboard_cache')
    op.drop_table('rate_limit_window')
    op.drop_table('category_score')
    op.drop_table('player_profile')
    op.drop_table('puzzle_submission')
    op.drop_table('user')
