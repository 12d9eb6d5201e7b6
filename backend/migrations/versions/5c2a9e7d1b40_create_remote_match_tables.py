"""create user, block, remote_match, match_visit and remote_match_lock

Revision ID: 5c2a9e7d1b40
Revises:
Create Date: 2026-10-18 00:00:00
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
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'block',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('blocker_id', sa.Integer(), nullable=False),
        sa.Column('blocked_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['blocker_id'], ['user.id']),
        sa.ForeignKeyConstraint(['blocked_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('blocker_id', 'blocked_id', name='uq_block_pair'),
    )
    op.create_index('ix_block_blocker_id', 'block', ['blocker_id'])

    op.create_table(
        'remote_match',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('challenger_id', sa.Integer(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('game_variant', sa.String(length=16), nullable=False),
        sa.Column('match_format', sa.Integer(), nullable=False),
        sa.Column('current_player_id', sa.Integer(), nullable=True),
        sa.Column('current_leg', sa.Integer(), nullable=False),
        sa.Column('turn_index_in_leg', sa.Integer(), nullable=False),
        sa.Column('challenger_score', sa.Integer(), nullable=True),
        sa.Column('receiver_score', sa.Integer(), nullable=True),
        sa.Column('challenger_legs_won', sa.Integer(), nullable=False),
        sa.Column('receiver_legs_won', sa.Integer(), nullable=False),
        sa.Column('last_visit', sa.Text(), nullable=True),
        sa.Column('challenge_expires_at', sa.Float(), nullable=True),
        sa.Column('join_window_expires_at', sa.Float(), nullable=True),
        sa.Column('challenger_joined_at', sa.Float(), nullable=True),
        sa.Column('receiver_joined_at', sa.Float(), nullable=True),
        sa.Column('winner_id', sa.Integer(), nullable=True),
        sa.Column('ended_at', sa.Float(), nullable=True),
        sa.Column('ended_by', sa.Integer(), nullable=True),
        sa.Column('ended_reason', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.Float(), nullable=True),
        sa.Column('started_at', sa.Float(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['challenger_id'], ['user.id']),
        sa.ForeignKeyConstraint(['receiver_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_remote_match_status', 'remote_match', ['status'])
    op.create_index('ix_remote_match_challenge_expires_at', 'remote_match', ['challenge_expires_at'])
    op.create_index('ix_remote_match_join_window_expires_at', 'remote_match', ['join_window_expires_at'])
    op.create_index('ix_remote_match_challenger_status', 'remote_match', ['challenger_id', 'status'])
    op.create_index('ix_remote_match_receiver_status', 'remote_match', ['receiver_id', 'status'])

    op.create_table(
        'match_visit',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.String(length=36), nullable=False),
        sa.Column('leg', sa.Integer(), nullable=False),
        sa.Column('turn_index', sa.Integer(), nullable=False),
        sa.Column('participant_id', sa.Integer(), nullable=False),
        sa.Column('darts', sa.Text(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('score_before', sa.Integer(), nullable=False),
        sa.Column('score_after', sa.Integer(), nullable=False),
        sa.Column('is_bust', sa.Boolean(), nullable=False),
        sa.Column('is_checkout', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['match_id'], ['remote_match.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'leg', 'turn_index', name='uq_match_visit_turn'),
    )
    op.create_index('ix_match_visit_match_id', 'match_visit', ['match_id'])

    op.create_table(
        'remote_match_lock',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.String(length=36), nullable=False),
        sa.Column('lock_status', sa.String(length=16), nullable=False),
        sa.Column('updated_at', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.ForeignKeyConstraint(['match_id'], ['remote_match.id']),
        sa.PrimaryKeyConstraint('user_id'),
    )
    op.create_index('ix_remote_match_lock_match_id', 'remote_match_lock', ['match_id'])


def downgrade():
    op.drop_index('ix_remote_match_lock_match_id', table_name='remote_match_lock')
    op.drop_table('remote_match_lock')
    op.drop_index('ix_match_visit_match_id', table_name='match_visit')
    op.drop_table('match_visit')
    op.drop_index('ix_remote_match_receiver_status', table_name='remote_match')
    op.drop_index('ix_remote_match_challenger_status', table_name='remote_match')
    op.drop_index('ix_remote_match_join_window_expires_at', table_name='remote_match')
    op.drop_index('ix_remote_match_challenge_expires_at', table_name='remote_match')
    op.drop_index('ix_remote_match_status', table_name='remote_match')
    op.drop_table('remote_match')
    op.drop_index('ix_block_blocker_id', table_name='block')
    op.drop_table('block')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
