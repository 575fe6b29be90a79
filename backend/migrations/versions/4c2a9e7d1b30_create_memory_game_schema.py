"""create users, games and game_matches

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


LEADERBOARD_VIEW = """
CREATE OR REPLACE VIEW leaderboard AS
SELECT
    u.username,
    COALESCE(u.display_name, u.username) AS display_name,
    u.best_score,
    u.best_time,
    u.total_games,
    CASE WHEN u.total_games > 0
         THEN ROUND(u.total_score::numeric / u.total_games, 2)
         ELSE 0 END AS avg_score,
    u.last_played,
    ROW_NUMBER() OVER (ORDER BY u.best_score DESC, u.best_time ASC NULLS LAST) AS rank
FROM users u
WHERE u.is_active = TRUE AND u.total_games > 0
"""


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=True),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_played', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_games', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_time', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_best_score', 'users', ['best_score'])
    op.create_index('ix_users_last_played', 'users', ['last_played'])

    op.create_table(
        'games',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('moves', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_elapsed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cards_matched', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('difficulty_level', sa.String(length=20), nullable=False, server_default='easy'),
        sa.Column('game_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('game_data', sa.JSON(), nullable=True),
    )
    op.create_index('ix_games_user_id', 'games', ['user_id'])
    op.create_index('ix_games_completed_at', 'games', ['completed_at'])

    op.create_table(
        'game_matches',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_id', sa.String(length=36), sa.ForeignKey('games.id', ondelete='CASCADE'), nullable=False),
        sa.Column('card1_id', sa.String(length=50), nullable=False),
        sa.Column('card2_id', sa.String(length=50), nullable=False),
        sa.Column('match_time', sa.Integer(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('bonus_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_game_matches_game_id', 'game_matches', ['game_id'])

    if op.get_bind().dialect.name == 'postgresql':
        op.execute(LEADERBOARD_VIEW)


def downgrade():
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP VIEW IF EXISTS leaderboard')
    op.drop_index('ix_game_matches_game_id', table_name='game_matches')
    op.drop_table('game_matches')
    op.drop_index('ix_games_completed_at', table_name='games')
    op.drop_index('ix_games_user_id', table_name='games')
    op.drop_table('games')
    op.drop_index('ix_users_last_played', table_name='users')
    op.drop_index('ix_users_best_score', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
