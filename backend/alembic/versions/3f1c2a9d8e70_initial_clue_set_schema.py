"""initial clue set schema

Revision ID: 3f1c2a9d8e70
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f1c2a9d8e70'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'games',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('region_label', sa.String(length=100), nullable=True),
        sa.Column('phase', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('min_latitude', sa.Float(), nullable=True),
        sa.Column('max_latitude', sa.Float(), nullable=True),
        sa.Column('min_longitude', sa.Float(), nullable=True),
        sa.Column('max_longitude', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'clue_sets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('game_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('main_subject', sa.String(length=255), nullable=True),
        sa.Column('center_latitude', sa.Float(), nullable=False),
        sa.Column('center_longitude', sa.Float(), nullable=False),
        sa.Column('radius_km', sa.Float(), nullable=False),
        sa.Column('min_latitude', sa.Float(), nullable=False),
        sa.Column('max_latitude', sa.Float(), nullable=False),
        sa.Column('min_longitude', sa.Float(), nullable=False),
        sa.Column('max_longitude', sa.Float(), nullable=False),
        sa.Column('phase', sa.String(length=20), nullable=False),
        sa.Column('level_number', sa.Integer(), nullable=True),
        sa.Column('stage_number', sa.Integer(), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_clue_sets_game_active', 'clue_sets', ['game_id', 'is_active'])
    op.create_index(
        'ix_clue_sets_bbox',
        'clue_sets',
        ['min_latitude', 'max_latitude', 'min_longitude', 'max_longitude'],
    )

    op.create_table(
        'participants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('game_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('clue_set_id', sa.Uuid(), nullable=True),
        sa.Column('current_latitude', sa.Float(), nullable=True),
        sa.Column('current_longitude', sa.Float(), nullable=True),
        sa.Column('last_location_update', sa.DateTime(), nullable=True),
        sa.Column('current_level', sa.Integer(), nullable=False),
        sa.Column('current_stage', sa.Integer(), nullable=False),
        sa.Column('registration_city', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['clue_set_id'], ['clue_sets.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'game_id', name='uq_participants_user_game')
    )
    op.create_index('ix_participants_game_id', 'participants', ['game_id'])

    op.create_table(
        'hunts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('clue_set_id', sa.Uuid(), nullable=False),
        sa.Column('hunt_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('level_number', sa.Integer(), nullable=True),
        sa.Column('stage_number', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['clue_set_id'], ['clue_sets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_hunts_clue_set_id', 'hunts', ['clue_set_id'])

    op.create_table(
        'clues',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('hunt_id', sa.Uuid(), nullable=False),
        sa.Column('clue_number', sa.Integer(), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('hint', sa.Text(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('ai_generated', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['hunt_id'], ['hunts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_clues_hunt_id', 'clues', ['hunt_id'])


def downgrade() -> None:
    op.drop_index('ix_clues_hunt_id', table_name='clues')
    op.drop_table('clues')
    op.drop_index('ix_hunts_clue_set_id', table_name='hunts')
    op.drop_table('hunts')
    op.drop_index('ix_participants_game_id', table_name='participants')
    op.drop_table('participants')
    op.drop_index('ix_clue_sets_bbox', table_name='clue_sets')
    op.drop_index('ix_clue_sets_game_active', table_name='clue_sets')
    op.drop_table('clue_sets')
    op.drop_table('games')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
