"""create user, round, wager and ledger_entry tables

Revision ID: 5c2a9e41b7d0
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e41b7d0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('cash', sa.Integer(), nullable=False),
        sa.Column('referral_code', sa.String(length=16), nullable=True),
        sa.Column('referred_by', sa.String(length=16), nullable=True),
        sa.Column('referral_count', sa.Integer(), nullable=False),
        sa.Column('approved', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('points >= 0', name='ck_user_points_non_negative'),
        sa.CheckConstraint('cash >= 0', name='ck_user_cash_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)
    op.create_index('ix_user_referral_code', 'user', ['referral_code'], unique=True)

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=128), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('stakes_total', sa.Integer(), nullable=False),
        sa.Column('team1_total', sa.Integer(), nullable=False),
        sa.Column('team2_total', sa.Integer(), nullable=False),
        sa.Column('odds1', sa.Numeric(6, 2), nullable=True),
        sa.Column('odds2', sa.Numeric(6, 2), nullable=True),
        sa.Column('seed_total', sa.Integer(), nullable=False),
        sa.Column('state', sa.JSON(), nullable=False),
        sa.Column('winning_outcome', sa.JSON(), nullable=True),
        sa.Column('house_fee', sa.Integer(), nullable=True),
        sa.Column('total_payout', sa.Integer(), nullable=True),
        sa.Column('closes_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('settled_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_round_game_type', 'round', ['game_type'])
    op.create_index('ix_round_status', 'round', ['status'])

    op.create_table(
        'wager',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('game_type', sa.String(length=32), nullable=False),
        sa.Column('stake', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=16), nullable=False),
        sa.Column('selection', sa.JSON(), nullable=False),
        sa.Column('odds', sa.Numeric(6, 2), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payout', sa.Integer(), nullable=False),
        sa.Column('payout_currency', sa.String(length=16), nullable=True),
        sa.Column('tier', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('settled_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wager_user_id', 'wager', ['user_id'])
    op.create_index('ix_wager_round_id', 'wager', ['round_id'])
    op.create_index('ix_wager_status', 'wager', ['status'])

    op.create_table(
        'ledger_entry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('round_id', sa.Integer(), nullable=True),
        sa.Column('wager_id', sa.Integer(), nullable=True),
        sa.Column('game_type', sa.String(length=32), nullable=True),
        sa.Column('currency', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['wager_id'], ['wager.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ledger_entry_user_id', 'ledger_entry', ['user_id'])
    op.create_index('ix_ledger_entry_round_id', 'ledger_entry', ['round_id'])
    op.create_index('ix_ledger_entry_game_type', 'ledger_entry', ['game_type'])
    op.create_index('ix_ledger_entry_type', 'ledger_entry', ['type'])
    op.create_index('ix_ledger_entry_created_at', 'ledger_entry', ['created_at'])


def downgrade():
    op.drop_table('ledger_entry')
    op.drop_table('wager')
    op.drop_table('round')
    op.drop_table('user')
