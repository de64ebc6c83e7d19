"""add account_request for withdrawals and loans

Revision ID: b81e6d3f9a27
Revises: 5c2a9e41b7d0
Create Date: 2026-10-19 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b81e6d3f9a27'
down_revision = '5c2a9e41b7d0'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'account_request',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('currency', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processed_by', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_account_request_user_id', 'account_request', ['user_id'])
    op.create_index('ix_account_request_status', 'account_request', ['status'])


def downgrade():
    op.drop_index('ix_account_request_status', table_name='account_request')
    op.drop_index('ix_account_request_user_id', table_name='account_request')
    op.drop_table('account_request')
