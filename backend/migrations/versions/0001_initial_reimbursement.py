"""users, folders and purchases

Revision ID: 0001_initial_reimbursement
Revises: 
Create Date: 2025-10-30
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_reimbursement'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('nickname', sa.String(length=64), nullable=False, unique=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('idp_subject', sa.String(length=64), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_users_nickname', 'users', ['nickname'])
    op.create_index('ix_users_idp_subject', 'users', ['idp_subject'])

    op.create_table('folders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('folder_name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('start_date', sa.Date()),
        sa.Column('end_date', sa.Date()),
        sa.Column('validation_status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('validated_at', sa.DateTime(timezone=True)),
        sa.Column('validated_by', sa.Integer()),
        sa.Column('validation_notes', sa.Text())
    )
    op.create_index('ix_folders_user_id', 'folders', ['user_id'])
    op.create_index('ix_folders_validation_status', 'folders', ['validation_status'])

    op.create_table('purchases',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('folder_id', sa.Integer(), sa.ForeignKey('folders.id'), nullable=False),
        sa.Column('category_id', sa.Integer()),
        sa.Column('payment_method_id', sa.Integer()),
        sa.Column('cost_center_id', sa.Integer()),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('guest_name', sa.String(length=200)),
        sa.Column('purchase_date', sa.Date()),
        sa.Column('img_url', sa.String(length=1024)),
        sa.Column('validation_status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('validated_at', sa.DateTime(timezone=True)),
        sa.Column('validated_by', sa.Integer()),
        sa.Column('validation_notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True))
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_folder_id', 'purchases', ['folder_id'])
    op.create_index('ix_purchases_validation_status', 'purchases', ['validation_status'])


def downgrade():
    for tbl in ['purchases', 'folders', 'users']:
        op.drop_table(tbl)
