"""create iccsms mirror table

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'iccsms',
        sa.Column('_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('service_center_address', sa.String(64), nullable=True),
        sa.Column('address', sa.String(64), nullable=True),
        sa.Column('message_class', sa.String(32), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('date', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('read', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_status_report', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('transport_type', sa.String(8), nullable=False, server_default='sms'),
        sa.Column('type', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('locked', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_code', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sub_id', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('index_on_icc', sa.Integer(), nullable=True),
        sa.Column('status_on_icc', sa.Integer(), nullable=True),
    )

    op.create_index('ix_iccsms_sub_id', 'iccsms', ['sub_id'])
    op.create_index('idx_iccsms_slot_index', 'iccsms', ['sub_id', 'index_on_icc'])


def downgrade() -> None:
    op.drop_index('idx_iccsms_slot_index', table_name='iccsms')
    op.drop_index('ix_iccsms_sub_id', table_name='iccsms')
    op.drop_table('iccsms')
