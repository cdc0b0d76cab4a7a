"""add auth codes

Revision ID: 0007
Revises: 0006
Create Date: 2024-04-15 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0007'
down_revision = '0006'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'UserAuthCode',
        sa.Column('code', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(330), nullable=True),
        sa.Column('phone', sa.String(255), nullable=True),
        # user_role already exists from 0001
        sa.Column('role', postgresql.ENUM('ADMIN', 'DOCTOR', 'PATIENT', name='user_role', create_type=False), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('inviterId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=True),
        sa.Column('created', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table('UserAuthCode')
