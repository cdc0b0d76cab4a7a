"""add users

Revision ID: 0001
Revises:
Create Date: 2024-01-08 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'User',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role', sa.Enum('ADMIN', 'DOCTOR', 'PATIENT', name='user_role'), nullable=False),
        sa.Column('email', sa.String(330), unique=True, nullable=True),
        sa.Column('phone', sa.String(255), unique=True, nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('imageUrl', sa.String(255), nullable=True),
        sa.Column('birthday', sa.DateTime(timezone=True), nullable=True),
        sa.Column('joinDate', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_User_id', 'User', ['id'])

    op.create_table(
        'UserLogin',
        sa.Column('userId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('passwordHash', sa.String(255), nullable=True),
        sa.Column('lastVisit', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'UserHealth',
        sa.Column('userId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('adherence', sa.Integer(), nullable=True),
    )

    op.create_table(
        'UserToken',
        sa.Column('userId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('token', sa.String(64), primary_key=True),
    )


def downgrade():
    op.drop_table('UserToken')
    op.drop_table('UserHealth')
    op.drop_table('UserLogin')
    op.drop_index('ix_User_id', table_name='User')
    op.drop_table('User')
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
