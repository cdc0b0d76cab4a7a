"""add doctor patient relationship

Revision ID: 0004
Revises: 0003
Create Date: 2024-02-05 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0004'
down_revision = '0003'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'DoctorPatientRelationship',
        sa.Column('doctorId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('patientId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), primary_key=True),
    )


def downgrade():
    op.drop_table('DoctorPatientRelationship')
