"""add event responses

Revision ID: 0006
Revises: 0005
Create Date: 2024-03-25 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0006'
down_revision = '0005'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'QuestionResponseEvent',
        sa.Column('questionId', sa.Integer(), sa.ForeignKey('Question.id', ondelete='CASCADE'), nullable=False),
        sa.Column('userId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'assignmentInstanceId', sa.Integer(),
            sa.ForeignKey('QuestionnaireAssignmentInstance.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('timelineItemId', sa.Integer(), sa.ForeignKey('TimelineItem.id', ondelete='CASCADE'), nullable=False),
        sa.PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId'),
    )


def downgrade():
    op.drop_table('QuestionResponseEvent')
