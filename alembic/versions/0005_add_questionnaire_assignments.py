"""add questionnaire assignments and instance scoped responses

Revision ID: 0005
Revises: 0004
Create Date: 2024-03-11 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0005'
down_revision = '0004'
branch_labels = None
depends_on = None


def _response_key_columns():
    return [
        sa.Column('questionId', sa.Integer(), sa.ForeignKey('Question.id', ondelete='CASCADE'), nullable=False),
        sa.Column('userId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'assignmentInstanceId', sa.Integer(),
            sa.ForeignKey('QuestionnaireAssignmentInstance.id', ondelete='CASCADE'), nullable=False
        ),
    ]


def upgrade():
    op.create_table(
        'QuestionnaireAssignment',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('questionnaireId', sa.Integer(), sa.ForeignKey('Questionnaire.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigneeId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignerId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('repeatInterval', sa.Integer(), nullable=True),
        sa.UniqueConstraint('questionnaireId', 'assigneeId', 'assignerId', name='uq_questionnaire_assignment'),
    )
    op.create_index('ix_QuestionnaireAssignment_id', 'QuestionnaireAssignment', ['id'])
    op.create_index('idx_questionnaire_assignment_assigner', 'QuestionnaireAssignment', ['assignerId'])

    # assignmentId has no foreign key: instances and their responses outlive the assignment
    op.create_table(
        'QuestionnaireAssignmentInstance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('assignmentId', sa.Integer(), nullable=False),
        sa.Column('questionnaireId', sa.Integer(), sa.ForeignKey('Questionnaire.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigneeId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignerId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
    )
    op.create_index('ix_QuestionnaireAssignmentInstance_id', 'QuestionnaireAssignmentInstance', ['id'])
    op.create_index('idx_assignment_instance_assignment', 'QuestionnaireAssignmentInstance', ['assignmentId'])
    op.create_index('idx_assignment_instance_assignee', 'QuestionnaireAssignmentInstance', ['assigneeId'])

    op.create_table(
        'QuestionResponseBoolean',
        *_response_key_columns(),
        sa.Column('value', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId'),
    )

    op.create_table(
        'QuestionResponseText',
        *_response_key_columns(),
        sa.Column('value', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId'),
    )

    op.create_table(
        'QuestionResponseChoice',
        *_response_key_columns(),
        sa.Column('optionId', sa.Integer(), sa.ForeignKey('QuestionOption.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId', 'optionId'),
    )


def downgrade():
    op.drop_table('QuestionResponseChoice')
    op.drop_table('QuestionResponseText')
    op.drop_table('QuestionResponseBoolean')
    op.drop_index('idx_assignment_instance_assignee', table_name='QuestionnaireAssignmentInstance')
    op.drop_index('idx_assignment_instance_assignment', table_name='QuestionnaireAssignmentInstance')
    op.drop_index('ix_QuestionnaireAssignmentInstance_id', table_name='QuestionnaireAssignmentInstance')
    op.drop_table('QuestionnaireAssignmentInstance')
    op.drop_index('idx_questionnaire_assignment_assigner', table_name='QuestionnaireAssignment')
    op.drop_index('ix_QuestionnaireAssignment_id', table_name='QuestionnaireAssignment')
    op.drop_table('QuestionnaireAssignment')
