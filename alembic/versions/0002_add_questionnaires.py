"""add questionnaires

Revision ID: 0002
Revises: 0001
Create Date: 2024-01-10 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'Questionnaire',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('creatingUserId', sa.Integer(), sa.ForeignKey('User.id'), nullable=False),
    )
    op.create_index('ix_Questionnaire_id', 'Questionnaire', ['id'])

    op.create_table(
        'Question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('questionnaireId', sa.Integer(), sa.ForeignKey('Questionnaire.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column(
            'type',
            sa.Enum('BOOLEAN', 'TEXT', 'SINGLE_CHOICE', 'MULTIPLE_CHOICE', 'EVENT', name='question_type'),
            nullable=False,
        ),
    )
    op.create_index('ix_Question_id', 'Question', ['id'])
    op.create_index('idx_question_questionnaire', 'Question', ['questionnaireId'])

    op.create_table(
        'QuestionOption',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('questionId', sa.Integer(), sa.ForeignKey('Question.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
    )
    op.create_index('ix_QuestionOption_id', 'QuestionOption', ['id'])

    op.create_table(
        'QuestionRelation',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('questionId', sa.Integer(), sa.ForeignKey('Question.id', ondelete='CASCADE'), nullable=False),
        sa.Column('includes', sa.Text(), nullable=True),
        sa.Column('equals', sa.Text(), nullable=True),
        sa.Column('nextQuestionId', sa.Integer(), sa.ForeignKey('Question.id', ondelete='CASCADE'), nullable=False),
    )
    op.create_index('ix_QuestionRelation_id', 'QuestionRelation', ['id'])


def downgrade():
    op.drop_index('ix_QuestionRelation_id', table_name='QuestionRelation')
    op.drop_table('QuestionRelation')
    op.drop_index('ix_QuestionOption_id', table_name='QuestionOption')
    op.drop_table('QuestionOption')
    op.drop_index('idx_question_questionnaire', table_name='Question')
    op.drop_index('ix_Question_id', table_name='Question')
    op.drop_table('Question')
    op.drop_index('ix_Questionnaire_id', table_name='Questionnaire')
    op.drop_table('Questionnaire')
    sa.Enum(name='question_type').drop(op.get_bind(), checkfirst=True)
