"""add timeline

Revision ID: 0003
Revises: 0002
Create Date: 2024-02-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0003'
down_revision = '0002'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'TimelineGroup',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('className', sa.String(320), nullable=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('style', sa.Text(), nullable=True),
        sa.Column('order', sa.Integer(), nullable=True),
        sa.Column('visible', sa.Boolean(), nullable=True),
        sa.Column('showNested', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_TimelineGroup_id', 'TimelineGroup', ['id'])

    op.create_table(
        'TimelineItem',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('className', sa.String(320), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('group', sa.Integer(), sa.ForeignKey('TimelineGroup.id', ondelete='CASCADE'), nullable=True),
        sa.Column('style', sa.Text(), nullable=True),
        sa.Column('subgroup', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('type', sa.Enum('box', 'point', 'range', 'background', name='timeline_item_type'), nullable=True),
        sa.Column('editable', sa.Boolean(), nullable=True),
        sa.Column('selectable', sa.Boolean(), nullable=True),
        sa.Column('userId', sa.Integer(), sa.ForeignKey('User.id', ondelete='CASCADE'), nullable=False),
    )
    op.create_index('ix_TimelineItem_id', 'TimelineItem', ['id'])
    op.create_index('idx_timeline_item_user', 'TimelineItem', ['userId'])

    op.create_table(
        'TimelineGroupNesting',
        sa.Column('groupId', sa.Integer(), sa.ForeignKey('TimelineGroup.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('nestedGroupId', sa.Integer(), sa.ForeignKey('TimelineGroup.id', ondelete='CASCADE'), primary_key=True),
    )


def downgrade():
    op.drop_table('TimelineGroupNesting')
    op.drop_index('idx_timeline_item_user', table_name='TimelineItem')
    op.drop_index('ix_TimelineItem_id', table_name='TimelineItem')
    op.drop_table('TimelineItem')
    op.drop_index('ix_TimelineGroup_id', table_name='TimelineGroup')
    op.drop_table('TimelineGroup')
    sa.Enum(name='timeline_item_type').drop(op.get_bind(), checkfirst=True)
