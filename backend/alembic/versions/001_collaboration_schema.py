"""Collaboration schema

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None

plan_status = sa.Enum('PLANNING', 'COLLABORATION', 'ONGOING', 'CONCLUDED', name='planstatus')
member_role = sa.Enum('OWNER', 'PARTICIPANT', name='memberrole')
invitation_status = sa.Enum('PENDING', 'ACCEPTED', 'DECLINED', name='invitationstatus')
proposal_category = sa.Enum('DATE', 'ACCOMMODATION', 'ITINERARY', name='proposalcategory')
vote_type = sa.Enum('UP', 'DOWN', name='votetype')


def upgrade():
    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(64), nullable=False),
        sa.Column('owner_name', sa.String(128)),
        sa.Column('destination', sa.String(256), nullable=False),
        sa.Column('dates', sa.String(256)),
        sa.Column('description', sa.Text()),
        sa.Column('status', plan_status, nullable=False),
        sa.Column('plan_data', sa.JSON()),
        sa.Column('concluded_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_plans_owner_id', 'plans', ['owner_id'])

    op.create_table(
        'plan_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_name', sa.String(128)),
        sa.Column('role', member_role, nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.UniqueConstraint('plan_id', 'user_id', name='uix_plan_member'),
    )
    op.create_index('ix_plan_members_plan_id', 'plan_members', ['plan_id'])
    op.create_index('ix_plan_members_user_id', 'plan_members', ['user_id'])

    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invited_email', sa.String(320), nullable=False),
        sa.Column('invited_user_id', sa.String(64)),
        sa.Column('status', invitation_status, nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('plan_id', 'invited_email', name='uix_plan_invited_email'),
    )
    op.create_index('ix_invitations_plan_id', 'invitations', ['plan_id'])

    op.create_table(
        'proposals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_name', sa.String(128), nullable=False),
        sa.Column('category', proposal_category, nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON()),
        sa.Column('day_title', sa.String(256)),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_index('ix_proposals_plan_id', 'proposals', ['plan_id'])
    op.create_index('ix_proposals_category', 'proposals', ['category'])
    op.create_index('ix_proposals_created_at', 'proposals', ['created_at'])

    op.create_table(
        'proposal_seeds',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', proposal_category, nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.UniqueConstraint('plan_id', 'category', name='uix_plan_seed_category'),
    )

    op.create_table(
        'likes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('proposal_id', sa.Integer(), sa.ForeignKey('proposals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('type', vote_type, nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('proposal_id', 'user_id', name='uix_vote_proposal_user'),
    )
    op.create_index('ix_likes_proposal_id', 'likes', ['proposal_id'])

    op.create_table(
        'doubts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_name', sa.String(128)),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_doubts_plan_id', 'doubts', ['plan_id'])
    op.create_index('ix_doubts_created_at', 'doubts', ['created_at'])

    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_name', sa.String(128)),
        sa.Column('description', sa.String(512), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.CheckConstraint('amount >= 0', name='ck_expense_amount_non_negative'),
    )
    op.create_index('ix_expenses_plan_id', 'expenses', ['plan_id'])

    op.create_table(
        'trip_conclusions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('total_days', sa.Integer()),
        sa.Column('total_expense', sa.Float()),
        sa.Column('expected_budget', sa.Float()),
        sa.Column('activities_count', sa.Integer()),
        sa.Column('visited_places', sa.JSON()),
        sa.Column('ai_summary', sa.Text()),
        sa.Column('summary_attempts', sa.Integer()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )

    op.create_table(
        'trip_feedback',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_name', sa.String(128)),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('plan_id', 'user_id', name='uix_feedback_plan_user'),
    )
    op.create_index('ix_trip_feedback_plan_id', 'trip_feedback', ['plan_id'])


def downgrade():
    op.drop_table('trip_feedback')
    op.drop_table('trip_conclusions')
    op.drop_table('expenses')
    op.drop_table('doubts')
    op.drop_table('likes')
    op.drop_table('proposal_seeds')
    op.drop_table('proposals')
    op.drop_table('invitations')
    op.drop_table('plan_members')
    op.drop_table('plans')
    for enum_type in (vote_type, proposal_category, invitation_status, member_role, plan_status):
        enum_type.drop(op.get_bind(), checkfirst=True)
