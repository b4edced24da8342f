# SQLAlchemy models
from tripcollab.models.plan import Plan, PlanStatus, PLAN_STATUS_ORDER
from tripcollab.models.member import PlanMember, MemberRole
from tripcollab.models.invitation import Invitation, InvitationStatus
from tripcollab.models.proposal import Proposal, ProposalCategory, ProposalSeed
from tripcollab.models.vote import Vote, VoteType
from tripcollab.models.message import Doubt
from tripcollab.models.expense import Expense
from tripcollab.models.conclusion import TripConclusion, TripFeedback

__all__ = [
    # Plan and membership
    "Plan",
    "PlanMember",
    "Invitation",
    # Proposals and voting
    "Proposal",
    "ProposalSeed",
    "Vote",
    # Discussion and spend
    "Doubt",
    "Expense",
    "TripConclusion",
    "TripFeedback",
    # Enums
    "PlanStatus",
    "MemberRole",
    "InvitationStatus",
    "ProposalCategory",
    "VoteType",
    "PLAN_STATUS_ORDER",
]
