"""Database models - import all models here for Alembic discovery."""

from pevi_api.models.activity import Activity, Award
from pevi_api.models.campaign import Campaign, CampaignBeneficiary, Milestone
from pevi_api.models.donation import Donation
from pevi_api.models.user import User

__all__ = [
    "User",
    "Campaign",
    "Milestone",
    "CampaignBeneficiary",
    "Activity",
    "Award",
    "Donation",
]
