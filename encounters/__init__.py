"""
Encounter core: entitlement policy, capture sessions, recording storage
routing, the encounter repository and subscription management.
"""

from .entitlement import (
    FREE_LIMIT,
    can_create_encounter,
    has_premium_access,
    remaining_free_encounters,
)
from .models import Encounter, SubscriptionStatus, UserAccount
from .session import UserSession

__all__ = [
    'FREE_LIMIT',
    'can_create_encounter',
    'has_premium_access',
    'remaining_free_encounters',
    'Encounter',
    'SubscriptionStatus',
    'UserAccount',
    'UserSession',
]
