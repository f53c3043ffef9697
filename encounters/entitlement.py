"""
Entitlement Policy

Pure decisions about what a subscription tier allows. Nothing is cached:
callers evaluate these on every create/save attempt with the live
encounter count and the live subscription status.
"""

from encounters.models import SubscriptionStatus

FREE_LIMIT = 1

UNLIMITED_STATUSES = frozenset({
    SubscriptionStatus.PREMIUM,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
})


def has_premium_access(subscription_status):
    """True iff the status is premium, active or trialing."""
    return SubscriptionStatus.parse(subscription_status) in UNLIMITED_STATUSES


def can_create_encounter(subscription_status, current_encounter_count):
    """
    Decide whether a new encounter may be saved.

    Args:
        subscription_status: SubscriptionStatus or its string value
        current_encounter_count (int): encounters the user has right now

    Returns:
        bool: True when unlimited, or when the free allowance is not used up
    """
    if has_premium_access(subscription_status):
        return True
    return current_encounter_count < FREE_LIMIT


def remaining_free_encounters(current_encounter_count):
    return max(0, FREE_LIMIT - current_encounter_count)


def describe_entitlement(subscription_status, current_encounter_count):
    """Snapshot of the entitlement state for display."""
    premium = has_premium_access(subscription_status)
    return {
        'subscription_status': SubscriptionStatus.parse(subscription_status).value,
        'premium': premium,
        'encounter_count': current_encounter_count,
        'free_limit': FREE_LIMIT,
        'remaining_free_encounters': None if premium else remaining_free_encounters(current_encounter_count),
        'can_create_encounter': can_create_encounter(subscription_status, current_encounter_count),
        'durable_storage': premium,
    }
