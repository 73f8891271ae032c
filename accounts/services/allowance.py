"""
Letter allowance ledger.

The first letter a user ever creates is free. Every later letter consumes
exactly one credit from an active subscription through
deduct_letter_allowance, which is a single conditional UPDATE per row so two
concurrent requests can never both spend the last credit.
"""
import logging

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import Subscription, User

logger = logging.getLogger(__name__)


def deduct_letter_allowance(user_id):
    """
    Atomically take one credit from the user's oldest active subscription.

    Returns True if a credit was consumed. False means "no credits", and is
    also what a storage error looks like to the caller.
    """
    candidates = Subscription.objects.filter(
        user_id=user_id,
        status=Subscription.STATUS_ACTIVE,
        credits_remaining__gt=0,
    ).order_by('created_at', 'id').values_list('pk', flat=True)

    try:
        for subscription_id in list(candidates):
            with transaction.atomic():
                updated = Subscription.objects.filter(
                    pk=subscription_id,
                    status=Subscription.STATUS_ACTIVE,
                    credits_remaining__gt=0,
                ).update(
                    credits_remaining=F('credits_remaining') - 1,
                    updated_at=timezone.now(),
                )
            if updated:
                logger.info(f"Deducted one letter credit from subscription {subscription_id} (user {user_id})")
                return True
    except DatabaseError:
        logger.exception(f"Allowance deduction failed for user {user_id}")
        return False

    logger.info(f"No letter credits available for user {user_id}")
    return False


def has_available_credits(user_id):
    return Subscription.objects.filter(
        user_id=user_id,
        status=Subscription.STATUS_ACTIVE,
        credits_remaining__gt=0,
    ).exists()


def claim_free_trial(user_id, exclude_letter_id=None):
    """
    Claim the user's one free letter.

    Succeeds only when the user owns no other letter and has not claimed the
    trial before. Must run inside transaction.atomic(): the user row is locked
    so the "count letters" check and the following letter insert/update are
    serialized per user.
    """
    from letters.models import Letter

    user = User.objects.select_for_update().get(pk=user_id)
    if user.free_trial_used:
        return False

    prior_letters = Letter.objects.filter(user_id=user_id)
    if exclude_letter_id is not None:
        prior_letters = prior_letters.exclude(pk=exclude_letter_id)
    if prior_letters.exists():
        return False

    claimed = User.objects.filter(pk=user_id, free_trial_used=False).update(free_trial_used=True)
    return claimed == 1


def get_allowance_summary(user):
    """Summary of the user's letter entitlement for display."""
    from letters.models import Letter

    subscriptions = user.get_active_subscriptions()
    return {
        'free_trial_available': not user.free_trial_used and not Letter.objects.filter(user=user).exists(),
        'credits_remaining': user.get_credits_remaining(),
        'has_active_subscription': subscriptions.exists(),
        'subscriptions': [
            {
                'id': sub.id,
                'plan': sub.plan,
                'credits_remaining': sub.credits_remaining,
                'current_period_end': sub.current_period_end,
            }
            for sub in subscriptions
        ],
    }
