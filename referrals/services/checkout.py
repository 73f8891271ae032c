"""
Checkout and settlement.

start_checkout either settles a zero-cost purchase on the spot or opens a
Stripe Checkout Session. settle_checkout_session is the paid-path mirror of
the zero-cost branch: both end in apply_purchase, and settlement is keyed on
the Stripe session id so redelivered confirmations create nothing new.
"""
import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import Subscription, User
from accounts.permissions import require_authenticated
from common.errors import AuthorizationError, ConflictError, ValidationError
from referrals.models import Commission, CouponUsage, EmployeeCoupon
from .pricing import PricingQuote, compute_commission, quote_price

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    quote: PricingQuote
    subscription: Subscription = None
    session_id: str = None
    url: str = None


@dataclass
class SettlementResult:
    subscription: Subscription
    created: bool


def get_checkout_service():
    from .stripe_service import StripeCheckoutService
    return StripeCheckoutService()


def apply_purchase(user_id, quote, stripe_session_id=None):
    """
    Record a completed purchase: subscription, super-user grant, coupon usage,
    commission and coupon usage count, all in one transaction.

    Raises ConflictError if stripe_session_id was already settled.
    """
    try:
        with transaction.atomic():
            subscription = Subscription(
                user_id=user_id,
                plan=quote.plan_type,
                status=Subscription.STATUS_ACTIVE,
                price=quote.final_price,
                discount=quote.discount_amount,
                coupon_code=quote.coupon_code,
                credits_remaining=quote.letters,
                stripe_session_id=stripe_session_id,
            )
            subscription.start_period()
            subscription.save()

            if quote.is_super_user_coupon:
                User.objects.filter(pk=user_id).update(is_super_user=True, updated_at=timezone.now())
                logger.info(f"User {user_id} granted super-user status via coupon {quote.coupon_code}")

            if quote.coupon_code:
                CouponUsage.objects.create(
                    user_id=user_id,
                    employee_id=quote.employee_id,
                    subscription=subscription,
                    coupon_code=quote.coupon_code,
                    discount_percent=quote.discount_percent,
                    amount_before=quote.base_price,
                    amount_after=quote.final_price,
                )

            commission_base = quote.commission_base()
            if commission_base is not None:
                rate, amount = compute_commission(commission_base)
                Commission.objects.create(
                    employee_id=quote.employee_id,
                    subscription=subscription,
                    subscription_amount=commission_base,
                    commission_rate=rate,
                    commission_amount=amount,
                )
                logger.info(
                    f"Commission ${amount} recorded for employee {quote.employee_id} "
                    f"on subscription {subscription.pk}"
                )

            if quote.coupon_id:
                EmployeeCoupon.objects.filter(pk=quote.coupon_id).update(
                    usage_count=F('usage_count') + 1,
                    updated_at=timezone.now(),
                )
    except IntegrityError as e:
        if stripe_session_id and Subscription.objects.filter(stripe_session_id=stripe_session_id).exists():
            raise ConflictError() from e
        raise

    logger.info(
        f"Subscription {subscription.pk} created for user {user_id}: {quote.plan_type}, "
        f"${quote.final_price} paid, {quote.letters} letters"
    )
    return subscription


def start_checkout(user, plan_type, coupon_code='', checkout_service=None):
    require_authenticated(user)
    quote = quote_price(plan_type, coupon_code, purchaser=user)

    if quote.is_free:
        subscription = apply_purchase(user.pk, quote)
        return CheckoutResult(quote=quote, subscription=subscription)

    if checkout_service is None:
        checkout_service = get_checkout_service()
    session = checkout_service.create_session(quote, user)
    return CheckoutResult(quote=quote, session_id=session['id'], url=session['url'])


def _session_metadata(session):
    metadata = session['metadata'] or {}
    return {key: metadata[key] for key in metadata.keys()}


def _check_owner(owner_id, user):
    if user is not None and owner_id != user.pk:
        raise AuthorizationError('This checkout session belongs to another account')


def settle_checkout_session(session_id, user=None, session=None, checkout_service=None):
    """
    Turn a paid Stripe Checkout Session into a subscription, exactly once.

    Pricing facts come from the session metadata written by start_checkout.
    Pass user to restrict settlement to the purchaser; webhooks pass None.
    """
    if not session_id:
        raise ValidationError('Session ID required')

    existing = Subscription.objects.filter(stripe_session_id=session_id).first()
    if existing is not None:
        _check_owner(existing.user_id, user)
        return SettlementResult(subscription=existing, created=False)

    if session is None:
        if checkout_service is None:
            checkout_service = get_checkout_service()
        session = checkout_service.retrieve_session(session_id)

    if session['payment_status'] != 'paid':
        raise ValidationError('Payment not completed')

    metadata = _session_metadata(session)
    try:
        user_id = int(metadata['user_id'])
    except (KeyError, ValueError):
        raise ValidationError('Checkout session is missing pricing details')
    _check_owner(user_id, user)
    quote = PricingQuote.from_metadata(metadata)

    try:
        subscription = apply_purchase(user_id, quote, stripe_session_id=session_id)
    except ConflictError:
        logger.info(f"Checkout session {session_id} already settled")
        return SettlementResult(
            subscription=Subscription.objects.get(stripe_session_id=session_id),
            created=False,
        )
    return SettlementResult(subscription=subscription, created=True)


def handle_webhook_event(event):
    """Settle checkout.session.completed events; ignore everything else."""
    if event['type'] != 'checkout.session.completed':
        return None

    session = event['data']['object']
    if session['payment_status'] != 'paid':
        logger.info(f"Checkout session {session['id']} completed without payment; waiting")
        return None
    return settle_checkout_session(session['id'], session=session)
