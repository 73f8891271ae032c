"""
Thin wrapper over Stripe hosted Checkout.

Stripe errors surface as ExternalServiceError('stripe') so callers never
import stripe themselves.
"""
import logging

import stripe
from django.conf import settings

from common.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)


class StripeCheckoutService:
    service_name = 'stripe'

    def __init__(self, api_key=None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        if not self.api_key:
            raise ExternalServiceError(self.service_name, 'Payment processing is not configured')

    def create_session(self, quote, user):
        """Create a one-off payment Checkout Session for quote. Returns the session."""
        description = f"{quote.letters} Legal {'Letter' if quote.letters == 1 else 'Letters'}"
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode='payment',
                payment_method_types=['card'],
                line_items=[{
                    'price_data': {
                        'currency': 'usd',
                        'unit_amount': quote.final_price_cents,  # Stripe uses cents
                        'product_data': {
                            'name': quote.plan_name,
                            'description': description,
                        },
                    },
                    'quantity': 1,
                }],
                success_url=settings.CHECKOUT_SUCCESS_URL,
                cancel_url=settings.CHECKOUT_CANCEL_URL,
                client_reference_id=str(user.pk),
                customer_email=user.email,
                metadata=quote.to_metadata(user.pk),
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe checkout session creation failed for {user.email}: {e}")
            raise ExternalServiceError(self.service_name, 'Failed to create checkout') from e

        logger.info(f"Created checkout session {session.id} for {user.email} ({quote.plan_type})")
        return session

    def retrieve_session(self, session_id):
        try:
            return stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.error.InvalidRequestError as e:
            logger.info(f"Unknown checkout session {session_id}: {e}")
            raise ValidationError('Invalid checkout session') from e
        except stripe.error.StripeError as e:
            logger.error(f"Stripe session retrieval failed for {session_id}: {e}")
            raise ExternalServiceError(self.service_name, 'Failed to verify payment') from e


def construct_webhook_event(payload, signature):
    """Verify a webhook signature. Raises ValueError or SignatureVerificationError."""
    return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
