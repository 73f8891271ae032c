import json
from decimal import Decimal
from unittest import mock

import pytest
import stripe

from accounts.models import Subscription
from common.errors import AuthorizationError, ExternalServiceError, ValidationError
from referrals.models import Commission, CouponUsage, EmployeeCoupon
from referrals.services import checkout
from referrals.services.pricing import quote_price
from referrals.services.stripe_service import StripeCheckoutService

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def checkout_settings(settings):
    settings.BYPASS_COUPON_CODE = 'TALK3'
    settings.BYPASS_COUPON_EMPLOYEE_EMAIL = ''
    settings.COMMISSION_RATE = '0.05'
    settings.STRIPE_SECRET_KEY = 'sk_test_123'
    settings.STRIPE_WEBHOOK_SECRET = 'whsec_test'


class FakeCheckoutService:
    def __init__(self):
        self.created = []

    def create_session(self, quote, user):
        self.created.append((quote, user))
        return {'id': 'cs_test_1', 'url': 'https://checkout.stripe.com/c/pay/cs_test_1'}


def _paid_session(user, quote, session_id='cs_test_1', payment_status='paid'):
    return {
        'id': session_id,
        'payment_status': payment_status,
        'metadata': quote.to_metadata(user.pk),
    }


@pytest.fixture
def coupon(employee):
    return EmployeeCoupon.objects.create(employee=employee, code='ERIN20', discount_percent=20)


# --- zero-cost path ---

def test_bypass_token_creates_subscription_and_list_price_commission(subscriber):
    result = checkout.start_checkout(subscriber, 'one_time', 'TALK3')

    subscription = result.subscription
    assert subscription.price == Decimal('0.00')
    assert subscription.discount == Decimal('299.00')
    assert subscription.credits_remaining == 1
    assert subscription.stripe_session_id is None
    assert subscription.current_period_end > subscription.current_period_start

    commission = Commission.objects.get(subscription=subscription)
    assert commission.employee is None
    assert commission.subscription_amount == Decimal('299.00')
    assert commission.commission_amount == Decimal('14.95')

    subscriber.refresh_from_db()
    assert subscriber.is_super_user is False
    assert CouponUsage.objects.get().coupon_code == 'TALK3'


def test_full_discount_coupon_grants_super_user(subscriber, employee):
    vip = EmployeeCoupon.objects.create(employee=employee, code='VIP100', discount_percent=100)

    result = checkout.start_checkout(subscriber, 'premium_8_month', 'VIP100')

    assert result.subscription.credits_remaining == 8
    subscriber.refresh_from_db()
    assert subscriber.is_super_user is True

    commission = Commission.objects.get(subscription=result.subscription)
    assert commission.employee == employee
    assert commission.commission_amount == Decimal('0.00')

    vip.refresh_from_db()
    assert vip.usage_count == 1

    usage = CouponUsage.objects.get()
    assert (usage.amount_before, usage.amount_after) == (Decimal('599.00'), Decimal('0.00'))
    assert usage.discount_applied == Decimal('599.00')


# --- paid path ---

def test_paid_plan_opens_stripe_session_without_local_changes(subscriber, coupon):
    service = FakeCheckoutService()

    result = checkout.start_checkout(subscriber, 'one_time', 'ERIN20', checkout_service=service)

    assert result.subscription is None
    assert result.session_id == 'cs_test_1'
    assert result.url.startswith('https://checkout.stripe.com/')
    assert service.created[0][0].final_price == Decimal('239.20')
    assert not Subscription.objects.exists()
    assert not CouponUsage.objects.exists()


def test_unknown_coupon_checks_out_at_full_price(subscriber):
    service = FakeCheckoutService()

    result = checkout.start_checkout(subscriber, 'one_time', 'NOPE99', checkout_service=service)

    quote = service.created[0][0]
    assert result.session_id == 'cs_test_1'
    assert quote.final_price == Decimal('299.00')
    assert quote.coupon_code == ''


def test_settlement_records_purchase(subscriber, employee, coupon):
    quote = quote_price('standard_4_month', 'ERIN20')

    result = checkout.settle_checkout_session('cs_test_1', session=_paid_session(subscriber, quote))

    assert result.created is True
    subscription = result.subscription
    assert subscription.user == subscriber
    assert subscription.price == Decimal('239.20')
    assert subscription.credits_remaining == 4
    assert subscription.stripe_session_id == 'cs_test_1'

    commission = subscription.commission
    assert commission.employee == employee
    assert commission.subscription_amount == Decimal('239.20')
    assert commission.commission_amount == Decimal('11.96')

    coupon.refresh_from_db()
    assert coupon.usage_count == 1


def test_settlement_is_idempotent(subscriber, coupon):
    session = _paid_session(subscriber, quote_price('one_time', 'ERIN20'))

    first = checkout.settle_checkout_session('cs_test_1', session=session)
    second = checkout.settle_checkout_session('cs_test_1', session=session)

    assert first.created is True
    assert second.created is False
    assert first.subscription.pk == second.subscription.pk
    assert Subscription.objects.count() == 1
    assert Commission.objects.count() == 1
    assert CouponUsage.objects.count() == 1
    coupon.refresh_from_db()
    assert coupon.usage_count == 1


def test_settlement_uses_metadata_not_current_pricing(subscriber, coupon):
    session = _paid_session(subscriber, quote_price('one_time', 'ERIN20'))
    coupon.discount_percent = 50
    coupon.save()

    result = checkout.settle_checkout_session('cs_test_1', session=session)

    assert result.subscription.price == Decimal('239.20')


def test_unpaid_session_is_rejected(subscriber):
    session = _paid_session(subscriber, quote_price('one_time'), payment_status='unpaid')

    with pytest.raises(ValidationError) as excinfo:
        checkout.settle_checkout_session('cs_test_1', session=session)

    assert excinfo.value.message == 'Payment not completed'
    assert not Subscription.objects.exists()


def test_missing_session_id():
    with pytest.raises(ValidationError):
        checkout.settle_checkout_session('')


def test_settling_another_users_session_is_forbidden(subscriber, other_subscriber):
    session = _paid_session(subscriber, quote_price('one_time'))

    with pytest.raises(AuthorizationError):
        checkout.settle_checkout_session('cs_test_1', user=other_subscriber, session=session)


def test_settlement_retrieves_session_from_stripe(subscriber):
    service = mock.Mock()
    service.retrieve_session.return_value = _paid_session(subscriber, quote_price('one_time'))

    result = checkout.settle_checkout_session('cs_test_1', user=subscriber, checkout_service=service)

    service.retrieve_session.assert_called_once_with('cs_test_1')
    assert result.subscription.credits_remaining == 1
    assert not Commission.objects.exists()


def test_webhook_event_settles_checkout(subscriber):
    event = {
        'type': 'checkout.session.completed',
        'data': {'object': _paid_session(subscriber, quote_price('one_time'), session_id='cs_hook')},
    }

    result = checkout.handle_webhook_event(event)

    assert result.subscription.stripe_session_id == 'cs_hook'
    assert checkout.handle_webhook_event(event).created is False


def test_other_webhook_events_are_ignored():
    assert checkout.handle_webhook_event({'type': 'invoice.paid', 'data': {'object': {}}}) is None


# --- Stripe wrapper ---

def test_stripe_session_carries_cents_and_metadata(subscriber, coupon):
    quote = quote_price('one_time', 'ERIN20')
    session = mock.Mock(id='cs_test_9', url='https://checkout.stripe.com/x')

    with mock.patch('stripe.checkout.Session.create', return_value=session) as create:
        StripeCheckoutService().create_session(quote, subscriber)

    kwargs = create.call_args.kwargs
    assert kwargs['mode'] == 'payment'
    assert kwargs['line_items'][0]['price_data']['unit_amount'] == 23920
    assert kwargs['metadata']['final_price'] == '239.20'
    assert kwargs['metadata']['user_id'] == str(subscriber.pk)


def test_stripe_errors_become_external_service_errors(subscriber):
    quote = quote_price('one_time')

    with mock.patch('stripe.checkout.Session.create', side_effect=stripe.error.StripeError('card network down')):
        with pytest.raises(ExternalServiceError) as excinfo:
            StripeCheckoutService().create_session(quote, subscriber)

    assert excinfo.value.service == 'stripe'


def test_stripe_not_configured(settings):
    settings.STRIPE_SECRET_KEY = ''

    with pytest.raises(ExternalServiceError):
        StripeCheckoutService()


# --- HTTP ---

def test_checkout_endpoint_zero_cost(client_for, subscriber):
    response = client_for(subscriber).post(
        '/api/v1/checkout/', {'planType': 'one_time', 'couponCode': 'TALK3'}, format='json'
    )

    assert response.status_code == 201
    assert response.data['letters'] == 1
    assert response.data['subscriptionId'] == Subscription.objects.get().pk


def test_checkout_endpoint_invalid_plan(client_for, subscriber):
    response = client_for(subscriber).post('/api/v1/checkout/', {'planType': 'gold'}, format='json')

    assert response.status_code == 400
    assert response.data['error'] == 'Invalid plan type'


def test_verify_endpoint(client_for, subscriber):
    session = _paid_session(subscriber, quote_price('one_time'))

    with mock.patch('stripe.checkout.Session.retrieve', return_value=session):
        response = client_for(subscriber).post('/api/v1/checkout/verify/', {'sessionId': 'cs_test_1'}, format='json')
        again = client_for(subscriber).post('/api/v1/checkout/verify/', {'sessionId': 'cs_test_1'}, format='json')

    assert response.status_code == 200
    assert again.data['subscriptionId'] == response.data['subscriptionId']
    assert again.data['message'] == 'Subscription already created'


def test_webhook_endpoint(api_client, subscriber):
    event = {
        'type': 'checkout.session.completed',
        'data': {'object': _paid_session(subscriber, quote_price('one_time'), session_id='cs_hook')},
    }

    with mock.patch('referrals.api.views.construct_webhook_event', return_value=event):
        response = api_client.post(
            '/api/v1/checkout/webhook/',
            data=json.dumps(event),
            content_type='application/json',
            HTTP_STRIPE_SIGNATURE='t=1,v1=abc',
        )

    assert response.status_code == 200
    assert Subscription.objects.get().stripe_session_id == 'cs_hook'


def test_webhook_bad_signature(api_client):
    error = stripe.error.SignatureVerificationError('bad signature', 't=1,v1=abc')

    with mock.patch('referrals.api.views.construct_webhook_event', side_effect=error):
        response = api_client.post(
            '/api/v1/checkout/webhook/', data='{}', content_type='application/json',
            HTTP_STRIPE_SIGNATURE='t=1,v1=abc',
        )

    assert response.status_code == 400
    assert not Subscription.objects.exists()
