import pytest
from rest_framework.test import APIClient

from accounts.models import Role, Subscription, User


class FakeDraftingService:
    """Stands in for OpenAIService; records prompts and returns canned text."""

    def __init__(self, content='Dear Recipient,\n\nPlease remit payment.\n\nSincerely,\nSender', error=None):
        self.content = content
        self.error = error
        self.calls = []

    def generate(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture(autouse=True)
def plain_http(settings):
    # Test client requests are plain HTTP
    settings.SECURE_SSL_REDIRECT = False


def _make_user(email, role=Role.SUBSCRIBER, **extra):
    return User.objects.create_user(email=email, password='test-pass-123', role=role, **extra)


@pytest.fixture
def subscriber(db):
    return _make_user('subscriber@example.com', full_name='Sam Subscriber')


@pytest.fixture
def other_subscriber(db):
    return _make_user('other@example.com')


@pytest.fixture
def employee(db):
    return _make_user('employee@example.com', role=Role.EMPLOYEE, full_name='Erin Employee')


@pytest.fixture
def admin_user(db):
    return _make_user('reviewer@example.com', role=Role.ADMIN)


@pytest.fixture
def super_admin(db):
    return _make_user('owner@example.com', role=Role.ADMIN, is_super_user=True)


@pytest.fixture
def make_subscription(db):
    def _make(user, credits=4, plan='standard_4_month', status=Subscription.STATUS_ACTIVE, price='299.00'):
        subscription = Subscription(
            user=user,
            plan=plan,
            status=status,
            price=price,
            credits_remaining=credits,
        )
        subscription.start_period()
        subscription.save()
        return subscription
    return _make


@pytest.fixture
def used_free_trial(subscriber):
    subscriber.free_trial_used = True
    subscriber.save(update_fields=['free_trial_used'])
    return subscriber


@pytest.fixture
def drafter():
    return FakeDraftingService()


@pytest.fixture
def failing_drafter():
    return FakeDraftingService(error=RuntimeError('model overloaded'))


@pytest.fixture
def intake_data():
    return {
        'senderName': 'Sam Subscriber',
        'senderAddress': '1 Main St, Springfield',
        'recipientName': 'Acme Corp',
        'recipientAddress': '99 Market St, Springfield',
        'issueDescription': 'Unpaid invoice for consulting services.',
        'desiredOutcome': 'Payment within 14 days.',
        'amountDemanded': '1500',
    }


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _client
