"""
Role to capability mapping.

Every role check in the project goes through has_capability/require_capability;
callers pass the acting user explicitly.
"""
from django.db import models

from common.errors import AuthenticationError, AuthorizationError

from .models import Role


class Capability(models.TextChoices):
    GENERATE_LETTERS = 'generate_letters', 'Generate and submit letters'
    REVIEW_LETTERS = 'review_letters', 'Review, approve and reject letters'
    MANAGE_USERS = 'manage_users', 'Manage roles and super-user status'
    MANAGE_COMMISSIONS = 'manage_commissions', 'Pay out commissions'
    OWN_COUPONS = 'own_coupons', 'Own referral coupons and earn commissions'


ROLE_CAPABILITIES = {
    Role.SUBSCRIBER: frozenset({Capability.GENERATE_LETTERS}),
    Role.EMPLOYEE: frozenset({Capability.OWN_COUPONS}),
    Role.ADMIN: frozenset({
        Capability.REVIEW_LETTERS,
        Capability.MANAGE_USERS,
        Capability.MANAGE_COMMISSIONS,
    }),
}

# Capabilities that additionally require the is_super_user flag
SUPER_USER_CAPABILITIES = frozenset({Capability.MANAGE_USERS})


def has_capability(user, capability):
    """Check whether user (may be None or anonymous) holds capability."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return False
    if not user.is_active:
        return False
    if capability not in ROLE_CAPABILITIES.get(user.role, frozenset()):
        return False
    if capability in SUPER_USER_CAPABILITIES and not user.is_super_user:
        return False
    return True


def require_authenticated(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        raise AuthenticationError()


def require_capability(user, capability, message=None):
    """Raise AuthenticationError/AuthorizationError unless user holds capability."""
    require_authenticated(user)
    if not has_capability(user, capability):
        raise AuthorizationError(message)
