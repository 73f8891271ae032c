"""Super-user and role management."""
import logging

from django.db import transaction

from accounts.models import Role, User
from accounts.permissions import Capability, require_capability
from common.errors import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

LAST_SUPER_USER_MESSAGE = (
    'Cannot revoke super admin status from the last super admin. Promote another admin first.'
)


def _get_target(user_id):
    try:
        return User.objects.select_for_update().get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('User not found')


def _lock_super_users():
    """Lock every super-user row and return how many there are."""
    return len(list(User.objects.super_users().select_for_update().values_list('pk', flat=True)))


def set_super_user(actor, user_id, is_super_user):
    """Grant or revoke super-user status. Revoking the last one is refused."""
    require_capability(actor, Capability.MANAGE_USERS)

    if not isinstance(is_super_user, bool):
        raise ValidationError('Missing userId or isSuperUser')
    if str(user_id) == str(actor.pk):
        raise AuthorizationError('Cannot modify your own super admin status')

    with transaction.atomic():
        target = _get_target(user_id)
        if not is_super_user and _lock_super_users() <= 1:
            raise ValidationError(LAST_SUPER_USER_MESSAGE)

        target.is_super_user = is_super_user
        target.save(update_fields=['is_super_user', 'updated_at'])

    action = 'granted' if is_super_user else 'revoked'
    logger.info(f"Super user status {action} for {target.email} by {actor.email}")
    return target


def change_role(actor, user_id, role):
    """Change a user's role. Promotion to admin starts without super-user status."""
    require_capability(actor, Capability.MANAGE_USERS)

    if role not in Role.values:
        raise ValidationError('Invalid role. Must be subscriber, employee, or admin')

    with transaction.atomic():
        target = _get_target(user_id)
        if target.pk == actor.pk:
            raise AuthorizationError('Cannot modify your own role')

        old_role = target.role
        target.role = role
        update_fields = ['role', 'updated_at']

        if role == Role.ADMIN and old_role != Role.ADMIN and target.is_super_user:
            if _lock_super_users() <= 1:
                raise ValidationError(LAST_SUPER_USER_MESSAGE)
            target.is_super_user = False
            update_fields.append('is_super_user')

        target.save(update_fields=update_fields)

    logger.info(f"Role for {target.email} changed from {old_role} to {role} by {actor.email}")
    return target


def list_super_users(actor):
    require_capability(actor, Capability.MANAGE_USERS)
    return User.objects.super_users().order_by('email')
