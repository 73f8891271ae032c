import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum

from accounts.permissions import Capability, require_capability
from common.errors import NotFoundError, ValidationError
from referrals.models import Commission
from .pricing import to_money

logger = logging.getLogger(__name__)


def _totals(commissions):
    rows = commissions.order_by().values('status').annotate(total=Sum('commission_amount'), count=Count('id'))
    totals = {
        Commission.STATUS_PENDING: {'total': Decimal('0.00'), 'count': 0},
        Commission.STATUS_PAID: {'total': Decimal('0.00'), 'count': 0},
    }
    for row in rows:
        totals[row['status']] = {'total': to_money(row['total'] or 0), 'count': row['count']}
    return totals


def employee_commission_summary(employee):
    """Pending and paid totals plus the commission list for one employee."""
    require_capability(employee, Capability.OWN_COUPONS, 'Only employees earn commissions')
    commissions = Commission.objects.filter(employee=employee).select_related('subscription')
    totals = _totals(commissions)
    return {
        'pending_total': totals[Commission.STATUS_PENDING]['total'],
        'paid_total': totals[Commission.STATUS_PAID]['total'],
        'commissions': commissions,
    }


def list_commissions(admin, status=None):
    require_capability(admin, Capability.MANAGE_COMMISSIONS)
    commissions = Commission.objects.select_related('employee', 'subscription', 'subscription__user')
    if status:
        if status not in dict(Commission.STATUS_CHOICES):
            raise ValidationError(f"Unknown commission status '{status}'")
        commissions = commissions.filter(status=status)
    return commissions


def commission_report(admin):
    """Totals by status across all employees."""
    totals = _totals(list_commissions(admin))
    return {
        'pending_total': totals[Commission.STATUS_PENDING]['total'],
        'pending_count': totals[Commission.STATUS_PENDING]['count'],
        'paid_total': totals[Commission.STATUS_PAID]['total'],
        'paid_count': totals[Commission.STATUS_PAID]['count'],
    }


def mark_commission_paid(admin, commission_id):
    require_capability(admin, Capability.MANAGE_COMMISSIONS)

    with transaction.atomic():
        try:
            commission = Commission.objects.select_for_update().get(pk=commission_id)
        except Commission.DoesNotExist:
            raise NotFoundError('Commission not found')
        if commission.status == Commission.STATUS_PAID:
            raise ValidationError('Commission is already paid')
        commission.mark_paid(admin)

    logger.info(f"Commission {commission.pk} (${commission.commission_amount}) marked paid by {admin.email}")
    return commission
