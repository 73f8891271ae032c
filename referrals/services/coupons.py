import logging
import re

from django.conf import settings
from django.db import IntegrityError, transaction

from accounts.permissions import Capability, require_authenticated, require_capability
from common.errors import NotFoundError, ValidationError
from referrals.models import EmployeeCoupon
from .pricing import quote_price

logger = logging.getLogger(__name__)

COUPON_CODE_RE = re.compile(r'^[A-Z0-9]{4,20}$')


def normalize_coupon_code(code):
    return (code or '').strip().upper()


def create_employee_coupon(employee, code, discount_percent=None):
    """Create a referral coupon owned by employee."""
    require_capability(employee, Capability.OWN_COUPONS, 'Only employees can create coupons')

    code = normalize_coupon_code(code)
    if not COUPON_CODE_RE.match(code):
        raise ValidationError('Coupon code must be 4-20 letters or numbers')
    if code == normalize_coupon_code(settings.BYPASS_COUPON_CODE):
        raise ValidationError('This coupon code is reserved')

    if discount_percent is None:
        discount_percent = settings.EMPLOYEE_COUPON_DISCOUNT_PERCENT
    try:
        discount_percent = int(discount_percent)
    except (TypeError, ValueError):
        raise ValidationError('Discount percent must be a whole number')
    if not 0 < discount_percent <= 100:
        raise ValidationError('Discount percent must be between 1 and 100')

    try:
        with transaction.atomic():
            coupon = EmployeeCoupon.objects.create(
                employee=employee,
                code=code,
                discount_percent=discount_percent,
            )
    except IntegrityError:
        raise ValidationError('This coupon code is already taken')

    logger.info(f"Coupon {code} ({discount_percent}%) created for {employee.email}")
    return coupon


def list_employee_coupons(employee):
    require_capability(employee, Capability.OWN_COUPONS)
    return EmployeeCoupon.objects.filter(employee=employee)


def set_coupon_active(employee, coupon_id, is_active):
    require_capability(employee, Capability.OWN_COUPONS)
    try:
        coupon = EmployeeCoupon.objects.get(pk=coupon_id, employee=employee)
    except EmployeeCoupon.DoesNotExist:
        raise NotFoundError('Coupon not found')
    coupon.is_active = bool(is_active)
    coupon.save(update_fields=['is_active', 'updated_at'])
    return coupon


def validate_coupon(user, code, plan_type='one_time'):
    """Preview the price of plan_type with code applied. Nothing is recorded."""
    require_authenticated(user)
    if not normalize_coupon_code(code):
        raise ValidationError('Coupon code is required')
    quote = quote_price(plan_type, code, purchaser=user)
    if not quote.coupon_code:
        raise ValidationError('Invalid coupon code')
    return quote
