"""
Plan pricing and coupon resolution.

A PricingQuote carries every fact needed to settle a purchase. It is computed
once at checkout and, for paid plans, round-trips through the payment
session's metadata so settlement records exactly what was charged.
"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from accounts.models import User
from common.errors import ValidationError
from referrals.models import EmployeeCoupon

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def to_money(value):
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def get_plan(plan_type):
    plan = settings.LETTER_PLANS.get(plan_type)
    if plan is None:
        raise ValidationError('Invalid plan type')
    return plan


def is_bypass_code(code):
    bypass = settings.BYPASS_COUPON_CODE
    return bool(code and bypass) and code.strip().upper() == bypass.upper()


@dataclass
class PricingQuote:
    plan_type: str
    plan_name: str
    letters: int
    base_price: Decimal
    discount_percent: Decimal = Decimal('0')
    discount_amount: Decimal = Decimal('0.00')
    final_price: Decimal = None
    coupon_code: str = ''
    coupon_id: int = None
    employee_id: int = None
    is_super_user_coupon: bool = False
    is_bypass_coupon: bool = False

    def __post_init__(self):
        if self.final_price is None:
            self.final_price = self.base_price - self.discount_amount

    @property
    def is_free(self):
        return self.final_price == 0

    @property
    def final_price_cents(self):
        return int((self.final_price * 100).to_integral_value(rounding=ROUND_HALF_UP))

    def commission_base(self):
        """
        Amount the employee's commission is computed on, or None when the sale
        earns no commission.

        The bypass token pays on the list price even though the customer pays
        nothing. Employee coupons pay on the final price, so a 100% coupon
        yields a zero-amount commission.
        """
        if self.is_bypass_coupon:
            return self.base_price
        if self.employee_id is None:
            return None
        return self.final_price

    def to_metadata(self, user_id):
        """Flatten to Stripe metadata (string values only)."""
        return {
            'user_id': str(user_id),
            'plan_type': self.plan_type,
            'letters': str(self.letters),
            'base_price': str(self.base_price),
            'discount_percent': str(self.discount_percent),
            'discount': str(self.discount_amount),
            'final_price': str(self.final_price),
            'coupon_code': self.coupon_code or '',
            'coupon_id': str(self.coupon_id) if self.coupon_id else '',
            'employee_id': str(self.employee_id) if self.employee_id else '',
            'is_super_user_coupon': 'true' if self.is_super_user_coupon else 'false',
            'is_bypass_coupon': 'true' if self.is_bypass_coupon else 'false',
        }

    @classmethod
    def from_metadata(cls, metadata):
        """Rebuild a quote from session metadata without recomputing prices."""
        try:
            plan_type = metadata['plan_type']
            base_price = to_money(metadata['base_price'])
            discount_amount = to_money(metadata.get('discount') or '0')
            final_price = to_money(metadata['final_price'])
            letters = int(metadata['letters'])
        except (KeyError, ValueError, ArithmeticError):
            raise ValidationError('Checkout session is missing pricing details')

        discount_percent = metadata.get('discount_percent')
        if discount_percent:
            discount_percent = Decimal(discount_percent)
        elif base_price:
            discount_percent = (discount_amount / base_price * 100).quantize(CENTS)
        else:
            discount_percent = Decimal('0')

        plan = settings.LETTER_PLANS.get(plan_type, {})
        return cls(
            plan_type=plan_type,
            plan_name=plan.get('name', plan_type),
            letters=letters,
            base_price=base_price,
            discount_percent=discount_percent,
            discount_amount=discount_amount,
            final_price=final_price,
            coupon_code=metadata.get('coupon_code') or '',
            coupon_id=int(metadata['coupon_id']) if metadata.get('coupon_id') else None,
            employee_id=int(metadata['employee_id']) if metadata.get('employee_id') else None,
            is_super_user_coupon=metadata.get('is_super_user_coupon') == 'true',
            is_bypass_coupon=metadata.get('is_bypass_coupon') == 'true',
        )


def _bypass_employee_id():
    email = settings.BYPASS_COUPON_EMPLOYEE_EMAIL
    if not email:
        return None
    return User.objects.filter(email__iexact=email).values_list('pk', flat=True).first()


def quote_price(plan_type, coupon_code='', purchaser=None):
    """
    Price a plan with an optional coupon.

    An unknown or inactive code is ignored and the plan is charged at full
    price. Raises ValidationError when an employee redeems their own coupon.
    """
    plan = get_plan(plan_type)
    base_price = to_money(plan['price'])
    coupon_code = (coupon_code or '').strip()

    quote = PricingQuote(
        plan_type=plan_type,
        plan_name=plan['name'],
        letters=int(plan['letters']),
        base_price=base_price,
    )
    if not coupon_code:
        return quote

    if is_bypass_code(coupon_code):
        percent = Decimal('100')
        quote.coupon_code = coupon_code.upper()
        quote.is_bypass_coupon = True
        quote.employee_id = _bypass_employee_id()
    else:
        coupon = EmployeeCoupon.objects.filter(code=coupon_code.upper(), is_active=True).first()
        if coupon is None:
            logger.info(f"Ignoring unknown or inactive coupon code {coupon_code!r}")
            return quote
        if purchaser is not None and coupon.employee_id == purchaser.pk:
            raise ValidationError('You cannot use your own coupon code')
        percent = Decimal(coupon.discount_percent)
        quote.coupon_code = coupon.code
        quote.coupon_id = coupon.pk
        quote.employee_id = coupon.employee_id
        quote.is_super_user_coupon = coupon.is_super_user_coupon()

    quote.discount_percent = percent
    quote.discount_amount = to_money(base_price * percent / 100)
    quote.final_price = base_price - quote.discount_amount
    return quote


def compute_commission(base_amount):
    rate = Decimal(settings.COMMISSION_RATE)
    return rate, to_money(base_amount * rate)
