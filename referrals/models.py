from decimal import Decimal

from django.db import models
from django.conf import settings
from django.utils import timezone


class EmployeeCoupon(models.Model):
    """Referral code owned by an employee."""

    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='coupons'
    )
    code = models.CharField(max_length=20, unique=True, help_text='Unique coupon code (e.g., SMITH20)')
    discount_percent = models.PositiveSmallIntegerField(
        default=20,
        help_text='Percent off the plan price; 100 also grants super-user status'
    )
    is_active = models.BooleanField(default=True)

    # Stats (denormalized for quick display)
    usage_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.code} ({self.employee.email})"

    def is_super_user_coupon(self):
        return self.discount_percent == 100


class CouponUsage(models.Model):
    """One coupon redemption. Append-only; used for reporting."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='coupon_usages'
    )
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='referred_coupon_usages'
    )
    subscription = models.ForeignKey(
        'accounts.Subscription', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='coupon_usages'
    )
    coupon_code = models.CharField(max_length=40)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2)
    amount_before = models.DecimalField(max_digits=10, decimal_places=2)
    amount_after = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Coupon Usage'
        verbose_name_plural = 'Coupon Usages'

    def __str__(self):
        return f"{self.coupon_code} used by {self.user.email}"

    @property
    def discount_applied(self):
        return self.amount_before - self.amount_after


class Commission(models.Model):
    """Amount owed to an employee for a referred sale."""

    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
    ]

    # Null for sales made with the bypass token when no employee is configured for it
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='commissions'
    )
    subscription = models.OneToOneField(
        'accounts.Subscription', on_delete=models.CASCADE, related_name='commission'
    )
    subscription_amount = models.DecimalField(
        max_digits=10, decimal_places=2, help_text='Commission base'
    )
    commission_rate = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal('0.05'))
    commission_amount = models.DecimalField(max_digits=10, decimal_places=2)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='processed_commissions'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        owner = self.employee.email if self.employee else 'unattributed'
        return f"${self.commission_amount} to {owner} ({self.status})"

    def mark_paid(self, admin_user):
        """Mark this commission as paid out."""
        self.status = self.STATUS_PAID
        self.paid_at = timezone.now()
        self.paid_by = admin_user
        self.save(update_fields=['status', 'paid_at', 'paid_by', 'updated_at'])
