from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.conf import settings
from django.utils import timezone


class Role(models.TextChoices):
    SUBSCRIBER = 'subscriber', 'Subscriber'
    EMPLOYEE = 'employee', 'Employee'
    ADMIN = 'admin', 'Admin'


class CustomUserManager(BaseUserManager):
    """Manager for custom User model with email authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', Role.ADMIN)
        extra_fields.setdefault('is_super_user', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)

    def super_users(self):
        return self.filter(is_super_user=True)


class User(AbstractBaseUser, PermissionsMixin):
    """Account profile. Email is the login identifier; role drives capabilities."""

    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    company_name = models.CharField(max_length=255, blank=True)

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.SUBSCRIBER)
    is_super_user = models.BooleanField(
        default=False,
        help_text='Admin allowed to manage other users\' roles and super-user status'
    )
    free_trial_used = models.BooleanField(
        default=False,
        help_text='Set once, when the first letter is created without consuming a credit'
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = 'user'
        verbose_name_plural = 'users'

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(' ')[0] if self.full_name else self.email.split('@')[0]

    def is_admin(self):
        return self.role == Role.ADMIN

    def is_employee(self):
        return self.role == Role.EMPLOYEE

    # Subscription methods

    def get_active_subscriptions(self):
        """Active subscriptions, oldest first (credits are spent in that order)."""
        return self.subscriptions.filter(status=Subscription.STATUS_ACTIVE).order_by('created_at', 'id')

    def has_active_subscription(self):
        return self.get_active_subscriptions().exists()

    def get_credits_remaining(self):
        """Total credits across all active subscriptions."""
        return self.get_active_subscriptions().aggregate(
            total=models.Sum('credits_remaining')
        )['total'] or 0

    # Referral methods

    def get_pending_commission_total(self):
        """Get total pending (unpaid) commissions owed to this employee."""
        return self._commission_total('pending')

    def get_paid_commission_total(self):
        """Get total commissions already paid out to this employee."""
        return self._commission_total('paid')

    def _commission_total(self, status):
        total = self.commissions.filter(status=status).aggregate(
            total=models.Sum('commission_amount')
        )['total'] or 0
        # SQLite sums come back unquantized
        return Decimal(str(total)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class Subscription(models.Model):
    """
    A purchased allowance of letters.

    credits_remaining is only ever decremented through
    accounts.services.allowance.deduct_letter_allowance.
    """

    STATUS_ACTIVE = 'active'
    STATUS_CANCELED = 'canceled'
    STATUS_PAST_DUE = 'past_due'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_CANCELED, 'Canceled'),
        (STATUS_PAST_DUE, 'Past Due'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='subscriptions'
    )
    plan = models.CharField(max_length=40, help_text='Key into settings.LETTER_PLANS')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    # Pricing facts at purchase time
    price = models.DecimalField(max_digits=10, decimal_places=2, help_text='Amount actually paid')
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    coupon_code = models.CharField(max_length=40, blank=True)

    credits_remaining = models.PositiveIntegerField(default=0)

    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)

    # Idempotency key for checkout settlement; empty for zero-cost purchases
    stripe_session_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text='Stripe Checkout Session ID (cs_xxx)'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    canceled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'Subscription'
        verbose_name_plural = 'Subscriptions'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.email} - {self.plan} ({self.status}, {self.credits_remaining} left)"

    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    def start_period(self, now=None):
        """Set the billing window starting now."""
        now = now or timezone.now()
        self.current_period_start = now
        self.current_period_end = now + timedelta(days=settings.SUBSCRIPTION_PERIOD_DAYS)

    def cancel(self):
        self.status = self.STATUS_CANCELED
        self.canceled_at = timezone.now()
        self.save(update_fields=['status', 'canceled_at', 'updated_at'])
