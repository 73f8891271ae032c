from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth import get_user_model
from .models import Subscription

User = get_user_model()


class SubscriptionInline(admin.TabularInline):
    model = Subscription
    extra = 0
    fields = ['plan', 'status', 'price', 'credits_remaining', 'current_period_end']
    readonly_fields = ['plan', 'price', 'current_period_end']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin configuration for custom User model."""

    list_display = ('email', 'full_name', 'role', 'is_super_user', 'free_trial_used', 'is_active', 'created_at')
    list_filter = ('role', 'is_super_user', 'is_staff', 'is_active', 'free_trial_used')
    search_fields = ('email', 'full_name', 'company_name')
    ordering = ('-created_at',)
    inlines = [SubscriptionInline]

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Personal Info', {'fields': ('full_name', 'phone', 'company_name')}),
        ('Role', {
            'fields': ('role', 'is_super_user'),
            'description': 'Super-users manage other users\' roles and super-user status'
        }),
        ('Letters', {'fields': ('free_trial_used',)}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login',)}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'role', 'password1', 'password2'),
        }),
    )


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """Admin for purchased letter allowances."""

    list_display = (
        'user', 'plan', 'status', 'price', 'discount', 'coupon_code',
        'credits_remaining', 'current_period_end', 'created_at'
    )
    list_filter = ('plan', 'status')
    search_fields = ('user__email', 'stripe_session_id', 'coupon_code')
    readonly_fields = (
        'stripe_session_id', 'price', 'discount', 'coupon_code',
        'current_period_start', 'current_period_end',
        'created_at', 'updated_at', 'canceled_at'
    )

    fieldsets = (
        (None, {
            'fields': ('user', 'plan', 'status', 'credits_remaining')
        }),
        ('Purchase', {
            'fields': ('price', 'discount', 'coupon_code', 'stripe_session_id')
        }),
        ('Billing Period', {
            'fields': ('current_period_start', 'current_period_end', 'canceled_at')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
