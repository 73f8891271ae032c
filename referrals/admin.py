from django.contrib import admin, messages

from .models import Commission, CouponUsage, EmployeeCoupon


@admin.register(EmployeeCoupon)
class EmployeeCouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'employee', 'discount_percent', 'is_active', 'usage_count', 'created_at']
    list_filter = ['is_active', 'discount_percent']
    search_fields = ['code', 'employee__email']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    list_display = ['coupon_code', 'user', 'employee', 'discount_percent', 'amount_before', 'amount_after', 'created_at']
    list_filter = ['created_at']
    search_fields = ['coupon_code', 'user__email', 'employee__email']
    readonly_fields = [
        'user', 'employee', 'subscription', 'coupon_code', 'discount_percent',
        'amount_before', 'amount_after', 'created_at',
    ]

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = [
        'employee', 'subscription', 'subscription_amount', 'commission_amount', 'status', 'paid_at', 'created_at'
    ]
    list_filter = ['status', 'created_at']
    search_fields = ['employee__email', 'subscription__user__email']
    readonly_fields = [
        'employee', 'subscription', 'subscription_amount', 'commission_rate',
        'commission_amount', 'paid_at', 'paid_by', 'created_at',
    ]
    actions = ['mark_as_paid']

    @admin.action(description='Mark selected commissions as paid')
    def mark_as_paid(self, request, queryset):
        pending = queryset.filter(status=Commission.STATUS_PENDING)
        count = 0
        for commission in pending:
            commission.mark_paid(request.user)
            count += 1
        messages.success(request, f"{count} commission(s) marked as paid.")
