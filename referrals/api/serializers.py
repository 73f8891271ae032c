from rest_framework import serializers

from referrals.models import Commission, EmployeeCoupon


class CouponCreateSerializer(serializers.Serializer):
    """Input for creating an employee coupon."""
    code = serializers.CharField(max_length=40)
    discount_percent = serializers.IntegerField(required=False, allow_null=True)


class EmployeeCouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmployeeCoupon
        fields = ['id', 'code', 'discount_percent', 'is_active', 'usage_count', 'created_at']
        read_only_fields = fields


class CommissionSerializer(serializers.ModelSerializer):
    employee_email = serializers.SerializerMethodField()
    customer_email = serializers.EmailField(source='subscription.user.email', read_only=True)
    plan = serializers.CharField(source='subscription.plan', read_only=True)

    class Meta:
        model = Commission
        fields = [
            'id', 'employee_email', 'customer_email', 'plan',
            'subscription_amount', 'commission_rate', 'commission_amount',
            'status', 'paid_at', 'created_at',
        ]
        read_only_fields = fields

    def get_employee_email(self, obj):
        return obj.employee.email if obj.employee else None


def quote_payload(quote):
    return {
        'planType': quote.plan_type,
        'planName': quote.plan_name,
        'letters': quote.letters,
        'basePrice': str(quote.base_price),
        'discountPercent': str(quote.discount_percent),
        'discountAmount': str(quote.discount_amount),
        'finalPrice': str(quote.final_price),
        'couponCode': quote.coupon_code,
        'isSuperUserCoupon': quote.is_super_user_coupon,
    }
