import logging

import stripe
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.errors import ServiceError
from referrals.services import checkout, commissions, coupons
from referrals.services.stripe_service import construct_webhook_event
from .serializers import (
    CommissionSerializer, CouponCreateSerializer, EmployeeCouponSerializer, quote_payload,
)

logger = logging.getLogger(__name__)


# --- Checkout ---

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_create(request):
    """Start a purchase. 100% coupons settle immediately; other plans go to Stripe."""
    result = checkout.start_checkout(
        request.user,
        request.data.get('planType'),
        request.data.get('couponCode', ''),
    )
    if result.subscription is not None:
        return Response({
            'success': True,
            'subscriptionId': result.subscription.pk,
            'letters': result.quote.letters,
            'message': 'Subscription created successfully',
        }, status=status.HTTP_201_CREATED)

    return Response({
        'sessionId': result.session_id,
        'url': result.url,
        'pricing': quote_payload(result.quote),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_verify(request):
    """Settle a Stripe session after the customer is redirected back."""
    result = checkout.settle_checkout_session(request.data.get('sessionId'), user=request.user)
    return Response({
        'success': True,
        'subscriptionId': result.subscription.pk,
        'letters': result.subscription.credits_remaining,
        'message': 'Subscription created successfully' if result.created else 'Subscription already created',
    })


@csrf_exempt
@require_POST
def stripe_webhook(request):
    """Handle Stripe webhooks for payment confirmation."""
    payload = request.body
    sig_header = request.META.get('HTTP_STRIPE_SIGNATURE')

    try:
        event = construct_webhook_event(payload, sig_header)
    except ValueError:
        return HttpResponse(status=400)
    except stripe.error.SignatureVerificationError:
        return HttpResponse(status=400)

    try:
        result = checkout.handle_webhook_event(event)
    except ServiceError as e:
        logger.error(f"Webhook {event['type']} could not be settled: {e.message}")
        return HttpResponse(status=e.status_code)

    if result is not None and result.created:
        logger.info(f"Webhook settled subscription {result.subscription.pk}")
    return HttpResponse(status=200)


# --- Coupons ---

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def coupon_list(request):
    if request.method == 'POST':
        serializer = CouponCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        coupon = coupons.create_employee_coupon(
            request.user,
            serializer.validated_data['code'],
            serializer.validated_data.get('discount_percent'),
        )
        return Response(EmployeeCouponSerializer(coupon).data, status=status.HTTP_201_CREATED)

    return Response({
        'coupons': EmployeeCouponSerializer(coupons.list_employee_coupons(request.user), many=True).data
    })


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def coupon_detail(request, coupon_id):
    coupon = coupons.set_coupon_active(request.user, coupon_id, request.data.get('isActive', True))
    return Response(EmployeeCouponSerializer(coupon).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def coupon_validate(request):
    quote = coupons.validate_coupon(
        request.user,
        request.data.get('couponCode'),
        request.data.get('planType', 'one_time'),
    )
    return Response({'valid': True, **quote_payload(quote)})


# --- Commissions ---

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_commissions(request):
    summary = commissions.employee_commission_summary(request.user)
    return Response({
        'pendingTotal': str(summary['pending_total']),
        'paidTotal': str(summary['paid_total']),
        'commissions': CommissionSerializer(summary['commissions'], many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def admin_commission_list(request):
    items = commissions.list_commissions(request.user, request.query_params.get('status'))
    report = commissions.commission_report(request.user)
    return Response({
        'summary': {key: str(value) for key, value in report.items()},
        'commissions': CommissionSerializer(items, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def admin_commission_pay(request, commission_id):
    commission = commissions.mark_commission_paid(request.user, commission_id)
    return Response(CommissionSerializer(commission).data)
