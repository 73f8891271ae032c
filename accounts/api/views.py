from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.services import user_admin
from accounts.services.allowance import get_allowance_summary
from .serializers import UserSummarySerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def allowance_summary(request):
    summary = get_allowance_summary(request.user)
    return Response({
        'freeTrialAvailable': summary['free_trial_available'],
        'creditsRemaining': summary['credits_remaining'],
        'hasActiveSubscription': summary['has_active_subscription'],
        'subscriptions': summary['subscriptions'],
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def super_users(request):
    """List super-users, or grant/revoke the flag on one user."""
    if request.method == 'POST':
        target = user_admin.set_super_user(
            request.user,
            request.data.get('userId'),
            request.data.get('isSuperUser'),
        )
        action = 'granted' if target.is_super_user else 'revoked'
        return Response({
            'success': True,
            'message': f"Super admin status {action} successfully",
            'user': UserSummarySerializer(target).data,
        })

    users = user_admin.list_super_users(request.user)
    return Response({'superUsers': UserSummarySerializer(users, many=True).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_user_role(request, user_id):
    target = user_admin.change_role(request.user, user_id, request.data.get('role'))
    return Response({'success': True, 'user': UserSummarySerializer(target).data})
