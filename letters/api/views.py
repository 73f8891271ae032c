import logging

from django.http import HttpResponse
from django.utils.text import slugify
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from letters.services import letter_workflow
from .serializers import AdminLetterSerializer, LetterSerializer

logger = logging.getLogger(__name__)


# --- Subscriber endpoints ---

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def letter_list(request):
    letters = letter_workflow.list_letters(request.user)
    return Response({'letters': LetterSerializer(letters, many=True).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_generate(request):
    """Create a letter and draft it with AI. First letter is free."""
    result = letter_workflow.generate_letter(
        request.user,
        request.data.get('letterType'),
        request.data.get('intakeData'),
    )
    return Response({
        'success': True,
        'letterId': result.letter.pk,
        'status': result.letter.status,
        'isFreeTrial': result.is_free_trial,
        'aiGeneratedContent': result.letter.ai_draft_content,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_create_draft(request):
    letter = letter_workflow.create_draft(
        request.user,
        request.data.get('letterType'),
        request.data.get('intakeData'),
        request.data.get('content', ''),
    )
    return Response(LetterSerializer(letter).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def letter_detail(request, letter_id):
    letter = letter_workflow.get_letter(request.user, letter_id)
    if letter.is_owned_by(request.user):
        return Response(LetterSerializer(letter).data)
    return Response(AdminLetterSerializer(letter).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_submit(request, letter_id):
    result = letter_workflow.submit_letter(request.user, letter_id)
    return Response({
        'success': True,
        'status': result.letter.status,
        'isFreeTrial': result.is_free_trial,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_send_email(request, letter_id):
    result = letter_workflow.send_letter_email(
        request.user,
        letter_id,
        request.data.get('recipientEmail'),
        request.data.get('message', ''),
    )
    return Response({
        'success': True,
        'emailId': result.email_id,
        'simulated': result.simulated,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def letter_pdf(request, letter_id):
    letter, pdf_bytes = letter_workflow.render_letter_pdf(request.user, letter_id)
    filename = f"{slugify(letter.title) or 'letter'}.pdf"
    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


# --- Reviewer endpoints ---

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def admin_letter_queue(request):
    letters = letter_workflow.review_queue(request.user, request.query_params.get('status'))
    return Response({'letters': AdminLetterSerializer(letters, many=True).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_start_review(request, letter_id):
    letter = letter_workflow.start_review(request.user, letter_id)
    return Response({'success': True, 'status': letter.status})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_edit(request, letter_id):
    letter = letter_workflow.save_admin_edits(request.user, letter_id, request.data.get('content'))
    return Response({'success': True, 'status': letter.status})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_approve(request, letter_id):
    letter = letter_workflow.approve_letter(
        request.user,
        letter_id,
        request.data.get('finalContent'),
        request.data.get('reviewNotes', ''),
    )
    return Response({'success': True, 'status': letter.status})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_reject(request, letter_id):
    letter = letter_workflow.reject_letter(
        request.user,
        letter_id,
        request.data.get('rejectionReason'),
        request.data.get('reviewNotes', ''),
    )
    return Response({'success': True, 'status': letter.status})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def letter_complete(request, letter_id):
    letter = letter_workflow.complete_letter(request.user, letter_id)
    return Response({'success': True, 'status': letter.status})
