"""
Letter lifecycle.

Owns every write to Letter.status. Each operation checks the caller's
capability and ownership first, then moves the letter along
letters.models.ALLOWED_TRANSITIONS, then writes one audit row per transition.

The row update always happens before the audit write, and audit failures are
logged and swallowed so they never block the primary action.
"""
import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.conf import settings
from django.db import transaction
from django.template.loader import render_to_string
from django.utils import timezone

from accounts.permissions import Capability, has_capability, require_authenticated, require_capability
from accounts.services.allowance import claim_free_trial, deduct_letter_allowance, has_available_credits
from common.errors import (
    AllowanceExhaustedError,
    AuthorizationError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from letters.models import (
    LETTER_TYPES,
    REVIEWABLE_STATUSES,
    Letter,
    LetterAuditTrail,
    LetterStatus,
)
from .openai_service import LETTER_SYSTEM_PROMPT, OpenAIService, build_letter_prompt

logger = logging.getLogger(__name__)

LETTER_TYPE_LABELS = dict(LETTER_TYPES)


@dataclass
class LetterResult:
    letter: Letter
    is_free_trial: bool = False


# ============================================================================
# Helpers
# ============================================================================

def log_letter_audit(letter, actor, action, old_status, new_status, notes=''):
    """Append an audit row. Never raises."""
    try:
        with transaction.atomic():
            return LetterAuditTrail.objects.create(
                letter=letter,
                performed_by=actor if getattr(actor, 'pk', None) else None,
                action=action,
                old_status=old_status or '',
                new_status=new_status or '',
                notes=notes or '',
            )
    except Exception:
        logger.exception(f"Audit log write failed for letter {letter.pk} ({action})")
        return None


def get_drafting_service():
    return OpenAIService()


def _load_letter(letter_id, for_update=False):
    queryset = Letter.objects.select_for_update() if for_update else Letter.objects
    try:
        return queryset.get(pk=letter_id)
    except (Letter.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Letter not found')


def _load_owned_letter(user, letter_id, for_update=False):
    letter = _load_letter(letter_id, for_update=for_update)
    if not letter.is_owned_by(user):
        raise AuthorizationError('You do not have access to this letter')
    return letter


def _validate_letter_request(letter_type, intake_data):
    if not letter_type or not intake_data:
        raise ValidationError('letterType and intakeData are required')
    if letter_type not in LETTER_TYPE_LABELS:
        raise ValidationError(f"Unknown letter type '{letter_type}'")
    if not isinstance(intake_data, dict):
        raise ValidationError('intakeData must be an object')


def _require_text(value, message):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)


def _default_title(letter_type):
    label = LETTER_TYPE_LABELS.get(letter_type, letter_type)
    return f"{label} - {timezone.localdate().strftime('%m/%d/%Y')}"


# ============================================================================
# Subscriber operations
# ============================================================================

def create_draft(user, letter_type, intake_data, content=''):
    """Create a letter in draft status. No credit is consumed until submission."""
    require_capability(user, Capability.GENERATE_LETTERS, 'Only subscribers can create letters')
    _validate_letter_request(letter_type, intake_data)

    letter = Letter.objects.create(
        user=user,
        letter_type=letter_type,
        title=_default_title(letter_type),
        intake_data=intake_data,
        ai_draft_content=content or '',
        status=LetterStatus.DRAFT,
    )
    logger.info(f"Draft letter {letter.pk} created for {user.email}")
    return letter


def generate_letter(user, letter_type, intake_data, drafting_service=None):
    """
    Create a letter and draft it with the text-generation service.

    The user's first letter is free; every other letter needs an active
    subscription with credits, checked before the letter is created and
    deducted after the draft succeeds. A failed deduction leaves the letter
    in 'failed' rather than rolling back the generated text.
    """
    require_capability(user, Capability.GENERATE_LETTERS, 'Only subscribers can generate letters')
    _validate_letter_request(letter_type, intake_data)

    if drafting_service is None:
        drafting_service = get_drafting_service()

    with transaction.atomic():
        is_free_trial = claim_free_trial(user.pk)
        if not is_free_trial and not has_available_credits(user.pk):
            raise AllowanceExhaustedError()

        letter = Letter.objects.create(
            user=user,
            letter_type=letter_type,
            title=_default_title(letter_type),
            intake_data=intake_data,
            status=LetterStatus.GENERATING,
        )

    try:
        content = drafting_service.generate(LETTER_SYSTEM_PROMPT, build_letter_prompt(letter_type, intake_data))
        if not content:
            raise ExternalServiceError('openai', 'AI returned empty content')
    except Exception as e:
        letter.transition_to(LetterStatus.FAILED)
        letter.save(update_fields=['status', 'updated_at'])
        log_letter_audit(
            letter, user, 'generation_failed',
            LetterStatus.GENERATING, LetterStatus.FAILED,
            f"Generation failed: {e}",
        )
        logger.error(f"Letter {letter.pk} generation failed: {e}")
        if isinstance(e, ExternalServiceError):
            raise
        raise ExternalServiceError('openai', 'AI generation failed') from e

    old_status = letter.transition_to(LetterStatus.PENDING_REVIEW)
    letter.ai_draft_content = content
    letter.save(update_fields=['ai_draft_content', 'status', 'updated_at'])
    log_letter_audit(
        letter, user, 'created', old_status, LetterStatus.PENDING_REVIEW,
        'Letter generated successfully by AI',
    )

    if not is_free_trial and not deduct_letter_allowance(user.pk):
        old_status = letter.transition_to(LetterStatus.FAILED)
        letter.save(update_fields=['status', 'updated_at'])
        log_letter_audit(
            letter, user, 'allowance_failed', old_status, LetterStatus.FAILED,
            'No letter allowance remaining at deduction time',
        )
        raise AllowanceExhaustedError('No letter allowances remaining. Please upgrade your plan.')

    logger.info(f"Letter {letter.pk} generated for {user.email} (free trial: {is_free_trial})")
    return LetterResult(letter=letter, is_free_trial=is_free_trial)


def submit_letter(user, letter_id):
    """Send a draft to review, consuming a credit unless it is the free letter."""
    require_authenticated(user)

    with transaction.atomic():
        letter = _load_owned_letter(user, letter_id, for_update=True)
        if letter.status != LetterStatus.DRAFT:
            raise InvalidTransitionError(letter.status, LetterStatus.PENDING_REVIEW)

        is_free_trial = claim_free_trial(user.pk, exclude_letter_id=letter.pk)
        if not is_free_trial and not deduct_letter_allowance(user.pk):
            raise AllowanceExhaustedError(
                'No letter allowances remaining. Please purchase more letters or upgrade your plan.'
            )

        old_status = letter.transition_to(LetterStatus.PENDING_REVIEW)
        letter.save(update_fields=['status', 'updated_at'])

    log_letter_audit(
        letter, user, 'submitted', old_status, LetterStatus.PENDING_REVIEW,
        'Free trial letter submitted' if is_free_trial else 'Letter submitted for review',
    )
    return LetterResult(letter=letter, is_free_trial=is_free_trial)


def send_letter_email(user, letter_id, recipient_email, message='', email_service=None):
    """Email an approved letter to a recipient on the owner's behalf."""
    require_authenticated(user)

    if not recipient_email:
        raise ValidationError('Recipient email is required')
    try:
        validate_email(recipient_email)
    except DjangoValidationError:
        raise ValidationError('Recipient email is invalid')

    letter = _load_owned_letter(user, letter_id)
    if not letter.is_deliverable():
        raise ValidationError('Only approved letters can be sent')

    if email_service is None:
        from .email_service import EmailService
        email_service = EmailService()

    html = render_to_string('letters/letter_email.html', {
        'letter': letter,
        'content': letter.get_display_content(),
        'message': message,
        'app_name': settings.APP_NAME,
    })
    result = email_service.send(recipient_email, letter.title, html, reply_to=user.email)

    letter.mark_sent()
    log_letter_audit(
        letter, user, 'sent', letter.status, letter.status,
        f"Emailed to {recipient_email}" + (' (simulated)' if result.simulated else ''),
    )
    return result


# ============================================================================
# Reviewer operations
# ============================================================================

def start_review(admin, letter_id):
    require_capability(admin, Capability.REVIEW_LETTERS)

    with transaction.atomic():
        letter = _load_letter(letter_id, for_update=True)
        old_status = letter.transition_to(LetterStatus.UNDER_REVIEW)
        letter.reviewed_by = admin
        letter.save(update_fields=['status', 'reviewed_by', 'updated_at'])

    log_letter_audit(letter, admin, 'review_started', old_status, LetterStatus.UNDER_REVIEW)
    return letter


def save_admin_edits(admin, letter_id, content):
    """Store the reviewer's edited text; a pending letter moves to under_review."""
    require_capability(admin, Capability.REVIEW_LETTERS)
    _require_text(content, 'Edited content is required')

    with transaction.atomic():
        letter = _load_letter(letter_id, for_update=True)
        if letter.status not in REVIEWABLE_STATUSES:
            raise InvalidTransitionError(letter.status, LetterStatus.UNDER_REVIEW)

        old_status = letter.status
        if letter.status == LetterStatus.PENDING_REVIEW:
            letter.transition_to(LetterStatus.UNDER_REVIEW)
        letter.admin_edited_content = content
        letter.reviewed_by = admin
        letter.save(update_fields=['admin_edited_content', 'status', 'reviewed_by', 'updated_at'])

    if old_status != letter.status:
        log_letter_audit(letter, admin, 'edited', old_status, letter.status, 'Reviewer edited the draft')
    return letter


def approve_letter(admin, letter_id, final_content, notes=''):
    require_capability(admin, Capability.REVIEW_LETTERS)
    _require_text(final_content, 'Final content is required for approval')

    now = timezone.now()
    with transaction.atomic():
        letter = _load_letter(letter_id, for_update=True)
        old_status = letter.transition_to(LetterStatus.APPROVED)
        letter.final_content = final_content
        letter.review_notes = notes or ''
        letter.reviewed_by = admin
        letter.reviewed_at = now
        letter.approved_at = now
        letter.save()

    log_letter_audit(
        letter, admin, 'approved', old_status, LetterStatus.APPROVED,
        notes or 'Letter approved by admin',
    )
    logger.info(f"Letter {letter.pk} approved by {admin.email}")
    return letter


def reject_letter(admin, letter_id, reason, notes=''):
    require_capability(admin, Capability.REVIEW_LETTERS)
    _require_text(reason, 'Rejection reason is required')

    with transaction.atomic():
        letter = _load_letter(letter_id, for_update=True)
        old_status = letter.transition_to(LetterStatus.REJECTED)
        letter.rejection_reason = reason
        letter.review_notes = notes or ''
        letter.reviewed_by = admin
        letter.reviewed_at = timezone.now()
        letter.save()

    log_letter_audit(
        letter, admin, 'rejected', old_status, LetterStatus.REJECTED,
        f"Rejection reason: {reason}",
    )
    logger.info(f"Letter {letter.pk} rejected by {admin.email}")
    return letter


def complete_letter(admin, letter_id):
    require_capability(admin, Capability.REVIEW_LETTERS)

    with transaction.atomic():
        letter = _load_letter(letter_id, for_update=True)
        old_status = letter.transition_to(LetterStatus.COMPLETED)
        letter.completed_at = timezone.now()
        letter.save(update_fields=['status', 'completed_at', 'updated_at'])

    log_letter_audit(letter, admin, 'completed', old_status, LetterStatus.COMPLETED)
    return letter


# ============================================================================
# Reads
# ============================================================================

def get_letter(user, letter_id):
    """Owner or reviewer may read a letter."""
    require_authenticated(user)
    letter = _load_letter(letter_id)
    if not letter.is_owned_by(user) and not has_capability(user, Capability.REVIEW_LETTERS):
        raise AuthorizationError('You do not have access to this letter')
    return letter


def list_letters(user):
    require_authenticated(user)
    return Letter.objects.filter(user=user)


def review_queue(admin, status=None):
    require_capability(admin, Capability.REVIEW_LETTERS)
    letters = Letter.objects.select_related('user', 'reviewed_by')
    if status:
        if status not in LetterStatus.values:
            raise ValidationError(f"Unknown status '{status}'")
        return letters.filter(status=status).order_by('created_at')
    return letters.filter(status__in=REVIEWABLE_STATUSES).order_by('created_at')


def render_letter_pdf(user, letter_id):
    letter = get_letter(user, letter_id)
    if not letter.is_deliverable():
        raise ValidationError('Only approved letters can be downloaded')

    from .pdf_service import render_letter_pdf_bytes
    return letter, render_letter_pdf_bytes(letter)
