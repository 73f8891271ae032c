from unittest import mock

import pytest

from common.errors import (
    AllowanceExhaustedError,
    AuthorizationError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from letters.models import Letter, LetterAuditTrail, LetterStatus
from letters.services import letter_workflow
from letters.services.email_service import EmailResult

pytestmark = pytest.mark.django_db


def _letter(user, status=LetterStatus.PENDING_REVIEW, **fields):
    fields.setdefault('ai_draft_content', 'AI draft')
    return Letter.objects.create(
        user=user, title='Demand Letter', letter_type='demand_letter', status=status, **fields
    )


# --- generate ---

def test_first_letter_is_free(subscriber, drafter, intake_data):
    result = letter_workflow.generate_letter(subscriber, 'demand_letter', intake_data, drafter)

    assert result.is_free_trial is True
    assert result.letter.status == LetterStatus.PENDING_REVIEW
    assert result.letter.ai_draft_content == drafter.content
    assert len(drafter.calls) == 1
    subscriber.refresh_from_db()
    assert subscriber.free_trial_used is True


def test_second_letter_consumes_one_credit(used_free_trial, make_subscription, drafter, intake_data):
    subscription = make_subscription(used_free_trial, credits=2)

    result = letter_workflow.generate_letter(used_free_trial, 'demand_letter', intake_data, drafter)

    assert result.is_free_trial is False
    subscription.refresh_from_db()
    assert subscription.credits_remaining == 1


def test_generate_without_credits_creates_nothing(used_free_trial, drafter, intake_data):
    with pytest.raises(AllowanceExhaustedError) as excinfo:
        letter_workflow.generate_letter(used_free_trial, 'demand_letter', intake_data, drafter)

    assert excinfo.value.status_code == 403
    assert excinfo.value.extra['needs_subscription'] is True
    assert not Letter.objects.exists()
    assert drafter.calls == []


def test_generate_requires_subscriber_role(admin_user, drafter, intake_data):
    with pytest.raises(AuthorizationError):
        letter_workflow.generate_letter(admin_user, 'demand_letter', intake_data, drafter)


def test_generate_validates_input(subscriber, drafter, intake_data):
    with pytest.raises(ValidationError):
        letter_workflow.generate_letter(subscriber, '', intake_data, drafter)
    with pytest.raises(ValidationError):
        letter_workflow.generate_letter(subscriber, 'love_letter', intake_data, drafter)
    with pytest.raises(ValidationError):
        letter_workflow.generate_letter(subscriber, 'demand_letter', {}, drafter)


def test_generation_failure_marks_letter_failed(subscriber, failing_drafter, intake_data):
    with pytest.raises(ExternalServiceError) as excinfo:
        letter_workflow.generate_letter(subscriber, 'demand_letter', intake_data, failing_drafter)

    assert excinfo.value.service == 'openai'
    letter = Letter.objects.get()
    assert letter.status == LetterStatus.FAILED
    entry = letter.audit_trail.get()
    assert entry.action == 'generation_failed'
    assert (entry.old_status, entry.new_status) == (LetterStatus.GENERATING, LetterStatus.FAILED)


def test_failed_deduction_leaves_letter_failed(used_free_trial, make_subscription, drafter, intake_data):
    make_subscription(used_free_trial, credits=1)

    with mock.patch.object(letter_workflow, 'deduct_letter_allowance', return_value=False):
        with pytest.raises(AllowanceExhaustedError):
            letter_workflow.generate_letter(used_free_trial, 'demand_letter', intake_data, drafter)

    letter = Letter.objects.get()
    assert letter.status == LetterStatus.FAILED
    assert letter.ai_draft_content == drafter.content
    assert list(letter.audit_trail.values_list('action', flat=True)) == ['created', 'allowance_failed']


def test_generate_writes_audit_row(subscriber, drafter, intake_data):
    result = letter_workflow.generate_letter(subscriber, 'demand_letter', intake_data, drafter)

    entry = result.letter.audit_trail.get()
    assert entry.action == 'created'
    assert entry.performed_by == subscriber
    assert (entry.old_status, entry.new_status) == (LetterStatus.GENERATING, LetterStatus.PENDING_REVIEW)


def test_audit_failure_does_not_block_transition(subscriber, drafter, intake_data):
    with mock.patch.object(LetterAuditTrail.objects, 'create', side_effect=RuntimeError('audit store down')):
        result = letter_workflow.generate_letter(subscriber, 'demand_letter', intake_data, drafter)

    result.letter.refresh_from_db()
    assert result.letter.status == LetterStatus.PENDING_REVIEW
    assert not LetterAuditTrail.objects.exists()


# --- drafts and submission ---

def test_first_draft_submission_is_free(subscriber, intake_data):
    draft = letter_workflow.create_draft(subscriber, 'cease_desist', intake_data, 'My own text')

    result = letter_workflow.submit_letter(subscriber, draft.pk)

    assert result.is_free_trial is True
    assert result.letter.status == LetterStatus.PENDING_REVIEW
    assert result.letter.audit_trail.get().action == 'submitted'


def test_submission_consumes_credit(used_free_trial, make_subscription, intake_data):
    subscription = make_subscription(used_free_trial, credits=1)
    draft = letter_workflow.create_draft(used_free_trial, 'cease_desist', intake_data)

    result = letter_workflow.submit_letter(used_free_trial, draft.pk)

    assert result.is_free_trial is False
    subscription.refresh_from_db()
    assert subscription.credits_remaining == 0


def test_two_submissions_with_one_credit(used_free_trial, make_subscription, intake_data):
    make_subscription(used_free_trial, credits=1)
    first = letter_workflow.create_draft(used_free_trial, 'cease_desist', intake_data)
    second = letter_workflow.create_draft(used_free_trial, 'cease_desist', intake_data)

    letter_workflow.submit_letter(used_free_trial, first.pk)
    with pytest.raises(AllowanceExhaustedError):
        letter_workflow.submit_letter(used_free_trial, second.pk)

    second.refresh_from_db()
    assert second.status == LetterStatus.DRAFT


def test_credit_spent_after_check_fails_the_letter(used_free_trial, make_subscription, drafter, intake_data):
    subscription = make_subscription(used_free_trial, credits=1)
    real_check = letter_workflow.has_available_credits

    def check_then_spend(user_id):
        # Another request takes the last credit once this one has passed the check
        available = real_check(user_id)
        assert letter_workflow.deduct_letter_allowance(user_id) is True
        return available

    with mock.patch.object(letter_workflow, 'has_available_credits', side_effect=check_then_spend):
        with pytest.raises(AllowanceExhaustedError):
            letter_workflow.generate_letter(used_free_trial, 'demand_letter', intake_data, drafter)

    subscription.refresh_from_db()
    assert subscription.credits_remaining == 0
    letter = Letter.objects.get()
    assert letter.status == LetterStatus.FAILED
    assert letter.audit_trail.filter(action='allowance_failed').exists()


def test_submit_someone_elses_letter(subscriber, other_subscriber, intake_data):
    draft = letter_workflow.create_draft(subscriber, 'cease_desist', intake_data)

    with pytest.raises(AuthorizationError):
        letter_workflow.submit_letter(other_subscriber, draft.pk)


def test_submit_missing_letter(subscriber):
    with pytest.raises(NotFoundError):
        letter_workflow.submit_letter(subscriber, 424242)


def test_submit_non_draft(subscriber):
    letter = _letter(subscriber)

    with pytest.raises(InvalidTransitionError):
        letter_workflow.submit_letter(subscriber, letter.pk)


# --- review ---

def test_approve(admin_user, subscriber):
    letter = _letter(subscriber)

    letter = letter_workflow.approve_letter(admin_user, letter.pk, 'Final text', 'Looks good')

    assert letter.status == LetterStatus.APPROVED
    assert letter.final_content == 'Final text'
    assert letter.reviewed_by == admin_user
    assert letter.approved_at is not None
    entry = letter.audit_trail.get()
    assert (entry.action, entry.old_status, entry.notes) == ('approved', LetterStatus.PENDING_REVIEW, 'Looks good')


def test_approve_requires_final_content(admin_user, subscriber):
    letter = _letter(subscriber)

    with pytest.raises(ValidationError) as excinfo:
        letter_workflow.approve_letter(admin_user, letter.pk, '   ')

    assert excinfo.value.status_code == 400


def test_reject_requires_reason(admin_user, subscriber):
    letter = _letter(subscriber)

    with pytest.raises(ValidationError):
        letter_workflow.reject_letter(admin_user, letter.pk, '')


@pytest.mark.parametrize('action', [
    letter_workflow.approve_letter,
    letter_workflow.reject_letter,
    letter_workflow.save_admin_edits,
])
def test_review_text_rejects_non_strings(admin_user, subscriber, action):
    letter = _letter(subscriber)

    with pytest.raises(ValidationError):
        action(admin_user, letter.pk, 1500)


@pytest.mark.parametrize('action, args', [
    (letter_workflow.approve_letter, ('Final text',)),
    (letter_workflow.reject_letter, ('Not enough facts',)),
])
def test_review_actions_need_admin(subscriber, action, args):
    letter = _letter(subscriber)

    with pytest.raises(AuthorizationError) as excinfo:
        action(subscriber, letter.pk, *args)

    assert excinfo.value.status_code == 403


def test_reject(admin_user, subscriber):
    letter = _letter(subscriber, status=LetterStatus.UNDER_REVIEW)

    letter = letter_workflow.reject_letter(admin_user, letter.pk, 'Not enough facts')

    assert letter.status == LetterStatus.REJECTED
    assert letter.rejection_reason == 'Not enough facts'
    entry = letter.audit_trail.get()
    assert entry.old_status == LetterStatus.UNDER_REVIEW
    assert entry.notes == 'Rejection reason: Not enough facts'


def test_cannot_approve_a_draft(admin_user, subscriber):
    letter = _letter(subscriber, status=LetterStatus.DRAFT)

    with pytest.raises(InvalidTransitionError):
        letter_workflow.approve_letter(admin_user, letter.pk, 'Final text')


def test_rejected_is_terminal(admin_user, subscriber):
    letter = _letter(subscriber, status=LetterStatus.REJECTED)

    with pytest.raises(InvalidTransitionError):
        letter_workflow.approve_letter(admin_user, letter.pk, 'Final text')


def test_admin_edit_moves_letter_under_review(admin_user, subscriber):
    letter = _letter(subscriber)

    letter = letter_workflow.save_admin_edits(admin_user, letter.pk, 'Edited text')

    assert letter.status == LetterStatus.UNDER_REVIEW
    assert letter.get_display_content() == 'Edited text'


def test_start_review_then_complete(admin_user, subscriber):
    letter = _letter(subscriber)

    letter_workflow.start_review(admin_user, letter.pk)
    letter_workflow.approve_letter(admin_user, letter.pk, 'Final text')
    letter = letter_workflow.complete_letter(admin_user, letter.pk)

    assert letter.status == LetterStatus.COMPLETED
    assert letter.completed_at is not None
    assert list(letter.audit_trail.values_list('action', flat=True)) == ['review_started', 'approved', 'completed']


def test_display_content_precedence(subscriber):
    letter = _letter(subscriber, final_content='Final')
    assert letter.get_display_content() == 'Final'

    letter.admin_edited_content = 'Edited'
    assert letter.get_display_content() == 'Edited'


def test_review_queue(admin_user, subscriber):
    pending = _letter(subscriber)
    _letter(subscriber, status=LetterStatus.DRAFT)

    assert list(letter_workflow.review_queue(admin_user)) == [pending]
    assert letter_workflow.review_queue(admin_user, LetterStatus.DRAFT).count() == 1


# --- delivery ---

def test_send_email(subscriber):
    letter = _letter(subscriber, status=LetterStatus.APPROVED, final_content='Final text')
    email_service = mock.Mock()
    email_service.send.return_value = EmailResult(email_id='em_123')

    result = letter_workflow.send_letter_email(
        subscriber, letter.pk, 'recipient@example.com', 'Please see attached', email_service
    )

    assert result.email_id == 'em_123'
    to, subject, html = email_service.send.call_args.args
    assert to == 'recipient@example.com'
    assert subject == letter.title
    assert 'Final text' in html
    letter.refresh_from_db()
    assert letter.sent_at is not None
    assert letter.audit_trail.get().action == 'sent'


def test_send_email_simulated_without_api_key(subscriber, settings):
    settings.RESEND_API_KEY = ''
    letter = _letter(subscriber, status=LetterStatus.APPROVED, final_content='Final text')

    result = letter_workflow.send_letter_email(subscriber, letter.pk, 'recipient@example.com')

    assert result.simulated is True


def test_send_email_requires_approved_letter(subscriber):
    letter = _letter(subscriber)

    with pytest.raises(ValidationError):
        letter_workflow.send_letter_email(subscriber, letter.pk, 'recipient@example.com', email_service=mock.Mock())


def test_send_email_rejects_bad_address(subscriber):
    letter = _letter(subscriber, status=LetterStatus.APPROVED)

    with pytest.raises(ValidationError):
        letter_workflow.send_letter_email(subscriber, letter.pk, 'not-an-email', email_service=mock.Mock())


def test_pdf_requires_approved_letter(subscriber):
    letter = _letter(subscriber)

    with pytest.raises(ValidationError):
        letter_workflow.render_letter_pdf(subscriber, letter.pk)


def test_pdf_render(subscriber):
    letter = _letter(subscriber, status=LetterStatus.APPROVED, final_content='Final text')

    with mock.patch('letters.services.pdf_service.render_letter_pdf_bytes', return_value=b'%PDF-1.7') as render:
        returned, pdf = letter_workflow.render_letter_pdf(subscriber, letter.pk)

    assert returned == letter
    assert pdf == b'%PDF-1.7'
    render.assert_called_once()
