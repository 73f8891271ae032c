from django.db import models
from django.conf import settings
from django.utils import timezone

from common.errors import InvalidTransitionError


LETTER_TYPES = [
    ('demand_letter', 'Demand Letter'),
    ('cease_desist', 'Cease and Desist'),
    ('contract_breach', 'Contract Breach Notice'),
    ('eviction_notice', 'Eviction Notice'),
    ('employment_dispute', 'Employment Dispute'),
    ('consumer_complaint', 'Consumer Complaint'),
]


class LetterStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    GENERATING = 'generating', 'Generating'
    PENDING_REVIEW = 'pending_review', 'Pending Review'
    UNDER_REVIEW = 'under_review', 'Under Review'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


# Legal moves of the status field. rejected and failed are terminal here;
# reopening a rejected letter happens outside this application.
ALLOWED_TRANSITIONS = {
    LetterStatus.DRAFT: {LetterStatus.PENDING_REVIEW},
    LetterStatus.GENERATING: {LetterStatus.PENDING_REVIEW, LetterStatus.FAILED},
    LetterStatus.PENDING_REVIEW: {
        LetterStatus.UNDER_REVIEW,
        LetterStatus.APPROVED,
        LetterStatus.REJECTED,
        LetterStatus.FAILED,
    },
    LetterStatus.UNDER_REVIEW: {LetterStatus.APPROVED, LetterStatus.REJECTED},
    LetterStatus.APPROVED: {LetterStatus.COMPLETED},
    LetterStatus.REJECTED: set(),
    LetterStatus.COMPLETED: set(),
    LetterStatus.FAILED: set(),
}

REVIEWABLE_STATUSES = [LetterStatus.PENDING_REVIEW, LetterStatus.UNDER_REVIEW]
DELIVERABLE_STATUSES = [LetterStatus.APPROVED, LetterStatus.COMPLETED]


class Letter(models.Model):
    """One user's request for a generated legal letter."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='letters')
    title = models.CharField(max_length=255)
    letter_type = models.CharField(max_length=40, choices=LETTER_TYPES)
    status = models.CharField(max_length=20, choices=LetterStatus.choices, default=LetterStatus.DRAFT)
    intake_data = models.JSONField(default=dict, blank=True, help_text='Answers from the intake form')

    # Content, in increasing order of authority: ai draft < final < admin edit
    ai_draft_content = models.TextField(blank=True)
    admin_edited_content = models.TextField(blank=True)
    final_content = models.TextField(blank=True)

    # Review
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='reviewed_letters'
    )
    review_notes = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='letter_user_status_idx'),
            models.Index(fields=['status', 'created_at'], name='letter_status_created_idx'),
        ]

    def __str__(self):
        return f"{self.title} - {self.user.email}"

    def get_display_content(self):
        """Content to show: admin edits win over final content, which wins over the AI draft."""
        return self.admin_edited_content or self.final_content or self.ai_draft_content

    def can_transition_to(self, new_status):
        return new_status in ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status):
        """Move to new_status in memory; the caller saves. Returns the old status."""
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(self.status, new_status)
        old_status = self.status
        self.status = new_status
        return old_status

    def is_owned_by(self, user):
        return self.user_id == getattr(user, 'pk', None)

    def is_deliverable(self):
        return self.status in DELIVERABLE_STATUSES

    def mark_sent(self):
        self.sent_at = timezone.now()
        self.save(update_fields=['sent_at', 'updated_at'])


class LetterAuditTrail(models.Model):
    """Append-only record of every status change on a letter."""

    letter = models.ForeignKey(Letter, on_delete=models.CASCADE, related_name='audit_trail')
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='letter_audit_entries'
    )
    action = models.CharField(max_length=50)
    old_status = models.CharField(max_length=20, blank=True)
    new_status = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        verbose_name = 'Letter Audit Entry'
        verbose_name_plural = 'Letter Audit Trail'

    def __str__(self):
        return f"{self.letter_id}: {self.action} ({self.old_status} → {self.new_status})"
