from django import forms
from django.contrib import admin
from ckeditor.widgets import CKEditorWidget

from .models import Letter, LetterAuditTrail


class LetterAuditTrailInline(admin.TabularInline):
    model = LetterAuditTrail
    extra = 0
    can_delete = False
    readonly_fields = ['action', 'old_status', 'new_status', 'performed_by', 'notes', 'created_at']

    def has_add_permission(self, request, obj=None):
        return False


class LetterAdminForm(forms.ModelForm):
    """Letter form with rich text editors for the content fields."""
    ai_draft_content = forms.CharField(widget=CKEditorWidget(config_name='letter'), required=False)
    admin_edited_content = forms.CharField(widget=CKEditorWidget(config_name='letter'), required=False)
    final_content = forms.CharField(widget=CKEditorWidget(config_name='letter'), required=False)

    class Meta:
        model = Letter
        fields = '__all__'


@admin.register(Letter)
class LetterAdmin(admin.ModelAdmin):
    """
    Read-mostly view of letters. Status is read-only here; reviewers move
    letters through the API so every change lands in the audit trail.
    """

    form = LetterAdminForm
    list_display = ('title', 'user', 'letter_type', 'status', 'reviewed_by', 'created_at')
    list_filter = ('status', 'letter_type', 'created_at')
    search_fields = ('title', 'user__email')
    readonly_fields = (
        'status', 'reviewed_by', 'reviewed_at', 'approved_at',
        'completed_at', 'sent_at', 'created_at', 'updated_at',
    )
    inlines = [LetterAuditTrailInline]

    fieldsets = (
        (None, {
            'fields': ('user', 'title', 'letter_type', 'status', 'intake_data')
        }),
        ('Content', {
            'fields': ('ai_draft_content', 'admin_edited_content', 'final_content'),
            'classes': ('wide',),
        }),
        ('Review', {
            'fields': ('reviewed_by', 'review_notes', 'rejection_reason', 'reviewed_at', 'approved_at')
        }),
        ('Delivery', {
            'fields': ('completed_at', 'sent_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(LetterAuditTrail)
class LetterAuditTrailAdmin(admin.ModelAdmin):
    list_display = ['letter', 'action', 'old_status', 'new_status', 'performed_by', 'created_at']
    list_filter = ['action', 'new_status']
    search_fields = ['letter__title', 'performed_by__email']
    readonly_fields = ['letter', 'action', 'old_status', 'new_status', 'performed_by', 'notes', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
