from rest_framework import serializers

from letters.models import Letter, LetterAuditTrail


class LetterAuditSerializer(serializers.ModelSerializer):
    performed_by = serializers.SerializerMethodField()

    class Meta:
        model = LetterAuditTrail
        fields = ['id', 'action', 'old_status', 'new_status', 'notes', 'performed_by', 'created_at']

    def get_performed_by(self, obj):
        return obj.performed_by.email if obj.performed_by else None


class LetterSerializer(serializers.ModelSerializer):
    """A letter as its owner sees it."""
    content = serializers.CharField(source='get_display_content', read_only=True)

    class Meta:
        model = Letter
        fields = [
            'id', 'title', 'letter_type', 'status', 'intake_data', 'content',
            'rejection_reason', 'created_at', 'updated_at',
            'reviewed_at', 'approved_at', 'completed_at', 'sent_at',
        ]
        read_only_fields = fields


class AdminLetterSerializer(serializers.ModelSerializer):
    """Full letter record for the review queue."""
    user_email = serializers.EmailField(source='user.email', read_only=True)
    reviewed_by_email = serializers.SerializerMethodField()
    content = serializers.CharField(source='get_display_content', read_only=True)
    audit_trail = LetterAuditSerializer(many=True, read_only=True)

    class Meta:
        model = Letter
        fields = [
            'id', 'title', 'letter_type', 'status', 'intake_data', 'user_email',
            'content', 'ai_draft_content', 'admin_edited_content', 'final_content',
            'review_notes', 'rejection_reason', 'reviewed_by_email',
            'created_at', 'updated_at', 'reviewed_at', 'approved_at', 'completed_at', 'sent_at',
            'audit_trail',
        ]
        read_only_fields = fields

    def get_reviewed_by_email(self, obj):
        return obj.reviewed_by.email if obj.reviewed_by else None
