# Generated manually
# Initial migration for letters app

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Letter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('letter_type', models.CharField(choices=[('demand_letter', 'Demand Letter'), ('cease_desist', 'Cease and Desist'), ('contract_breach', 'Contract Breach Notice'), ('eviction_notice', 'Eviction Notice'), ('employment_dispute', 'Employment Dispute'), ('consumer_complaint', 'Consumer Complaint')], max_length=40)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('generating', 'Generating'), ('pending_review', 'Pending Review'), ('under_review', 'Under Review'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('completed', 'Completed'), ('failed', 'Failed')], default='draft', max_length=20)),
                ('intake_data', models.JSONField(blank=True, default=dict, help_text='Answers from the intake form')),
                ('ai_draft_content', models.TextField(blank=True)),
                ('admin_edited_content', models.TextField(blank=True)),
                ('final_content', models.TextField(blank=True)),
                ('review_notes', models.TextField(blank=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_letters', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='letters', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='letter_user_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='letter_status_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LetterAuditTrail',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=50)),
                ('old_status', models.CharField(blank=True, max_length=20)),
                ('new_status', models.CharField(blank=True, max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('letter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_trail', to='letters.letter')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='letter_audit_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Letter Audit Entry',
                'verbose_name_plural': 'Letter Audit Trail',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
