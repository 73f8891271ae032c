"""Render approved letters to PDF."""
from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone


def render_letter_pdf_bytes(letter) -> bytes:
    from weasyprint import HTML

    html_string = render_to_string('letters/letter_pdf.html', {
        'letter': letter,
        'content': letter.get_display_content(),
        'app_name': settings.APP_NAME,
        'generated_at': timezone.now(),
    })
    return HTML(string=html_string).write_pdf()
