"""
Outbound email through the Resend HTTP API.

When RESEND_API_KEY is not configured, sends are simulated: the message is
logged and reported as delivered.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

from common.errors import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Outcome of a send."""
    email_id: Optional[str]
    simulated: bool = False


class EmailService:

    service_name = 'resend'

    def __init__(self, api_key=None, from_address=None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_address = from_address or settings.LETTER_EMAIL_FROM

    @property
    def is_configured(self):
        return bool(self.api_key)

    def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> EmailResult:
        if not self.is_configured:
            logger.warning(f"RESEND_API_KEY not configured, simulating email to {to}: {subject}")
            return EmailResult(email_id=None, simulated=True)

        payload = {
            'from': self.from_address,
            'to': to,
            'subject': subject,
            'html': html,
        }
        if reply_to:
            payload['reply_to'] = reply_to

        try:
            response = requests.post(
                settings.RESEND_API_URL,
                json=payload,
                headers={'Authorization': f'Bearer {self.api_key}'},
                timeout=30,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Resend request error: {e}")
            raise ExternalServiceError(self.service_name, 'Failed to send email') from e

        if response.status_code >= 400:
            logger.error(f"Resend API error: {response.status_code} - {response.text}")
            raise ExternalServiceError(self.service_name, 'Failed to send email')

        email_id = response.json().get('id')
        logger.info(f"Email {email_id} sent to {to}")
        return EmailResult(email_id=email_id)
