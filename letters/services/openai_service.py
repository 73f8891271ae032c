"""
OpenAI service for drafting legal letters.
"""
import logging

from django.conf import settings
from openai import OpenAI, OpenAIError

from common.errors import ExternalServiceError

logger = logging.getLogger(__name__)

LETTER_SYSTEM_PROMPT = (
    "You are a professional legal attorney drafting formal legal letters. "
    "Always produce professional, legally sound content with proper formatting."
)

# Intake fields, in the order they appear in the prompt
PROMPT_FIELDS = [
    'senderName',
    'senderAddress',
    'recipientName',
    'recipientAddress',
    'issueDescription',
    'desiredOutcome',
]


def _field_label(key: str) -> str:
    return key.replace('_', ' ')


def build_letter_prompt(letter_type: str, intake_data: dict) -> str:
    """
    Build the user prompt for a letter draft.

    Deterministic: the same letter type and intake data always produce the
    same prompt. Missing fields render as empty values.
    """
    lines = [
        f"Draft a professional {letter_type} letter with the following details:",
        "",
    ]
    for key in PROMPT_FIELDS:
        value = intake_data.get(key)
        lines.append(f"{_field_label(key)}: {'' if value is None else value}")

    amount = intake_data.get('amountDemanded')
    if amount:
        lines.append(f"Amount: ${amount}")

    lines.extend([
        "",
        "Requirements:",
        "- Write a professional, legally sound letter (300-500 words)",
        "- Include proper date and addresses",
        "- Present facts clearly",
        "- State clear demands with deadlines",
        "- Maintain professional legal tone throughout",
        "- Format as a complete letter with proper structure",
        "",
        "Return only the letter content, no additional commentary or explanations.",
    ])
    return "\n".join(lines)


class OpenAIService:
    """Text generation collaborator: prompt in, letter text out."""

    service_name = 'openai'

    def __init__(self):
        api_key = settings.OPENAI_API_KEY
        if not api_key:
            raise ExternalServiceError(self.service_name, 'Server configuration error')
        # Set timeout to 45 seconds per call
        self.client = OpenAI(api_key=api_key, timeout=45.0)

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Run one chat completion.

        Raises:
            ExternalServiceError: on any API failure or an empty response.
        """
        try:
            response = self.client.chat.completions.create(
                model=settings.OPENAI_LETTER_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=settings.OPENAI_LETTER_TEMPERATURE,
                max_tokens=settings.OPENAI_LETTER_MAX_TOKENS,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise ExternalServiceError(self.service_name, 'AI generation failed') from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            logger.error("OpenAI returned empty content")
            raise ExternalServiceError(self.service_name, 'AI returned empty content')
        return content.strip()
