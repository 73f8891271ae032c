import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import ExternalServiceError, ServiceError

logger = logging.getLogger(__name__)


def service_exception_handler(exc, context):
    """Render ServiceError subclasses as structured JSON; defer the rest to DRF."""
    if isinstance(exc, ServiceError):
        request = context.get('request')
        tag = request.path if request is not None else 'api'
        if isinstance(exc, ExternalServiceError):
            logger.error(f"[{tag}] {exc.service} failed: {exc.message}")
        elif exc.status_code >= 500:
            logger.error(f"[{tag}] {exc.kind}: {exc.message}")
        else:
            logger.info(f"[{tag}] {exc.kind}: {exc.message}")
        return Response(exc.as_payload(), status=exc.status_code)
    return exception_handler(exc, context)
