"""
Service-layer error taxonomy.

Services raise these; the API layer maps them to HTTP responses through
``common.api.service_exception_handler``. ``message`` is always safe to show
to the caller.
"""


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500
    kind = 'internal_error'
    default_message = 'Something went wrong. Please try again.'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_payload(self):
        payload = {'error': self.message, 'kind': self.kind}
        payload.update(self.extra)
        return payload


class ValidationError(ServiceError):
    status_code = 400
    kind = 'validation_error'
    default_message = 'Invalid request.'


class InvalidTransitionError(ValidationError):
    kind = 'invalid_transition'

    def __init__(self, old_status, new_status):
        super().__init__(
            f"Cannot move a letter from '{old_status}' to '{new_status}'.",
            old_status=old_status,
            new_status=new_status,
        )


class AuthenticationError(ServiceError):
    status_code = 401
    kind = 'authentication_error'
    default_message = 'Authentication required.'


class AuthorizationError(ServiceError):
    status_code = 403
    kind = 'authorization_error'
    default_message = 'You do not have permission to perform this action.'


class AllowanceExhaustedError(ServiceError):
    status_code = 403
    kind = 'allowance_exhausted'
    default_message = 'No letter credits remaining. Please upgrade your plan.'

    def __init__(self, message=None, **extra):
        extra.setdefault('needs_subscription', True)
        super().__init__(message, **extra)


class NotFoundError(ServiceError):
    status_code = 404
    kind = 'not_found'
    default_message = 'Not found.'


class ExternalServiceError(ServiceError):
    """A collaborator (AI, payment, email) failed."""

    status_code = 500
    kind = 'external_service_error'
    default_message = 'An external service failed. Please try again later.'

    def __init__(self, service, message=None, **extra):
        self.service = service
        super().__init__(message, **extra)


class ConflictError(ServiceError):
    """Duplicate settlement of an already-processed payment session.

    Settlement catches this and answers with the existing subscription, so it
    never reaches the caller.
    """

    status_code = 409
    kind = 'conflict'
    default_message = 'This payment session has already been processed.'
