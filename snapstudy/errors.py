"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``register_error_handlers`` renders them into the
``{success, message, errors}`` envelope. Anything else that escapes a view is
logged and reported as a generic 500.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

logger = logging.getLogger('snapstudy')


class SnapStudyError(Exception):
    status_code = 500
    default_message = 'Something went wrong'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(SnapStudyError):
    status_code = 400
    default_message = 'Validation failed'


class AuthenticationError(SnapStudyError):
    status_code = 401
    default_message = 'Not authorized to access this route'


class InvalidCredentialsError(AuthenticationError):
    default_message = 'Invalid email or password'


class NotVerifiedError(AuthenticationError):
    default_message = 'Please verify your email before logging in'


class AuthorizationError(SnapStudyError):
    status_code = 403
    default_message = 'Forbidden'


class NotFoundError(SnapStudyError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(SnapStudyError):
    status_code = 400
    default_message = 'User with this email already exists'


class InvalidOrExpiredCodeError(SnapStudyError):
    status_code = 400
    default_message = 'Invalid or expired verification code'


class MustVerifyFirstError(SnapStudyError):
    status_code = 400
    default_message = 'Please verify your account first'


class InsufficientCreditsError(SnapStudyError):
    status_code = 402
    default_message = 'Insufficient credits'

    def __init__(self, required, available, message=None):
        self.required = int(required)
        self.available = int(available)
        super().__init__(message or f'Insufficient credits. Need {self.required}, have {self.available}')


class NotSettledError(SnapStudyError):
    status_code = 400
    default_message = 'Payment has not succeeded'


class SignatureError(SnapStudyError):
    status_code = 400
    default_message = 'Invalid signature'


class ExternalServiceError(SnapStudyError):
    status_code = 502
    default_message = 'An external service failed. Please try again.'


class ServiceNotConfiguredError(ExternalServiceError):
    status_code = 500
    default_message = 'Service not configured'


class RateLimitedError(SnapStudyError):
    status_code = 429
    default_message = 'Too many requests. Please wait before trying again.'

    def __init__(self, retry_after, message=None):
        self.retry_after = int(max(1, retry_after))
        super().__init__(message)


def error_payload(exc):
    payload = {'success': False, 'message': exc.message}
    if exc.errors:
        payload['errors'] = exc.errors
    if isinstance(exc, InsufficientCreditsError):
        payload['requiredCredits'] = exc.required
        payload['availableCredits'] = exc.available
    if isinstance(exc, RateLimitedError):
        payload['retryAfterSeconds'] = exc.retry_after
    return payload


def register_error_handlers(app, config):
    @app.errorhandler(SnapStudyError)
    def handle_snapstudy_error(exc):
        response = jsonify(error_payload(exc))
        response.status_code = exc.status_code
        if isinstance(exc, RateLimitedError):
            response.headers['Retry-After'] = str(exc.retry_after)
        return response

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_entity_too_large(_error):
        limit_mb = max(1, config.max_upload_bytes // (1024 * 1024))
        return jsonify({'success': False, 'message': f'Upload too large. Maximum upload size is {limit_mb}MB.'}), 413

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        return jsonify({'success': False, 'message': exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        logger.exception(f"Unhandled error: {exc}")
        payload = {'success': False, 'message': 'Server error'}
        if config.is_dev:
            payload['error'] = str(exc)
        return jsonify(payload), 500
