# shared/common/exceptions.py
"""
Custom Exception Classes and Exception Handler
"""

import logging
import traceback
from typing import Dict, Any, Optional
from rest_framework import status
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework.exceptions import APIException
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from django.conf import settings

logger = logging.getLogger(__name__)


# =============================================================================
# BASE EXCEPTIONS
# =============================================================================

class BaseAPIException(APIException):
    """Base exception class for all custom API exceptions"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'An unexpected error occurred.'
    default_code = 'error'
    error_code = 'INTERNAL_ERROR'

    def __init__(
        self,
        detail: Optional[str] = None,
        code: Optional[str] = None,
        error_code: Optional[str] = None,
        extra_data: Optional[Dict] = None
    ):
        super().__init__(detail=detail, code=code)
        self.error_code = error_code or self.error_code
        self.extra_data = extra_data or {}


# =============================================================================
# CLIENT ERRORS (4xx)
# =============================================================================

class ValidationException(BaseAPIException):
    """400 Validation Error"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation error.'
    default_code = 'validation_error'
    error_code = 'VALIDATION_ERROR'

    def __init__(self, errors: Dict[str, Any], detail: str = None):
        super().__init__(detail=detail)
        self.extra_data = {'errors': errors}


class ForbiddenException(BaseAPIException):
    """403 Forbidden"""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'
    error_code = 'FORBIDDEN'


class NotFoundException(BaseAPIException):
    """404 Not Found"""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'The requested resource was not found.'
    default_code = 'not_found'
    error_code = 'NOT_FOUND'


class ConflictException(BaseAPIException):
    """409 Conflict"""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'A conflict occurred with the current state of the resource.'
    default_code = 'conflict'
    error_code = 'CONFLICT'


class UnprocessableEntityException(BaseAPIException):
    """422 Unprocessable Entity"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'The request was well-formed but could not be processed.'
    default_code = 'unprocessable_entity'
    error_code = 'UNPROCESSABLE_ENTITY'


# =============================================================================
# SERVER ERRORS (5xx)
# =============================================================================

class ServiceUnavailableException(BaseAPIException):
    """503 Service Unavailable"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The service is temporarily unavailable.'
    default_code = 'service_unavailable'
    error_code = 'SERVICE_UNAVAILABLE'


# =============================================================================
# DOMAIN-SPECIFIC EXCEPTIONS
# =============================================================================

class ReservationConflictException(ConflictException):
    """Reservation lost the race for its slot"""
    default_detail = 'The requested time slot was just booked.'
    error_code = 'RESERVATION_CONFLICT'


class RuleViolationException(UnprocessableEntityException):
    """Booking denied by one or more policy rules"""
    default_detail = 'The reservation violates booking rules.'
    default_code = 'rule_violation'
    error_code = 'RULE_VIOLATION'

    def __init__(self, violations: list, warnings: list = None, detail: str = None):
        super().__init__(detail=detail)
        self.extra_data = {'errors': {'violations': violations, 'warnings': warnings or []}}


# =============================================================================
# EXCEPTION HANDLER
# =============================================================================

def error_body(code: str, message: str, details: Any = None, request_id: str = None) -> Dict[str, Any]:
    """The error envelope every service returns."""
    return {
        'success': False,
        'error': {
            'code': code,
            'message': message,
            'details': details,
            'request_id': request_id,
        }
    }


def custom_exception_handler(exc, context) -> Optional[Response]:
    """
    Custom exception handler for DRF.
    Formats every error as ``{success: false, error: {...}}``.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    # DRF and BaseAPIException errors
    response = exception_handler(exc, context)
    if response is not None:
        return format_error_response(exc, response, request_id)

    if isinstance(exc, DjangoValidationError):
        errors = exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages}
        return Response(
            error_body('VALIDATION_ERROR', 'Validation error', errors, request_id),
            status=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, Http404):
        return Response(
            error_body('NOT_FOUND', str(exc) or 'Resource not found', None, request_id),
            status=status.HTTP_404_NOT_FOUND
        )

    logger.exception(
        f"Unhandled exception: {exc}",
        extra={
            'request_id': request_id,
            'exception_type': type(exc).__name__,
        }
    )

    details = None
    message = 'An unexpected error occurred. Please try again later.'
    if settings.DEBUG:
        message = str(exc)
        details = {
            'type': type(exc).__name__,
            'traceback': traceback.format_exc().split('\n'),
        }
    return Response(
        error_body('INTERNAL_ERROR', message, details, request_id),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def format_error_response(exc, response: Response, request_id: str = None) -> Response:
    """Wrap a DRF error response in the standard envelope."""
    extra_data = getattr(exc, 'extra_data', {}) or {}

    details = None
    if extra_data.get('errors'):
        details = extra_data['errors']
    elif isinstance(response.data, dict) and 'detail' not in response.data:
        # Field-level validation errors from DRF serializers
        details = response.data

    response.data = error_body(
        getattr(exc, 'error_code', None) or _default_code(response.status_code),
        get_error_message(exc, response),
        details,
        request_id,
    )
    return response


def _default_code(status_code: int) -> str:
    return {
        status.HTTP_400_BAD_REQUEST: 'VALIDATION_ERROR',
        status.HTTP_401_UNAUTHORIZED: 'UNAUTHORIZED',
        status.HTTP_403_FORBIDDEN: 'FORBIDDEN',
        status.HTTP_404_NOT_FOUND: 'NOT_FOUND',
        status.HTTP_405_METHOD_NOT_ALLOWED: 'METHOD_NOT_ALLOWED',
    }.get(status_code, 'ERROR')


def get_error_message(exc, response: Response) -> str:
    """Extract error message from exception or response"""
    detail = getattr(exc, 'detail', None)
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return str(detail[0])
    if isinstance(detail, dict):
        if 'detail' in detail:
            return str(detail['detail'])
        return 'Validation error'

    if isinstance(response.data, dict):
        return str(response.data.get('detail', response.data))
    return str(response.data)
