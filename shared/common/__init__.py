# Shared Common Library for the court booking services.
# This package contains shared exceptions, authentication, middleware
# and model mixins used across services.

__version__ = "1.0.0"

# Export commonly used components
from .exceptions import (
    BaseAPIException,
    ValidationException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    UnprocessableEntityException,
    ServiceUnavailableException,
    ReservationConflictException,
    RuleViolationException,
    custom_exception_handler,
)

__all__ = [
    # Version
    '__version__',

    # Exceptions
    'BaseAPIException',
    'ValidationException',
    'ForbiddenException',
    'NotFoundException',
    'ConflictException',
    'UnprocessableEntityException',
    'ServiceUnavailableException',
    'ReservationConflictException',
    'RuleViolationException',
    'custom_exception_handler',
]
