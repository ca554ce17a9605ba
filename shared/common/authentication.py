# shared/common/authentication.py
"""
JWT Authentication
"""

import jwt
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from django.conf import settings
from rest_framework import authentication, exceptions
from rest_framework.request import Request

logger = logging.getLogger(__name__)


def _jwt_key() -> str:
    return getattr(settings, 'JWT_SECRET_KEY', settings.SECRET_KEY)


def _jwt_algorithm() -> str:
    return getattr(settings, 'JWT_ALGORITHM', 'HS256')


class JWTAuthentication(authentication.BaseAuthentication):
    """
    JWT Token Authentication for API requests.
    Tokens are signed with the shared ``JWT_SECRET_KEY`` (HS256 by default).
    """

    keyword = 'Bearer'

    def authenticate(self, request: Request) -> Optional[Tuple[Any, Dict]]:
        auth_header = authentication.get_authorization_header(request)

        if not auth_header:
            return None

        try:
            auth_parts = auth_header.decode('utf-8').split()
        except UnicodeDecodeError:
            raise exceptions.AuthenticationFailed('Invalid token header encoding')

        if len(auth_parts) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header format')

        if auth_parts[0].lower() != self.keyword.lower():
            return None

        return self.authenticate_token(auth_parts[1])

    def authenticate_token(self, token: str) -> Tuple[Any, Dict]:
        """Validate and decode JWT token"""
        try:
            payload = jwt.decode(
                token,
                _jwt_key(),
                algorithms=[_jwt_algorithm()],
                options={'require': ['exp', 'sub']},
            )
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed('Token has expired')
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise exceptions.AuthenticationFailed('Invalid token')

        try:
            user = TokenUser(payload)
        except ValueError:
            raise exceptions.AuthenticationFailed('Token subject is not a valid user id')
        return (user, payload)

    def authenticate_header(self, request: Request) -> str:
        return self.keyword


class TokenUser:
    """
    User object created from JWT token payload.
    ``id`` is the UUID in the ``sub`` claim.
    """

    is_active = True
    is_authenticated = True
    is_anonymous = False

    def __init__(self, payload: Dict):
        self.payload = payload
        self.id = uuid.UUID(str(payload.get('sub')))

    def __str__(self) -> str:
        return f"TokenUser({self.id})"


class JWTTokenGenerator:
    """
    Issues access tokens for a member id. Used by other services and tests.
    """

    @staticmethod
    def generate_access_token(user_id, lifetime: timedelta = None) -> str:
        now = datetime.now(timezone.utc)
        lifetime = lifetime or getattr(settings, 'JWT_ACCESS_TOKEN_LIFETIME', timedelta(hours=1))

        payload = {
            'sub': str(user_id),
            'iat': now,
            'exp': now + lifetime,
            'type': 'access',
        }
        return jwt.encode(payload, _jwt_key(), algorithm=_jwt_algorithm())
