"""
Security utilities for authentication and authorization.

Bearer tokens are issued by the platform's auth service; this module only
verifies them and resolves the subject to a request-scoped context.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
import structlog
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session
from village_carbon.core.config import UserRole
from village_carbon.core.exceptions import AuthenticationError, AuthorizationError
from village_carbon.core.settings import settings
from village_carbon.db.session import get_session
from village_carbon.db.models.user import User

logger = structlog.get_logger(__name__)

# JWT token scheme; missing credentials are reported as 401 by the dependency
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class RequestContext:
    """Authenticated identity and role for the current request."""
    user_id: UUID
    email: str
    name: Optional[str]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @classmethod
    def from_user(cls, user: User) -> "RequestContext":
        return cls(user_id=user.id, email=user.email, name=user.name, role=user.role)


class SecurityUtils:
    """Security utility functions."""

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token."""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expiration_hours)

        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(
            to_encode,
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm
        )
        return encoded_jwt

    @staticmethod
    def verify_token(token: str) -> Optional[dict]:
        """Verify and decode JWT token."""
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret,
                algorithms=[settings.jwt_algorithm]
            )
            return payload
        except JWTError as e:
            logger.info("JWT validation failed", error=str(e))
            return None


def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session)
) -> RequestContext:
    """Resolve the bearer token to the caller's current identity and role."""
    if credentials is None:
        raise AuthenticationError()

    payload = SecurityUtils.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Could not validate credentials")

    try:
        user_uuid = UUID(str(subject))
    except ValueError:
        raise AuthenticationError("Could not validate credentials")

    # Role comes from the user row, not from the token
    user = session.get(User, user_uuid)
    if user is None:
        raise AuthenticationError("Could not validate credentials")

    return RequestContext.from_user(user)


def require_admin(
    context: RequestContext = Depends(get_request_context)
) -> RequestContext:
    """Require the caller to hold the administrative role."""
    if not context.is_admin:
        logger.warning("Admin access denied", user_id=str(context.user_id), role=context.role)
        raise AuthorizationError()
    return context
