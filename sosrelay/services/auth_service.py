# sosrelay/services/auth_service.py
"""
Minimal credential collaborator: one fixed demo operator, HS256 bearer tokens.

Mutations (resolve/unresolve, device listing) require a verified actor.
Live sessions never reject a viewer: a missing or bad token just means GUEST.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from sosrelay.config import settings
from sosrelay.errors import AuthError, ValidationError
from sosrelay.models import GUEST, Actor
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


def issue_token(email: Optional[str], password: Optional[str]) -> str:
    if not email or not password:
        raise ValidationError("email and password required")
    if email != settings.DEMO_USER_EMAIL or password != settings.DEMO_USER_PASSWORD:
        logger.warning(f"[AUTH] Failed login for {email}")
        raise AuthError("Invalid credentials")

    payload = {
        "email": settings.DEMO_USER_EMAIL,
        "name": settings.DEMO_USER_NAME,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.TOKEN_TTL_HOURS),
    }
    logger.info(f"[AUTH] Token issued for {email}")
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Actor:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise AuthError("Invalid token") from e
    if not payload.get("email"):
        raise AuthError("Invalid token")
    return Actor(email=payload["email"], name=payload.get("name", ""))


def session_identity(token: Optional[str]) -> Actor:
    """Identity for a live viewer session. Degrades to GUEST, never raises."""
    if not token:
        return GUEST
    try:
        return verify_token(token)
    except AuthError:
        logger.info("[AUTH] Live session presented an invalid token, continuing as guest")
        return GUEST


def require_actor(request: Request) -> Actor:
    """FastAPI dependency — verified actor from `Authorization: Bearer <token>`."""
    auth = request.headers.get("Authorization")
    if not auth:
        raise AuthError("Missing authorization header")
    parts = auth.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise AuthError("Invalid auth format")
    return verify_token(parts[1])
