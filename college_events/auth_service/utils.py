"""
Shared authentication helpers.
Provides token creation, verification, and role enforcement.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

import jwt
from flask import current_app, g, request

from college_events.auth_service.models import Claims, Role
from college_events.config import Settings
from college_events.errors import Forbidden, InvalidOrExpiredToken, MissingToken

JWT_ALGORITHM = "HS256"
TOKEN_EXPIRATION_MINUTES = 1440  # 24 hours

ROLE_DENIED_MESSAGES = {
    Role.ORGANISER: "Access denied. Organiser role required.",
    Role.STUDENT: "Access denied. Student role required.",
}


def get_settings() -> Settings:
    return current_app.extensions["college_events.settings"]


# --- JWT CREATION ---
def create_token(claims: Claims, secret: str, expires_minutes: int = TOKEN_EXPIRATION_MINUTES) -> str:
    """
    Generates a new JWT for an authenticated account.

    Args:
        claims (Claims): Identity to embed (id, email, role).
        secret (str): HMAC signing key.
        expires_minutes (int): Lifetime of the token.

    Returns:
        str: Encoded JWT string.
    """
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(claims.account_id),
        "email": claims.email,
        "role": claims.role.value,
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
    }

    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


# --- JWT VALIDATION ---
def decode_token(token: str, secret: str) -> Claims:
    """
    Verify a JWT and turn its payload into Claims.

    Raises:
        MissingToken: The token is empty.
        InvalidOrExpiredToken: Bad signature, expired, or malformed claims.
    """
    if not token:
        raise MissingToken()

    try:
        payload: Dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "role", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidOrExpiredToken("Token expired")
    except jwt.InvalidTokenError:
        raise InvalidOrExpiredToken("Invalid token")

    try:
        return Claims(
            account_id=int(payload["sub"]),
            email=payload.get("email") or "",
            role=Role(payload["role"]),
        )
    except (TypeError, ValueError):
        raise InvalidOrExpiredToken("Invalid token")


def issue_token(claims: Claims) -> str:
    """Sign claims with the current app's secret and token lifetime."""
    settings = get_settings()
    return create_token(claims, settings.jwt_secret, settings.token_expiration_minutes)


def verify_token(token: str) -> Claims:
    """Verify a token with the current app's secret."""
    return decode_token(token, get_settings().jwt_secret)


def token_from_request() -> str:
    """
    Extract the bearer token from the Authorization header.

    Raises:
        MissingToken: Header absent, not a Bearer header, or empty token.
    """
    auth = request.headers.get("Authorization", "")

    if not auth.startswith("Bearer "):
        raise MissingToken()

    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise MissingToken()
    return token


def authenticate_request(required_role: Optional[Role] = None) -> Claims:
    """
    Verify the request's bearer token and, optionally, its role.

    Args:
        required_role (Role, optional): Role the caller must hold.

    Returns:
        Claims: The verified identity.

    Raises:
        MissingToken: 401, no bearer token.
        InvalidOrExpiredToken: 403, token failed verification.
        Forbidden: 403, token is valid but carries another role.
    """
    claims = verify_token(token_from_request())

    if required_role is not None and claims.role is not required_role:
        raise Forbidden(ROLE_DENIED_MESSAGES[required_role])

    return claims


def _require(required_role: Optional[Role]) -> Callable:
    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapped(*args, **kwargs):
            g.claims = authenticate_request(required_role)
            return view(*args, **kwargs)

        return wrapped

    return decorator


# Any valid token; claims land in flask.g.claims.
login_required = _require(None)

# Valid token whose role claim is organiser.
organiser_required = _require(Role.ORGANISER)
