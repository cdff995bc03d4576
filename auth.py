import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

import jwt
from fastapi import Header, Request

from config import Settings

ALGORITHM = "HS256"
PBKDF2_ITERATIONS = 260_000


class AuthError(Exception):
    """Rejected credential; rendered as an empty response with this status."""

    def __init__(self, status_code: int):
        super().__init__(status_code)
        self.status_code = status_code


class Identity(NamedTuple):
    user_id: str
    is_admin: bool


# ---------- Passwords ----------

def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


# ---------- Tokens ----------

def issue_token(settings: Settings, user_id: str, is_admin: bool) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "isAdmin": bool(is_admin),
        "iat": now,
        "exp": now + timedelta(minutes=settings.token_ttl_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(settings: Settings, token: str) -> Identity:
    """Verify signature and expiry. Raises jwt.InvalidTokenError on failure."""
    claims = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})
    return Identity(user_id=claims["sub"], is_admin=bool(claims.get("isAdmin", False)))


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_user(request: Request, authorization: Optional[str] = Header(default=None)) -> Identity:
    scheme, _, token = (authorization or "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError(401)
    try:
        return decode_token(get_settings(request), token)
    except jwt.InvalidTokenError:
        raise AuthError(403) from None


def can_manage_user(settings: Settings, identity: Identity, target_id: str) -> bool:
    if not settings.enforce_user_ownership:
        return True
    return identity.is_admin or identity.user_id == target_id
