"""
Security utilities: admin API key, user access tokens, rate limiting,
and hygiene helpers for model output.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from pulse.core.config import Settings, get_settings

# ── Rate limiter (attached to FastAPI app in main.py) ───────
limiter = Limiter(key_func=get_remote_address)

# ── Admin API key ───────────────────────────────────────────
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    api_key: Annotated[str | None, Security(_api_key_header)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing API key",
        )
    return api_key


# ── User access tokens (Bearer header or `token` cookie) ────
_bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, email: str, settings: Settings) -> str:
    payload = {
        "userId": user_id,
        "email": email,
        "exp": datetime.now(UTC) + timedelta(days=settings.access_token_expiry_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> str:
    """Return the user id carried by a token. Raises JWTError on expiry / tampering."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    user_id = payload.get("userId")
    if not user_id:
        raise JWTError("token carries no userId")
    return str(user_id)


def _extract_token(
    credentials: HTTPAuthorizationCredentials | None, cookie_token: str | None
) -> str | None:
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return cookie_token or None


async def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer)],
    settings: Annotated[Settings, Depends(get_settings)],
    token: Annotated[str | None, Cookie()] = None,
) -> str | None:
    """Anonymous callers and bad tokens both resolve to None."""
    raw = _extract_token(credentials, token)
    if not raw:
        return None
    try:
        return decode_access_token(raw, settings)
    except JWTError:
        return None


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer)],
    settings: Annotated[Settings, Depends(get_settings)],
    token: Annotated[str | None, Cookie()] = None,
) -> str:
    raw = _extract_token(credentials, token)
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        return decode_access_token(raw, settings)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e


# ── Content sanitisation for model output ───────────────────
def sanitize_for_display(text: str) -> str:
    """Strip prompt-injection markers a model may echo back into user-facing copy."""
    dangerous_patterns = [
        "SYSTEM:", "ASSISTANT:", "USER:", "```system",
        "<|im_start|>", "<|im_end|>", "<<SYS>>", "<</SYS>>",
    ]
    sanitized = text
    for pattern in dangerous_patterns:
        sanitized = sanitized.replace(pattern, "[REDACTED]")
    return sanitized


def hash_content(content: str) -> str:
    """Deterministic content hash, used for stable external ids."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
