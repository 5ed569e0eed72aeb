from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings

# auto_error=False: a missing header must surface as 401, not FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)


def credentials_exception(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _normalize_token(token: str | None) -> str:
    """
    Tolerate copy-paste noise:
    - Leading/trailing whitespace/newlines
    - Surrounding quotes
    - Accidentally including the 'Bearer ' prefix in the token field
    """
    if token is None:
        return ""

    t = token.strip()

    if (t.startswith('"') and t.endswith('"')) or (t.startswith("'") and t.endswith("'")):
        t = t[1:-1].strip()

    if t.lower().startswith("bearer "):
        t = t[7:].strip()

    return t


def create_access_token(subject: str | uuid.UUID, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    expire_dt = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    # Numeric timestamps for maximum compatibility
    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": int(expire_dt.timestamp()),
        "iat": int(now.timestamp()),
    }

    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str | None) -> uuid.UUID:
    """
    Returns the user id carried in `sub`. Any decoding problem is a 401.
    """
    token = _normalize_token(token)
    if not token:
        raise credentials_exception("Unauthorized")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        # Includes expired signature, bad format, bad signature, wrong algorithm, etc.
        raise credentials_exception()

    sub = payload.get("sub")
    if not sub:
        raise credentials_exception()

    try:
        return uuid.UUID(str(sub))
    except ValueError:
        raise credentials_exception("Invalid token subject")
