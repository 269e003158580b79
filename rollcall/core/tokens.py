# rollcall/core/tokens.py
"""API bearer tokens (JWT). The attendance QR payload is a different thing, see services/qr.py."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError
from rollcall.core.config import settings

logger = logging.getLogger(__name__)

ACCESS = "access"

def create_access_token(*, sub: str, role: str, expires_minutes: Optional[int] = None) -> str:
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or int(settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims: Dict[str, Any] = {
        "type": ACCESS,
        "sub": sub,
        "role": role,
        "jti": uuid.uuid4().hex,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a valid, unexpired access token; None for anything else."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        logger.debug("access token refused: %s", exc)
        return None
    if not isinstance(claims, dict) or claims.get("type") != ACCESS or not claims.get("sub"):
        return None
    return claims
