# rollcall/services/qr.py
"""Attendance tokens: the signed claims rendered as the session QR code.

The token is a compact JWS (HS256, python-jose) over the compact JSON
claims ``{sid, cid, iat, exp, geo}``, keyed with ``settings.TOKEN_SECRET``.
The signature covers the exact text of the header and payload segments;
the signature segment must be canonical base64url, so any change to the
string fails verification.
"""
from __future__ import annotations

import base64
import io
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

import qrcode  # type: ignore
from jose import jws
from jose.exceptions import JWSError
from jose.utils import base64url_decode, base64url_encode

from rollcall.core.clock import to_epoch
from rollcall.core.config import settings
from rollcall.services.geofence import Geofence

TOKEN_TYPE = "rc1"
TOKEN_ALGORITHM = "HS256"
MAX_TOKEN_LENGTH = 2048
_B64_SEGMENT = re.compile(r"[A-Za-z0-9_-]+")
_PAYLOAD_KEYS = {"sid", "cid", "iat", "exp", "geo"}


class DecodeErrorKind(str, Enum):
    MALFORMED = "MALFORMED"
    TAG_MISMATCH = "TAG_MISMATCH"


@dataclass(frozen=True)
class DecodeError:
    kind: DecodeErrorKind
    detail: str = ""


@dataclass(frozen=True)
class TokenClaims:
    session_id: str
    course_id: int
    issued_at: int
    expires_at: int
    geofence: Optional[Geofence] = None

    @classmethod
    def for_session(cls, session: Any) -> "TokenClaims":
        """Claims for anything shaped like a session view (see services.sessions)."""
        return cls(
            session_id=session.session_id,
            course_id=session.course_id,
            issued_at=to_epoch(session.created_at),
            expires_at=to_epoch(session.expires_at),
            geofence=session.geofence,
        )


DecodeResult = Union[TokenClaims, DecodeError]


# -------------------------- Utils --------------------------

def _is_canonical(segment: str) -> bool:
    # base64url leaves spare low bits in the last character; only one spelling is accepted
    return base64url_encode(base64url_decode(segment.encode("ascii"))).decode("ascii") == segment

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _claims_from_payload(data: Any) -> Optional[TokenClaims]:
    if not isinstance(data, dict) or set(data) != _PAYLOAD_KEYS:
        return None
    sid, cid, iat, exp, geo = data["sid"], data["cid"], data["iat"], data["exp"], data["geo"]
    if not isinstance(sid, str) or not sid or len(sid) > 64:
        return None
    if not (_is_int(cid) and _is_int(iat) and _is_int(exp)):
        return None
    fence = None
    if geo is not None:
        if not isinstance(geo, list) or len(geo) != 3 or not all(_is_number(v) for v in geo):
            return None
        fence = Geofence(latitude=float(geo[0]), longitude=float(geo[1]), radius_meters=float(geo[2]))
    return TokenClaims(session_id=sid, course_id=cid, issued_at=iat, expires_at=exp, geofence=fence)


# -------------------------- Codec --------------------------

def encode_token(claims: TokenClaims, secret: Optional[str] = None) -> str:
    payload = {
        "sid": claims.session_id,
        "cid": claims.course_id,
        "iat": claims.issued_at,
        "exp": claims.expires_at,
        "geo": None,
    }
    if claims.geofence is not None:
        g = claims.geofence
        payload["geo"] = [g.latitude, g.longitude, g.radius_meters]
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return jws.sign(body, secret or settings.TOKEN_SECRET, headers={"typ": TOKEN_TYPE}, algorithm=TOKEN_ALGORITHM)


def decode_token(token: Any, secret: Optional[str] = None) -> DecodeResult:
    """Verifies and parses a token. Never raises; failures come back as DecodeError."""
    if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
        return DecodeError(DecodeErrorKind.MALFORMED, "empty or oversized token")
    if not token.isascii():
        return DecodeError(DecodeErrorKind.MALFORMED, "non-ascii characters")

    parts = token.split(".")
    if len(parts) != 3 or not all(_B64_SEGMENT.fullmatch(p) for p in parts):
        return DecodeError(DecodeErrorKind.MALFORMED, "unexpected token layout")
    try:
        header = jws.get_unverified_header(token)
        canonical = _is_canonical(parts[2])
    except (JWSError, ValueError):
        return DecodeError(DecodeErrorKind.MALFORMED, "unreadable header or signature")
    if header.get("typ") != TOKEN_TYPE or header.get("alg") != TOKEN_ALGORITHM or not canonical:
        return DecodeError(DecodeErrorKind.MALFORMED, "unexpected header")

    try:
        body = jws.verify(token, secret or settings.TOKEN_SECRET, algorithms=[TOKEN_ALGORITHM])
    except JWSError:
        # layout and header already checked, so this is the signature
        return DecodeError(DecodeErrorKind.TAG_MISMATCH, "integrity check failed")

    try:
        data = json.loads(body.decode("utf-8"))
    except (ValueError, RecursionError):
        return DecodeError(DecodeErrorKind.MALFORMED, "unreadable payload")
    claims = _claims_from_payload(data)
    if claims is None:
        return DecodeError(DecodeErrorKind.MALFORMED, "unexpected payload fields")
    return claims


# -------------------------- QR image --------------------------

def qr_data_uri(text: str) -> str:
    img = qrcode.make(text)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{b64}"
