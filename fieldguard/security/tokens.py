"""
Signed bearer tokens for API callers.

Tokens are HS256 JWTs carrying the user id in an ``id`` claim. Verification
failures surface as ``InvalidCredential``; callers must keep that distinct
from a permission denial. Do not log tokens.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from fieldguard.errors import InvalidCredential

logger = logging.getLogger(__name__)


def issue_token(
    user_id: int,
    *,
    secret: str,
    algorithm: str = "HS256",
    expires_in: timedelta | None = None,
) -> str:
    payload: dict[str, Any] = {"id": user_id, "iat": datetime.now(timezone.utc)}
    if expires_in is not None:
        payload["exp"] = payload["iat"] + expires_in
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, *, secret: str, algorithm: str = "HS256") -> int:
    """Verify ``token`` and return the user id it was issued for."""

    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as e:
        logger.info("Token expired")
        raise InvalidCredential("Token expired") from e
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise InvalidCredential("Invalid token") from e

    user_id = payload.get("id", payload.get("_id"))
    if user_id is None:
        raise InvalidCredential("Invalid token: Token did not contain required fields")
    try:
        return int(user_id)
    except (TypeError, ValueError) as e:
        raise InvalidCredential("Invalid token: user id is not an integer") from e
