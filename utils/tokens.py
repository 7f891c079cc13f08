"""Stateless session tokens.

A token is an HS256 JWT carrying the user id (``sub``), the issuance time
(``iat``) and a fixed seven day expiry (``exp``). Nothing is stored server
side, so there is no way to revoke a token before it expires.
"""
import logging
from datetime import datetime, timezone

import jwt

from config import SESSION_LIFETIME

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def issue_token(user_id, secret, now=None):
    """Sign a session token for ``user_id``."""
    if not user_id:
        raise ValueError("A user id is required to issue a session token")

    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + SESSION_LIFETIME,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token, secret):
    """Return the user id a token was issued for, or None.

    Malformed, tampered, wrongly signed and expired tokens all yield None.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected session token: %s", type(exc).__name__)
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return subject


def revoke_token(token=None):
    """Always succeeds; logging out is the client discarding its token."""
    return True
