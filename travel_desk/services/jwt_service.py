"""
JWT Service — access token encode/decode.

Tokens are issued by the organisation's identity provider; this service
only verifies them.  ``generate_access_token`` exists for the
``flask issue-token`` command and for tests.

Algorithm: HS256

Token payload (access):
{
    "sub": <user_id>,
    "first_name": ..., "last_name": ..., "email": ...,
    "roles": ["REVIEWER", ...],
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 3600      # 1 hour
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def generate_access_token(user_id: str, roles: list[str], *, first_name: str = "",
                          last_name: str = "", email: str = "",
                          expires_in: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    expires_in = expires_in or current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    payload = {
        "sub": str(user_id),
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "roles": list(roles),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify and decode an access token.

    Raises:
        jwt.ExpiredSignatureError: token has expired.
        jwt.InvalidTokenError: bad signature, malformed, or not an access token.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM],
                         options={"require": ["sub", "exp"]})
    if payload.get("type", "access") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    return payload
