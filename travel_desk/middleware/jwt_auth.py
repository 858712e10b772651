"""
JWT Auth Middleware — parses the Bearer token and sets ``g.actor``.

Runs before every /api/v1/ request.  A missing, expired or invalid token
leaves ``g.actor`` as None; routes decide whether that is acceptable
(``require_actor`` / ``require_queue`` answer 401).
"""

import logging

import jwt as pyjwt
from flask import g, request

from travel_desk.core.identity import ActorIdentity
from travel_desk.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.actor = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            g.actor = ActorIdentity.from_claims(decode_access_token(token))
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token on %s", path, extra={"event_type": "auth_expired"})
        except (pyjwt.InvalidTokenError, KeyError):
            logger.warning("Invalid token on %s", path, extra={"event_type": "auth_invalid"})
