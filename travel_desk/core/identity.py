"""
Acting identity supplied per request by the auth layer.

The workflow never looks users up: every decision snapshots the identity it
was given (name, email) into the decision log.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ActorIdentity:
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_claims(cls, claims: dict) -> "ActorIdentity":
        """Build an identity from decoded access-token claims."""
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        elif not isinstance(roles, (list, tuple)):
            roles = []
        return cls(
            id=str(claims["sub"]),
            first_name=claims.get("first_name") or "",
            last_name=claims.get("last_name") or "",
            email=claims.get("email") or "",
            roles=frozenset(r.upper() for r in roles if isinstance(r, str)),
        )
