from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated access token.

    Carried through the request via FastAPI's dependency system.  The
    enrollment endpoints act on ``user_id``; admin routes check ``roles``.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def is_admin(self) -> bool:
        return "admin" in self.roles
