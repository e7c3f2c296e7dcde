"""
Caller identity.

Authentication itself happens in Supabase Auth; this module only turns a
bearer token into the `(user_id, role)` fact the core consumes. The staff
role lives in the user's `app_metadata.staff_role`, which only the service
key can write, so a user cannot grant themselves a role.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from domain.errors import UnauthenticatedError
from domain.permissions import StaffRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    user_id: str
    role: StaffRole
    full_name: Optional[str] = None


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> CallerIdentity:
        ...


def _metadata(user: Any, name: str) -> Mapping[str, Any]:
    value = getattr(user, name, None)
    return value if isinstance(value, Mapping) else {}


class SupabaseIdentityProvider:
    """Resolves Supabase Auth access tokens via `auth.get_user`."""

    def __init__(self, client: Any):
        self._client = client

    def resolve(self, token: str) -> CallerIdentity:
        if not token:
            raise UnauthenticatedError()

        try:
            response = self._client.auth.get_user(token)
        except Exception as exc:
            logger.warning("Token rejected by Supabase Auth: %s", exc)
            raise UnauthenticatedError("Invalid or expired session") from exc

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise UnauthenticatedError("Invalid or expired session")

        role = StaffRole.parse(_metadata(user, "app_metadata").get("staff_role"))
        full_name = _metadata(user, "user_metadata").get("full_name")
        return CallerIdentity(user_id=str(user.id), role=role, full_name=full_name or None)


__all__ = ["CallerIdentity", "IdentityProvider", "SupabaseIdentityProvider"]
