"""Acting user resolved from trusted gateway headers.

Authentication happens upstream; the gateway forwards the authenticated user as
``X-Actor-Id`` / ``X-Actor-Role``. The portal trusts these values and only
narrows which roles may call which endpoint. Ownership checks (e.g. "only the
owning vendor may upload") live in the services, not here.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from fastapi import Header
from pydantic import BaseModel

from portal.core.exceptions import AuthorizationError, UnauthorizedError


class Role(str, Enum):
    """Portal roles. Values match what the identity provider sends."""

    VENDOR = "vendor"
    CONSULTANT = "consultant"
    CROSS_VERIFIER = "cross_verifier"
    APPROVER = "approver"
    ADMIN = "admin"


class Actor(BaseModel):
    id: str
    role: Role

    model_config = {"frozen": True}

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


# Which roles may call which group of operations
VENDOR_ROLES = frozenset({Role.VENDOR})
SUBMITTER_ROLES = frozenset({Role.VENDOR, Role.ADMIN})
REVIEWER_ROLES = frozenset({Role.CONSULTANT, Role.CROSS_VERIFIER, Role.ADMIN})
FINALIZER_ROLES = frozenset({Role.CONSULTANT, Role.APPROVER, Role.ADMIN})


async def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """FastAPI dependency: build the Actor from gateway headers."""
    if not x_actor_id or not x_actor_role:
        raise UnauthorizedError("Missing X-Actor-Id / X-Actor-Role headers")
    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError:
        raise UnauthorizedError(f"Unknown role '{x_actor_role}'") from None
    return Actor(id=x_actor_id.strip(), role=role)


def require_roles(allowed: frozenset[Role]) -> Callable:
    """Dependency factory: the resolved actor must hold one of *allowed*.

    Usage:
        actor: Actor = Depends(require_roles(REVIEWER_ROLES))
    """

    async def _dependency(
        x_actor_id: str | None = Header(default=None),
        x_actor_role: str | None = Header(default=None),
    ) -> Actor:
        actor = await get_actor(x_actor_id, x_actor_role)
        if actor.role not in allowed:
            raise AuthorizationError(
                f"Role '{actor.role.value}' may not perform this action"
            )
        return actor

    return _dependency
