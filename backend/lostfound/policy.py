"""Role-based access policy.

One table maps each capability to the roles allowed to exercise it. Services
call :func:`authorize` before touching the store; routes never check roles.
"""
from __future__ import annotations

from typing import Iterable, Union

from .errors import AuthenticationError, AuthorizationError, SelfDeleteForbidden
from .models.enums import ROLES
from .security import Identity

EVERYONE = frozenset(ROLES)
STAFF = frozenset({"staff", "admin"})
ADMIN = frozenset({"admin"})

CAPABILITIES: dict[str, frozenset] = {
    "reports.create": EVERYONE,
    "reports.update": ADMIN,
    "reports.delete": ADMIN,
    "reports.reconcile": STAFF,
    "matches.create": STAFF,
    "matches.update": STAFF,
    "matches.delete": STAFF,
    "claims.list": EVERYONE,
    "claims.read": STAFF,
    "claims.create": STAFF,
    "claims.update": STAFF,
    "claims.delete": STAFF,
    "users.read": STAFF,
    "users.create": ADMIN,
    "users.update": ADMIN,
    "users.set_role": ADMIN,
    "users.delete": ADMIN,
    "profile.read": EVERYONE,
    "profile.update": EVERYONE,
    "categories.write": STAFF,
}


def required_roles(capability: Union[str, Iterable[str]]) -> frozenset:
    if isinstance(capability, str):
        try:
            return CAPABILITIES[capability]
        except KeyError:
            raise ValueError(f"Unknown capability: {capability}") from None
    return frozenset(capability)


def is_allowed(identity: Identity | None, capability: Union[str, Iterable[str]]) -> bool:
    return identity is not None and identity.role in required_roles(capability)


def authorize(identity: Identity | None, capability: Union[str, Iterable[str]]) -> Identity:
    """Return ``identity`` if its role grants ``capability`` (a name or a set of roles)."""
    if identity is None:
        raise AuthenticationError("Unauthorized - user is not authenticated")
    roles = required_roles(capability)
    if identity.role not in roles:
        raise AuthorizationError(
            "Forbidden - you do not have access",
            requiredRoles=sorted(roles),
            yourRole=identity.role,
        )
    return identity


def ensure_not_self(identity: Identity, target_id: str) -> None:
    if identity.id == target_id:
        raise SelfDeleteForbidden()
