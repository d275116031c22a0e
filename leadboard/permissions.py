"""Per-record permission checks layered over role-level defaults."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .models import ActingUser

LOGGER = logging.getLogger(__name__)

SUPER_ROLE = "super_admin"
ACTIONS = ("view", "edit", "delete")

_DEFAULT_MATRIX: Dict[str, Dict[str, bool]] = {
    SUPER_ROLE: {"view": True, "edit": True, "delete": True},
    "agency_admin": {"view": True, "edit": True, "delete": True},
    "agent": {"view": True, "edit": True, "delete": False},
    "staff": {"view": True, "edit": False, "delete": False},
}


def resolve(record: Any, user: Optional[ActingUser], action: str, role_default: bool) -> bool:
    """Return whether *user* may perform *action* on *record*.

    The super role always passes. A boolean stored at
    ``record.entry_permissions[user.role][action]`` is an explicit override and
    wins in either direction; anything else inherits *role_default*.
    """

    if user is None or record is None:
        return False
    if user.role == SUPER_ROLE:
        return True

    overrides = getattr(record, "entry_permissions", None) or {}
    role_overrides = overrides.get(user.role)
    if isinstance(role_overrides, Mapping):
        value = role_overrides.get(action)
        if isinstance(value, bool):
            return value

    return role_default


@dataclass
class RolePermissions:
    """Role-level default permission matrix for leads."""

    matrix: Dict[str, Dict[str, bool]] = field(default_factory=lambda: {role: dict(actions) for role, actions in _DEFAULT_MATRIX.items()})

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Mapping[str, Any]]]) -> "RolePermissions":
        permissions = cls()
        for role, actions in (overrides or {}).items():
            merged = permissions.matrix.setdefault(str(role), {})
            for action, allowed in actions.items():
                if action not in ACTIONS:
                    LOGGER.warning("Ignoring unknown permission action %r for role %r", action, role)
                    continue
                merged[action] = bool(allowed)
        return permissions

    def default_for(self, role: str, action: str) -> bool:
        return bool(self.matrix.get(role, {}).get(action, False))


class PermissionResolver:
    """Binds the acting user and role matrix so callers only name the action."""

    def __init__(self, user: Optional[ActingUser], roles: Optional[RolePermissions] = None) -> None:
        self.user = user
        self.roles = roles or RolePermissions()

    def can(self, record: Any, action: str) -> bool:
        if self.user is None:
            return False
        return resolve(record, self.user, action, self.roles.default_for(self.user.role, action))


__all__ = ["SUPER_ROLE", "ACTIONS", "resolve", "RolePermissions", "PermissionResolver"]
