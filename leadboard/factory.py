"""Factory helpers for constructing a workspace from configuration."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Union

import httpx

from .api import LeadsApiClient
from .config import ClientSettings, load_configuration
from .logging_config import configure_logging
from .models import ActingUser
from .notifications import Notifier
from .permissions import PermissionResolver, RolePermissions
from .workspace import LeadWorkspace


def build_workspace(
    config: Optional[Mapping[str, Any]],
    user: ActingUser,
    *,
    client: Optional[httpx.Client] = None,
    notifier: Optional[Notifier] = None,
    configure_logs: bool = False,
    **workspace_kwargs: Any,
) -> LeadWorkspace:
    """Build settings, the HTTP client and a :class:`LeadWorkspace` for *user*."""

    settings = ClientSettings.from_mapping(config)
    if configure_logs:
        configure_logging(settings.log_level, settings.log_format)

    api = LeadsApiClient(settings, client=client)
    permissions = PermissionResolver(user, RolePermissions.from_mapping(settings.permissions))
    return LeadWorkspace(
        api,
        user,
        settings,
        notifier or Notifier(),
        permissions,
        **workspace_kwargs,
    )


def load_workspace(path: Union[str, Path], user: ActingUser, **kwargs: Any) -> LeadWorkspace:
    """Read a JSON/YAML configuration file and build the workspace from it."""

    kwargs.setdefault("configure_logs", True)
    return build_workspace(load_configuration(path), user, **kwargs)


__all__ = ["build_workspace", "load_workspace"]
