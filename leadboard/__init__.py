"""Client-side synchronization engine for a real-estate lead pipeline."""

from . import models  # noqa: F401
from .api import LeadsApiClient
from .config import ClientSettings, ConfigurationError, load_configuration
from .errors import (
    ApiError,
    AuthenticationError,
    FileValidationError,
    LeadboardError,
    LeadNotLoadedError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .factory import build_workspace, load_workspace
from .models import ActingUser, ImportRow, Lead, QueryDescriptor, Reference
from .mutations import AutoAssign, DeleteLeads, SetAgency, SetAgent, SetStatus
from .notifications import Notifier
from .stats import LeadStats, compute_stats
from .workspace import LeadWorkspace

__all__ = [
    "ActingUser",
    "ApiError",
    "AuthenticationError",
    "AutoAssign",
    "ClientSettings",
    "ConfigurationError",
    "DeleteLeads",
    "FileValidationError",
    "ImportRow",
    "Lead",
    "LeadboardError",
    "LeadNotLoadedError",
    "LeadsApiClient",
    "LeadStats",
    "LeadWorkspace",
    "NetworkError",
    "NotFoundError",
    "Notifier",
    "PermissionDeniedError",
    "QueryDescriptor",
    "Reference",
    "SetAgency",
    "SetAgent",
    "SetStatus",
    "ValidationError",
    "build_workspace",
    "compute_stats",
    "load_configuration",
    "load_workspace",
    "ingestion",
    "mutations",
    "orchestrator",
]
