"""Single-record optimistic edits and multi-record bulk operations."""

from .bulk import (
    AUTO_ASSIGN_METHODS,
    AutoAssign,
    BulkFailure,
    BulkOperationCoordinator,
    BulkSummary,
    DeleteLeads,
    SetAgency,
    SetAgent,
    SetStatus,
)
from .optimistic import MutationOutcome, MutationState, OptimisticMutationEngine

__all__ = [
    "AUTO_ASSIGN_METHODS",
    "AutoAssign",
    "BulkFailure",
    "BulkOperationCoordinator",
    "BulkSummary",
    "DeleteLeads",
    "MutationOutcome",
    "MutationState",
    "OptimisticMutationEngine",
    "SetAgency",
    "SetAgent",
    "SetStatus",
]
