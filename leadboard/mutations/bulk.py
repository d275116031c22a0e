"""Concurrent multi-record operations with partial-failure reporting."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from ..errors import ApiError, NotFoundError
from ..models import Lead, canonical_status

LOGGER = logging.getLogger(__name__)

AUTO_ASSIGN_METHODS = ("round_robin", "workload_based", "performance_based", "location_based")

NO_AGENCY = "Lead does not have an agency assigned"
LEAD_NOT_FOUND = "Lead not found"


class BulkTarget(Protocol):
    """The subset of :class:`~leadboard.api.LeadsApiClient` used by bulk operations."""

    def get_lead(self, lead_id: str) -> Optional[Lead]:  # pragma: no cover - runtime protocol
        ...

    def update_lead(self, lead_id: str, changes) -> Optional[Lead]:  # pragma: no cover
        ...

    def assign_agent(self, lead_id: str, agent_id: Optional[str]) -> Optional[Lead]:  # pragma: no cover
        ...

    def auto_assign(self, lead_id: str, method: str, agency_id: str) -> Dict[str, Any]:  # pragma: no cover
        ...

    def delete_lead(self, lead_id: str) -> None:  # pragma: no cover
        ...


# --- Operations ---

@dataclass(frozen=True)
class SetStatus:
    status: str
    verb = "updated"

    def __post_init__(self) -> None:
        if canonical_status(self.status) is None:
            raise ValueError(f"Unknown status '{self.status}'")

    def apply(self, api: BulkTarget, lead_id: str) -> None:
        api.update_lead(lead_id, {"status": canonical_status(self.status)})


@dataclass(frozen=True)
class SetAgent:
    agent_id: Optional[str]
    verb = "assigned"

    def apply(self, api: BulkTarget, lead_id: str) -> None:
        api.assign_agent(lead_id, self.agent_id or None)


@dataclass(frozen=True)
class SetAgency:
    agency_id: Optional[str]
    verb = "updated"

    def apply(self, api: BulkTarget, lead_id: str) -> None:
        api.update_lead(lead_id, {"agency": self.agency_id or None})


@dataclass(frozen=True)
class DeleteLeads:
    verb = "deleted"

    def apply(self, api: BulkTarget, lead_id: str) -> None:
        api.delete_lead(lead_id)


@dataclass(frozen=True)
class AutoAssign:
    """Ask the server to pick an agent within each lead's own agency."""

    method: str = "round_robin"
    verb = "auto-assigned"

    def __post_init__(self) -> None:
        if self.method not in AUTO_ASSIGN_METHODS:
            raise ValueError(f"Unknown assignment method '{self.method}'")

    def apply(self, api: BulkTarget, lead_id: str) -> None:
        try:
            lead = api.get_lead(lead_id)
        except NotFoundError:
            lead = None
        if lead is None:
            raise _ItemFailure(LEAD_NOT_FOUND)
        if lead.agency is None:
            raise _ItemFailure(NO_AGENCY)
        api.auto_assign(lead_id, self.method, lead.agency.id)


BulkOperation = Union[SetStatus, SetAgent, SetAgency, DeleteLeads, AutoAssign]


class _ItemFailure(Exception):
    """A per-lead precondition failure detected before any write."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


# --- Results ---

@dataclass(frozen=True)
class BulkFailure:
    lead_id: str
    reason: str


@dataclass
class BulkSummary:
    total: int
    success_count: int = 0
    failures: List[BulkFailure] = field(default_factory=list)
    verb: str = "updated"

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    def reasons(self) -> List[str]:
        """Distinct failure reasons in the order they were first seen."""

        return list(dict.fromkeys(failure.reason for failure in self.failures))

    @property
    def message(self) -> str:
        if self.all_succeeded:
            return f"{self.success_count} lead(s) {self.verb} successfully"
        text = f"{self.success_count} of {self.total} lead(s) {self.verb}. {self.failed_count} failed."
        reasons = self.reasons()
        if len(reasons) == 1:
            return f"{text} Error: {reasons[0]}"
        return f"{text} Errors: {'; '.join(reasons)}"


# --- Coordinator ---

class BulkOperationCoordinator:
    """Fans one operation out over a selection of leads.

    Every request is dispatched at once on a thread pool; a failing lead never
    aborts the others. Local projections are not touched here, callers
    refetch once the summary is in.
    """

    def __init__(self, api: BulkTarget, *, max_workers: Optional[int] = None) -> None:
        self._api = api
        self._max_workers = max_workers

    def apply(self, lead_ids: Iterable[str], operation: BulkOperation) -> BulkSummary:
        ids = list(dict.fromkeys(lead_ids))
        summary = BulkSummary(total=len(ids), verb=operation.verb)
        if not ids:
            return summary

        workers = len(ids) if self._max_workers is None else max(1, min(self._max_workers, len(ids)))
        LOGGER.info("Applying %s to %s lead(s)", type(operation).__name__, len(ids))
        failures: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="leadboard-bulk") as executor:
            futures = {executor.submit(self._apply_one, operation, lead_id): lead_id for lead_id in ids}
            for future in as_completed(futures):
                reason = future.result()
                if reason is None:
                    summary.success_count += 1
                else:
                    failures[futures[future]] = reason

        # Report failures in selection order, not completion order.
        summary.failures = [BulkFailure(lead_id, failures[lead_id]) for lead_id in ids if lead_id in failures]
        if summary.failures:
            LOGGER.warning("%s", summary.message)
        return summary

    def _apply_one(self, operation: BulkOperation, lead_id: str) -> Optional[str]:
        try:
            operation.apply(self._api, lead_id)
        except _ItemFailure as exc:
            LOGGER.debug("Skipping lead %s: %s", lead_id, exc.reason)
            return exc.reason
        except ApiError as exc:
            LOGGER.debug("Bulk request for lead %s failed: %s", lead_id, exc)
            return exc.user_message
        except Exception as exc:  # pragma: no cover
            LOGGER.exception("Unexpected failure applying %s to lead %s", type(operation).__name__, lead_id)
            return str(exc) or "Unexpected error"
        return None


__all__ = [
    "AUTO_ASSIGN_METHODS",
    "AutoAssign",
    "BulkFailure",
    "BulkOperation",
    "BulkOperationCoordinator",
    "BulkSummary",
    "DeleteLeads",
    "SetAgency",
    "SetAgent",
    "SetStatus",
]
