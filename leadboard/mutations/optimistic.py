"""Optimistic single-record edits with snapshot and rollback."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from ..errors import ApiError, LeadNotLoadedError, PermissionDeniedError, ValidationError
from ..models import (
    MUTABLE_FIELDS,
    PRIORITIES,
    REFERENCE_FIELDS,
    STATUSES,
    Lead,
    Reference,
    canonical_status,
    priority_key,
    reference_id,
    status_key,
)
from ..state import ProjectionStore

LOGGER = logging.getLogger(__name__)

ReferenceResolver = Callable[[str, str], Optional[Reference]]


class LeadWriter(Protocol):
    """The subset of :class:`~leadboard.api.LeadsApiClient` used for inline edits."""

    def update_lead(self, lead_id: str, changes) -> Optional[Lead]:  # pragma: no cover - runtime protocol
        ...

    def assign_agent(self, lead_id: str, agent_id: Optional[str]) -> Optional[Lead]:  # pragma: no cover
        ...


class MutationState(str, Enum):
    SKIPPED = "skipped"
    BUSY = "busy"
    DENIED = "denied"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class MutationOutcome:
    lead_id: str
    field: str
    state: MutationState
    value: Any = None
    error: Optional[str] = None
    permission_denied: bool = False

    @property
    def finished(self) -> bool:
        return self.state is not MutationState.OPTIMISTIC

    @property
    def ok(self) -> bool:
        return self.state in (MutationState.SKIPPED, MutationState.CONFIRMED)


@dataclass
class _Pending:
    value: Any
    snapshot: Dict[str, Lead] = field(default_factory=dict)


def normalize_value(wire_field: str, value: Any) -> Optional[str]:
    """Comparable form of a field value; empty values normalise to ``None``."""

    if wire_field == "status":
        return status_key(value) or None
    if wire_field == "priority":
        return priority_key(value)
    if wire_field in REFERENCE_FIELDS:
        return reference_id(value)
    raise ValueError(f"Field '{wire_field}' cannot be changed inline")


def validate_value(wire_field: str, value: Any) -> None:
    """Reject status and priority values outside their vocabularies."""

    if wire_field == "status" and canonical_status(value) is None:
        raise ValidationError(f"Unknown status '{value}'")
    if wire_field == "priority" and priority_key(value) not in PRIORITIES:
        raise ValidationError(f"Unknown priority '{value}'")


def _outbound_value(wire_field: str, value: Any) -> Optional[str]:
    if wire_field == "status":
        return canonical_status(value)
    return normalize_value(wire_field, value)


class OptimisticMutationEngine:
    """Applies a field edit locally, sends it, then confirms or rolls back.

    :meth:`begin` runs in the caller and updates every projection holding the
    lead through :meth:`ProjectionStore.write`. :meth:`complete` performs the
    network call and may run on a worker thread. At most one mutation per
    ``(lead, field)`` pair is in flight; a second one is reported as busy
    instead of replacing the snapshot the first one will roll back to.
    """

    def __init__(
        self,
        api: LeadWriter,
        store: ProjectionStore,
        *,
        resolve_reference: Optional[ReferenceResolver] = None,
    ) -> None:
        self._api = api
        self._store = store
        self._resolve_reference = resolve_reference
        self._lock = threading.Lock()
        self._in_flight: Dict[Tuple[str, str], _Pending] = {}

    def in_flight(self, lead_id: str, wire_field: str) -> bool:
        with self._lock:
            return (lead_id, wire_field) in self._in_flight

    def mutate(self, lead_id: str, wire_field: str, value: Any) -> MutationOutcome:
        outcome = self.begin(lead_id, wire_field, value)
        if outcome.finished:
            return outcome
        return self.complete(outcome)

    def move_card(self, lead_id: str, column: str) -> MutationOutcome:
        outcome = self.begin_move(lead_id, column)
        if outcome.finished:
            return outcome
        return self.complete(outcome)

    def begin_move(self, lead_id: str, column: str) -> MutationOutcome:
        """Start a drag-and-drop move of *lead_id* into board *column*."""

        if column not in STATUSES:
            raise ValueError(f"Unknown board column '{column}'")
        lead = self._require(lead_id)
        if lead.board_column() == column:
            LOGGER.debug("Lead %s dropped on its own column %s", lead_id, column)
            return MutationOutcome(lead_id, "status", MutationState.SKIPPED, value=column)
        return self.begin(lead_id, "status", column)

    def begin(self, lead_id: str, wire_field: str, value: Any) -> MutationOutcome:
        if wire_field not in MUTABLE_FIELDS:
            raise ValueError(f"Field '{wire_field}' cannot be changed inline")
        lead = self._require(lead_id)
        validate_value(wire_field, value)

        if normalize_value(wire_field, lead.value_of(wire_field)) == normalize_value(wire_field, value):
            return MutationOutcome(lead_id, wire_field, MutationState.SKIPPED, value=value)

        outbound = _outbound_value(wire_field, value)
        key = (lead_id, wire_field)
        with self._lock:
            if key in self._in_flight:
                LOGGER.info("Ignoring %s change for lead %s while a previous one is pending", wire_field, lead_id)
                return MutationOutcome(lead_id, wire_field, MutationState.BUSY, value=value)
            pending = _Pending(value=outbound)
            self._in_flight[key] = pending

        local_value = self._local_value(wire_field, outbound, value)
        pending.snapshot = self._store.write(lead_id, lambda current: current.with_value(wire_field, local_value))
        LOGGER.debug("Optimistically set %s=%r on lead %s", wire_field, outbound, lead_id)
        return MutationOutcome(lead_id, wire_field, MutationState.OPTIMISTIC, value=outbound)

    def complete(self, outcome: MutationOutcome) -> MutationOutcome:
        """Send the change begun by :meth:`begin` and reconcile the result."""

        key = (outcome.lead_id, outcome.field)
        with self._lock:
            pending = self._in_flight.get(key)
        if pending is None:
            raise RuntimeError(f"No pending {outcome.field} change for lead {outcome.lead_id}")

        try:
            server_lead = self._send(outcome.lead_id, outcome.field, pending.value)
        except ApiError as exc:
            LOGGER.warning("Reverting %s change on lead %s: %s", outcome.field, outcome.lead_id, exc)
            self._store.restore(pending.snapshot)
            return MutationOutcome(
                outcome.lead_id,
                outcome.field,
                MutationState.ROLLED_BACK,
                value=pending.value,
                error=exc.user_message,
                permission_denied=isinstance(exc, PermissionDeniedError),
            )
        except Exception:
            LOGGER.exception("Unexpected failure updating lead %s", outcome.lead_id)
            self._store.restore(pending.snapshot)
            raise
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

        if server_lead is not None:
            self._reconcile(outcome.field, pending.value, server_lead)
        return MutationOutcome(outcome.lead_id, outcome.field, MutationState.CONFIRMED, value=pending.value)

    def _send(self, lead_id: str, wire_field: str, value: Optional[str]) -> Optional[Lead]:
        if wire_field == "assignedAgent":
            return self._api.assign_agent(lead_id, value)
        return self._api.update_lead(lead_id, {wire_field: value})

    def _reconcile(self, wire_field: str, sent: Optional[str], server_lead: Lead) -> None:
        server_value = server_lead.value_of(wire_field)
        if normalize_value(wire_field, server_value) == normalize_value(wire_field, sent):
            return
        LOGGER.info("Server stored %s=%r for lead %s; updating local copies", wire_field, server_value, server_lead.id)
        self._store.write(server_lead.id, lambda current: current.with_value(wire_field, server_value))

    def _local_value(self, wire_field: str, outbound: Optional[str], raw: Any) -> Any:
        if wire_field not in REFERENCE_FIELDS or outbound is None:
            return outbound
        if isinstance(raw, (Reference, dict)):
            return raw
        if self._resolve_reference is not None:
            resolved = self._resolve_reference(wire_field, outbound)
            if resolved is not None:
                return resolved
        return outbound

    def _require(self, lead_id: str) -> Lead:
        lead = self._store.get(lead_id)
        if lead is None:
            raise LeadNotLoadedError(lead_id)
        return lead


__all__ = ["MutationState", "MutationOutcome", "OptimisticMutationEngine", "normalize_value", "validate_value"]
