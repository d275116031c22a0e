"""The lead pipeline workspace: one operator session over the remote store.

:class:`LeadWorkspace` ties the projections, fetch orchestration, debounced
scheduling, optimistic edits, bulk operations, imports and stats together.
Network work runs on a thread pool and is handed back as
:class:`concurrent.futures.Future` objects; optimistic writes happen in the
calling thread before the request is dispatched.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from .api import LeadsApiClient
from .config import ClientSettings
from .errors import ApiError, LeadNotLoadedError, ValidationError
from .ingestion.exporters import export_leads
from .ingestion.pipeline import EMPTY_BATCH_MESSAGE, ImportPipeline, ImportPreview, ImportReport
from .models import STATUSES, VIEW_BOARD, ActingUser, Lead, QueryDescriptor, Reference
from .mutations.bulk import BulkOperation, BulkOperationCoordinator, BulkSummary
from .mutations.optimistic import MutationOutcome, MutationState, OptimisticMutationEngine
from .notifications import Notifier
from .orchestrator.fetch import FetchOrchestrator, FilterOptions, campaign_names
from .orchestrator.scheduler import QueryScheduler
from .permissions import PermissionResolver, RolePermissions
from .state import BOARD, LIST, ProjectionStore
from .stats import LeadStats, compute_stats

LOGGER = logging.getLogger(__name__)

_FIELD_MESSAGES: Dict[str, Tuple[str, str]] = {
    "status": ("Lead status updated successfully", "Failed to update lead status"),
    "priority": ("Lead priority updated successfully", "Failed to update lead priority"),
    "assignedAgent": ("Lead assigned successfully", "Failed to assign lead"),
    "agency": ("Lead agency updated successfully", "Failed to update lead agency"),
}
EMPTY_SELECTION_MESSAGE = "Please select leads first"


class Selection:
    """Thread-safe set of selected lead ids."""

    def __init__(self) -> None:
        self._ids: Set[str] = set()
        self._lock = threading.Lock()

    def __contains__(self, lead_id: object) -> bool:
        with self._lock:
            return lead_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    @property
    def ids(self) -> List[str]:
        with self._lock:
            return sorted(self._ids)

    def add(self, lead_id: str) -> None:
        with self._lock:
            self._ids.add(lead_id)

    def discard(self, lead_id: str) -> None:
        with self._lock:
            self._ids.discard(lead_id)

    def toggle(self, lead_id: str) -> bool:
        """Flip *lead_id*; return whether it is selected afterwards."""

        with self._lock:
            if lead_id in self._ids:
                self._ids.discard(lead_id)
                return False
            self._ids.add(lead_id)
            return True

    def replace(self, lead_ids: Iterable[str]) -> None:
        with self._lock:
            self._ids = set(lead_ids)

    def clear(self) -> None:
        with self._lock:
            self._ids.clear()

    def prune(self, visible_ids: Iterable[str]) -> List[str]:
        """Drop ids that are no longer materialised; return the dropped ones."""

        visible = set(visible_ids)
        with self._lock:
            dropped = sorted(self._ids - visible)
            self._ids &= visible
        return dropped


class LeadWorkspace:
    def __init__(
        self,
        api: LeadsApiClient,
        user: ActingUser,
        settings: Optional[ClientSettings] = None,
        notifier: Optional[Notifier] = None,
        permissions: Optional[PermissionResolver] = None,
        *,
        executor: Optional[ThreadPoolExecutor] = None,
        timer_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.user = user
        self.notifier = notifier or Notifier()
        self.permissions = permissions or PermissionResolver(
            user, RolePermissions.from_mapping(self.settings.permissions)
        )
        self._api = api
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="leadboard")
        self._lock = threading.RLock()
        self._query = QueryDescriptor(limit=self.settings.list_page_size)
        self._fetch_future: Optional[Future] = None
        self._filter_options = FilterOptions()
        self._preview: Optional[ImportPreview] = None
        self._stats = LeadStats()
        self._stats_version = -1
        self._closed = False

        self.store = ProjectionStore(list_limit=self.settings.list_page_size)
        self.selection = Selection()
        self.orchestrator = FetchOrchestrator(
            api,
            self.store,
            self.permissions,
            self.notifier,
            board_page_size=self.settings.board_page_size,
            board_cap=self.settings.board_cap,
        )
        scheduler_kwargs: Dict[str, Any] = {"delay_seconds": self.settings.debounce_seconds}
        if timer_factory is not None:
            scheduler_kwargs["timer_factory"] = timer_factory
        self.scheduler = QueryScheduler(self._dispatch_fetch, **scheduler_kwargs)
        self.engine = OptimisticMutationEngine(api, self.store, resolve_reference=self._resolve_reference)
        self.coordinator = BulkOperationCoordinator(api, max_workers=self.settings.bulk_max_workers)
        self.importer = ImportPipeline(api, max_bytes=self.settings.max_upload_bytes)

        self.store.subscribe(self._on_projection_change)

    # --- Query state ---

    @property
    def query(self) -> QueryDescriptor:
        with self._lock:
            return self._query

    @property
    def loading(self) -> bool:
        return self.orchestrator.loading

    @property
    def pending_fetch(self) -> Optional[Future]:
        with self._lock:
            return self._fetch_future

    def set_filters(self, **changes: Any) -> bool:
        return self._update_query(lambda query: query.with_filters(**changes))

    def clear_filters(self) -> bool:
        scheduled = self._update_query(lambda query: query.cleared())
        self.notifier.success("All filters cleared")
        return scheduled

    def set_page(self, page: int) -> bool:
        return self._update_query(lambda query: replace(query, page=page))

    def set_limit(self, limit: int) -> bool:
        return self._update_query(lambda query: replace(query, limit=limit, page=1))

    def set_view_mode(self, view_mode: str) -> bool:
        scheduled = self._update_query(lambda query: replace(query, view_mode=view_mode))
        self._refresh_derived()
        return scheduled

    def refresh(self) -> Future:
        """Fetch the current query now, bypassing the debounce."""

        query = self.query
        self.scheduler.cancel()
        self.scheduler.mark_fetched(query)
        return self._submit_fetch(query)

    def _update_query(self, change: Callable[[QueryDescriptor], QueryDescriptor]) -> bool:
        with self._lock:
            self._query = change(self._query)
            query = self._query
        return self.scheduler.submit(query)

    def _dispatch_fetch(self, query: QueryDescriptor) -> None:
        self._submit_fetch(query)

    def _submit_fetch(self, query: QueryDescriptor) -> Future:
        with self._lock:
            if self._closed:
                LOGGER.info("Workspace is closed; skipping fetch")
                return _resolved(False)
            future = self._executor.submit(self.orchestrator.load, query)
            self._fetch_future = future
        return future

    # --- Projections and derived data ---

    @property
    def active_slot(self) -> str:
        return BOARD if self.query.view_mode == VIEW_BOARD else LIST

    def leads(self) -> Tuple[Lead, ...]:
        return self.store.leads(self.active_slot)

    @property
    def stats(self) -> LeadStats:
        with self._lock:
            return self._stats

    def board_columns(self) -> Dict[str, List[Lead]]:
        """Board leads grouped by kanban column, in pipeline order."""

        columns: Dict[str, List[Lead]] = {status: [] for status in STATUSES}
        for lead in self.store.leads(BOARD):
            columns[lead.board_column()].append(lead)
        return columns

    def campaigns(self) -> List[str]:
        return campaign_names(self.leads())

    @property
    def filter_options(self) -> FilterOptions:
        with self._lock:
            return self._filter_options

    def load_filter_options(self) -> Future:
        def _load() -> FilterOptions:
            options = self.orchestrator.load_filter_options(agency=self.query.agency or None)
            with self._lock:
                self._filter_options = options
            return options

        return self._executor.submit(_load)

    def _on_projection_change(self, slots: Tuple[str, ...]) -> None:
        if self.active_slot in slots:
            self._refresh_derived()

    def _refresh_derived(self) -> None:
        """Recompute stats and prune the selection for the active projection."""

        active = self.active_slot
        version, leads = self.store.snapshot(active)
        stats = compute_stats(leads)
        with self._lock:
            # Listeners run on several threads; an older snapshot must not replace newer stats.
            if active != self.active_slot or version < self._stats_version:
                LOGGER.debug("Discarding stats for superseded %s version %s", active, version)
                return
            self._stats = stats
            self._stats_version = version
        dropped = self.selection.prune(lead.id for lead in leads)
        if dropped:
            LOGGER.debug("Deselected %s lead(s) no longer in view", len(dropped))

    def _resolve_reference(self, wire_field: str, ref_id: str) -> Optional[Reference]:
        options = self.filter_options
        candidates = options.agents if wire_field == "assignedAgent" else options.agencies
        for ref in candidates:
            if ref.id == ref_id:
                return ref
        return None

    # --- Single-record edits ---

    def change_field(self, lead_id: str, wire_field: str, value: Any) -> Future:
        """Optimistically set *wire_field* and confirm it in the background."""

        lead = self._require_loaded(lead_id)
        outcome = self._guarded_begin(lead, wire_field, lambda: self.engine.begin(lead_id, wire_field, value))
        return self._dispatch_mutation(outcome)

    def move_card(self, lead_id: str, column: str) -> Future:
        lead = self._require_loaded(lead_id)
        outcome = self._guarded_begin(lead, "status", lambda: self.engine.begin_move(lead_id, column))
        return self._dispatch_mutation(outcome)

    def _guarded_begin(self, lead: Lead, wire_field: str, begin: Callable[[], MutationOutcome]) -> MutationOutcome:
        if not self.permissions.can(lead, "edit"):
            self.notifier.error("You do not have permission to edit this lead")
            return MutationOutcome(lead.id, wire_field, MutationState.DENIED, permission_denied=True)
        return begin()

    def _dispatch_mutation(self, outcome: MutationOutcome) -> Future:
        if outcome.finished:
            if outcome.state is MutationState.BUSY:
                self.notifier.info("A previous change to this lead is still being saved")
            return _resolved(outcome)

        def _complete() -> MutationOutcome:
            try:
                finished = self.engine.complete(outcome)
            except Exception:
                self.notifier.error("Unexpected error while saving the lead")
                raise
            self._report_mutation(finished)
            return finished

        return self._executor.submit(_complete)

    def _report_mutation(self, outcome: MutationOutcome) -> None:
        success, failure = _FIELD_MESSAGES.get(outcome.field, ("Lead updated successfully", "Failed to update lead"))
        if outcome.state is MutationState.CONFIRMED:
            self.notifier.success(success)
        elif outcome.state is MutationState.ROLLED_BACK:
            self.notifier.error(outcome.error if outcome.permission_denied else failure)

    def _require_loaded(self, lead_id: str) -> Lead:
        lead = self.store.get(lead_id)
        if lead is None:
            raise LeadNotLoadedError(lead_id)
        return lead

    def delete_lead(self, lead_id: str) -> Future:
        lead = self._require_loaded(lead_id)
        if not self.permissions.can(lead, "delete"):
            self.notifier.error("You do not have permission to delete this lead")
            return _resolved(False)

        def _delete() -> bool:
            try:
                self._api.delete_lead(lead_id)
            except ApiError as exc:
                LOGGER.error("Error deleting lead %s: %s", lead_id, exc)
                self.notifier.error(exc.user_message if exc.status_code == 403 else "Failed to delete lead")
                return False
            self.notifier.success("Lead deleted successfully")
            self.selection.discard(lead_id)
            self.refresh()
            return True

        return self._executor.submit(_delete)

    def rescore(self, lead_id: str) -> Future:
        def _rescore() -> bool:
            try:
                self._api.rescore(lead_id)
            except ApiError as exc:
                LOGGER.error("Error re-scoring lead %s: %s", lead_id, exc)
                self.notifier.error("Failed to re-score lead")
                return False
            self.notifier.success("Lead re-scored successfully")
            self.refresh()
            return True

        return self._executor.submit(_rescore)

    # --- Selection and bulk operations ---

    def select(self, lead_id: str) -> bool:
        """Select *lead_id* if the active projection holds it."""

        if not self._in_view(lead_id):
            LOGGER.debug("Refusing to select lead %s outside the %s view", lead_id, self.active_slot)
            return False
        self.selection.add(lead_id)
        return True

    def deselect(self, lead_id: str) -> None:
        self.selection.discard(lead_id)

    def toggle(self, lead_id: str) -> bool:
        if lead_id not in self.selection and not self._in_view(lead_id):
            LOGGER.debug("Refusing to select lead %s outside the %s view", lead_id, self.active_slot)
            return False
        return self.selection.toggle(lead_id)

    def _in_view(self, lead_id: str) -> bool:
        return lead_id in self.store.ids(self.active_slot)

    def select_all(self) -> None:
        self.selection.replace(lead.id for lead in self.leads())

    def clear_selection(self) -> None:
        self.selection.clear()

    def bulk_apply(self, operation: BulkOperation) -> Future:
        """Apply *operation* to every selected lead, then refetch."""

        self.selection.prune(self.store.ids(self.active_slot))
        lead_ids = self.selection.ids
        if not lead_ids:
            self.notifier.error(EMPTY_SELECTION_MESSAGE)
            return _resolved(BulkSummary(total=0, verb=operation.verb))

        def _run() -> BulkSummary:
            summary = self.coordinator.apply(lead_ids, operation)
            if summary.all_succeeded:
                self.notifier.success(summary.message)
            elif summary.success_count:
                self.notifier.warning(summary.message)
            else:
                self.notifier.error(summary.message)
            self.selection.clear()
            self.refresh()
            return summary

        return self._executor.submit(_run)

    # --- Import / export ---

    @property
    def import_preview(self) -> Optional[ImportPreview]:
        with self._lock:
            return self._preview

    def preview_import(self, path: Union[str, Path]) -> Optional[ImportPreview]:
        try:
            preview = self.importer.load(path)
        except ValidationError as exc:
            self.notifier.error(str(exc))
            return None
        with self._lock:
            self._preview = preview
        self.notifier.success(preview.message)
        return preview

    def discard_import(self) -> None:
        with self._lock:
            self._preview = None

    def submit_import(self) -> Future:
        preview = self.import_preview
        if preview is None or not preview.rows:
            self.notifier.error(EMPTY_BATCH_MESSAGE)
            return _resolved(None)

        def _submit() -> Optional[ImportReport]:
            try:
                report = self.importer.submit(preview.rows)
            except ApiError as exc:
                LOGGER.error("Error uploading leads: %s", exc)
                self.notifier.error(exc.message if exc.message != exc.default_message else "Failed to upload leads")
                return None
            self.discard_import()
            if report.has_errors:
                self.notifier.error(report.message)
            else:
                self.notifier.success(report.message)
            self.refresh()
            return report

        return self._executor.submit(_submit)

    def export(self, path: Union[str, Path]) -> Path:
        output = export_leads(self.leads(), path)
        self.notifier.success("Leads exported successfully")
        return output

    # --- Lifecycle ---

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.scheduler.cancel()
        self._executor.shutdown(wait=True)
        close = getattr(self._api, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "LeadWorkspace":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()


def _resolved(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


__all__ = ["LeadWorkspace", "Selection"]
