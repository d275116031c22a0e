"""Fetch orchestrator that fills the list and board projections."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

from ..api import LeadPage
from ..errors import ApiError, AuthenticationError
from ..models import VIEW_BOARD, Lead, Pagination, QueryDescriptor, Reference
from ..notifications import Notifier
from ..permissions import PermissionResolver
from ..state import BOARD, LIST, BoardMeta, ProjectionStore

LOGGER = logging.getLogger(__name__)

BOARD_PAGE_SIZE = 250
BOARD_CAP = 500


class LeadSource(Protocol):
    """The subset of :class:`~leadboard.api.LeadsApiClient` used for reads."""

    def list_leads(self, params) -> LeadPage:  # pragma: no cover - runtime protocol
        ...

    def list_agents(self, *, agency: Optional[str] = None, limit: int = 1000) -> List[Reference]:  # pragma: no cover
        ...

    def list_agencies(self, *, limit: int = 1000) -> List[Reference]:  # pragma: no cover
        ...

    def list_properties(self, *, limit: int = 100) -> List[Reference]:  # pragma: no cover
        ...


@dataclass
class ListResult:
    leads: List[Lead]
    pagination: Pagination


@dataclass
class BoardResult:
    leads: List[Lead]
    total: int
    capped: bool


@dataclass
class FilterOptions:
    agents: List[Reference] = field(default_factory=list)
    agencies: List[Reference] = field(default_factory=list)
    properties: List[Reference] = field(default_factory=list)


class FetchOrchestrator:
    """Retrieves leads for the list page and the bounded board aggregate.

    Each slot hands out increasing tickets; a result is stored only when its
    ticket is newer than the last one applied to that slot, so a slow,
    superseded response can never overwrite a fresher one.
    """

    def __init__(
        self,
        api: LeadSource,
        store: ProjectionStore,
        permissions: PermissionResolver,
        notifier: Notifier,
        *,
        board_page_size: int = BOARD_PAGE_SIZE,
        board_cap: int = BOARD_CAP,
    ) -> None:
        self._api = api
        self._store = store
        self._permissions = permissions
        self._notifier = notifier
        self._board_page_size = board_page_size
        self._board_cap = board_cap
        self._lock = threading.Lock()
        self._issued: Dict[str, int] = {LIST: 0, BOARD: 0}
        self._applied: Dict[str, int] = {LIST: 0, BOARD: 0}
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    # --- Raw fetches ---

    def fetch_list(self, query: QueryDescriptor) -> ListResult:
        page = self._api.list_leads(query.to_params())
        pagination = Pagination.from_api(page.pagination, page=query.page, limit=query.limit, fetched=len(page.leads))
        return ListResult(leads=self._visible(page.leads), pagination=pagination)

    def fetch_board(self, query: QueryDescriptor) -> BoardResult:
        first = self._api.list_leads(query.to_params(page=1, limit=self._board_page_size))
        fetched = list(first.leads)
        total = first.total
        if total > len(fetched) and len(fetched) < self._board_cap:
            second = self._api.list_leads(query.to_params(page=2, limit=self._board_page_size))
            fetched.extend(second.leads)
        fetched = fetched[: self._board_cap]
        capped = total > self._board_cap
        if capped:
            LOGGER.info("Board limited to %s of %s leads", len(fetched), total)
        return BoardResult(leads=self._visible(fetched), total=total, capped=capped)

    def _visible(self, leads: List[Lead]) -> List[Lead]:
        visible = [lead for lead in leads if self._permissions.can(lead, "view")]
        dropped = len(leads) - len(visible)
        if dropped:
            LOGGER.debug("Dropped %s lead(s) the current user may not view", dropped)
        return visible

    # --- Projection loading ---

    def load(self, query: QueryDescriptor) -> bool:
        """Fetch *query* into the store; return ``False`` if the primary fetch failed."""

        list_ticket = self._issue(LIST)
        board_ticket = self._issue(BOARD) if query.view_mode == VIEW_BOARD else None
        self._enter()
        try:
            try:
                result = self.fetch_list(query)
            except ApiError as exc:
                LOGGER.error("Error fetching leads: %s", exc)
                if self._claim(LIST, list_ticket):
                    self._notifier.error(_fetch_error_message(exc, "Failed to load leads"))
                    self._store.reset(LIST)
                    if board_ticket is not None and self._claim(BOARD, board_ticket):
                        self._store.reset(BOARD)
                return False

            if self._claim(LIST, list_ticket):
                self._store.replace(LIST, result.leads, pagination=result.pagination)
            else:
                LOGGER.debug("Discarding superseded list result (ticket %s)", list_ticket)

            if board_ticket is not None:
                self._load_board(query, board_ticket)
            return True
        finally:
            self._leave()

    def _load_board(self, query: QueryDescriptor, ticket: int) -> None:
        try:
            board = self.fetch_board(query)
        except ApiError as exc:
            LOGGER.error("Error fetching leads for the board: %s", exc)
            if self._claim(BOARD, ticket):
                self._notifier.error(_fetch_error_message(exc, "Failed to load the board"))
                self._store.reset(BOARD)
            return

        if self._claim(BOARD, ticket):
            self._store.replace(BOARD, board.leads, board=BoardMeta(total=board.total, capped=board.capped))
        else:
            LOGGER.debug("Discarding superseded board result (ticket %s)", ticket)

    def load_filter_options(self, *, agency: Optional[str] = None) -> FilterOptions:
        """Fetch filter metadata; each list degrades to empty on failure."""

        options = FilterOptions()
        for attr, call, label in (
            ("agents", lambda: self._api.list_agents(agency=agency or None), "agents"),
            ("agencies", self._api.list_agencies, "agencies"),
            ("properties", self._api.list_properties, "properties"),
        ):
            try:
                setattr(options, attr, list(call()))
            except ApiError as exc:
                LOGGER.warning("Error fetching %s: %s", label, exc)
        return options

    # --- Ticket bookkeeping ---

    def _issue(self, slot: str) -> int:
        with self._lock:
            self._issued[slot] += 1
            return self._issued[slot]

    def _claim(self, slot: str, ticket: int) -> bool:
        with self._lock:
            if ticket <= self._applied[slot]:
                return False
            self._applied[slot] = ticket
            return True

    def _enter(self) -> None:
        with self._lock:
            self._in_flight += 1

    def _leave(self) -> None:
        with self._lock:
            self._in_flight -= 1


def _fetch_error_message(exc: ApiError, fallback: str) -> str:
    if isinstance(exc, AuthenticationError):
        return exc.user_message
    return exc.message if exc.message and exc.message != exc.default_message else fallback


def campaign_names(leads: Iterable[Lead]) -> List[str]:
    return sorted({lead.campaign_name.strip() for lead in leads if lead.campaign_name and lead.campaign_name.strip()})


__all__ = [
    "BOARD_PAGE_SIZE",
    "BOARD_CAP",
    "FetchOrchestrator",
    "ListResult",
    "BoardResult",
    "FilterOptions",
    "campaign_names",
]
