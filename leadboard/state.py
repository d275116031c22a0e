"""In-memory projections (list page and board aggregate) of the lead set.

Both projections are independent containers that may hold different copies of
the same lead. Every write that targets a single record goes through
:meth:`ProjectionStore.write`, which updates all copies at once, so a new
mutation path cannot forget one of the views.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import Lead, Pagination

LOGGER = logging.getLogger(__name__)

LIST = "list"
BOARD = "board"
SLOTS = (LIST, BOARD)

ChangeListener = Callable[[Tuple[str, ...]], None]


@dataclass(frozen=True)
class BoardMeta:
    total: int = 0
    capped: bool = False


class ProjectionStore:
    """Holds the list and board copies and applies fan-out writes to both."""

    def __init__(self, *, list_limit: int = 10) -> None:
        self._lock = threading.RLock()
        self._leads: Dict[str, Tuple[Lead, ...]] = {slot: () for slot in SLOTS}
        self._pagination = Pagination(limit=list_limit)
        self._board = BoardMeta()
        self._listeners: List[ChangeListener] = []
        self._version = 0

    # --- Reads ---

    def leads(self, slot: str) -> Tuple[Lead, ...]:
        with self._lock:
            return self._leads[_check_slot(slot)]

    @property
    def version(self) -> int:
        """Counter bumped by every change to either slot."""

        with self._lock:
            return self._version

    def snapshot(self, slot: str) -> Tuple[int, Tuple[Lead, ...]]:
        """The leads in *slot* together with the version they belong to."""

        with self._lock:
            return self._version, self._leads[_check_slot(slot)]

    @property
    def pagination(self) -> Pagination:
        with self._lock:
            return self._pagination

    @property
    def board(self) -> BoardMeta:
        with self._lock:
            return self._board

    def locate(self, lead_id: str) -> Dict[str, Lead]:
        """Every copy of *lead_id*, keyed by slot."""

        with self._lock:
            found: Dict[str, Lead] = {}
            for slot in SLOTS:
                for lead in self._leads[slot]:
                    if lead.id == lead_id:
                        found[slot] = lead
                        break
            return found

    def get(self, lead_id: str) -> Optional[Lead]:
        copies = self.locate(lead_id)
        return copies.get(LIST) or copies.get(BOARD)

    def ids(self, slot: str) -> List[str]:
        return [lead.id for lead in self.leads(slot)]

    # --- Whole-slot writes ---

    def replace(
        self,
        slot: str,
        leads: Iterable[Lead],
        *,
        pagination: Optional[Pagination] = None,
        board: Optional[BoardMeta] = None,
    ) -> None:
        with self._lock:
            self._leads[_check_slot(slot)] = tuple(leads)
            self._version += 1
            if pagination is not None:
                self._pagination = pagination
            if board is not None:
                self._board = board
        self._emit((slot,))

    def reset(self, slot: str) -> None:
        with self._lock:
            self._leads[_check_slot(slot)] = ()
            self._version += 1
            if slot == LIST:
                self._pagination = Pagination(page=1, limit=self._pagination.limit, total=0, pages=0)
            else:
                self._board = BoardMeta()
        self._emit((slot,))

    # --- Single-record fan-out ---

    def write(self, lead_id: str, transform: Callable[[Lead], Lead]) -> Dict[str, Lead]:
        """Apply *transform* to every copy of *lead_id*; return the copies it replaced."""

        with self._lock:
            previous: Dict[str, Lead] = {}
            for slot in SLOTS:
                updated = []
                for lead in self._leads[slot]:
                    if lead.id == lead_id:
                        previous[slot] = lead
                        updated.append(transform(lead))
                    else:
                        updated.append(lead)
                if slot in previous:
                    self._leads[slot] = tuple(updated)
            if previous:
                self._version += 1
        if previous:
            self._emit(tuple(previous))
        return previous

    def restore(self, copies: Mapping[str, Lead]) -> None:
        """Put the exact objects in *copies* back in their slots."""

        touched = []
        with self._lock:
            for slot, original in copies.items():
                current = self._leads[_check_slot(slot)]
                if not any(lead.id == original.id for lead in current):
                    LOGGER.debug("Lead %s left the %s view before rollback", original.id, slot)
                    continue
                self._leads[slot] = tuple(original if lead.id == original.id else lead for lead in current)
                touched.append(slot)
            if touched:
                self._version += 1
        if touched:
            self._emit(tuple(touched))

    # --- Observers ---

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _emit(self, slots: Tuple[str, ...]) -> None:
        for listener in list(self._listeners):
            listener(slots)


def _check_slot(slot: str) -> str:
    if slot not in SLOTS:
        raise ValueError(f"Unknown projection '{slot}'")
    return slot


__all__ = ["LIST", "BOARD", "SLOTS", "BoardMeta", "ProjectionStore"]
