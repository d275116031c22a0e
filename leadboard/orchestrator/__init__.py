"""Fetch orchestration and debounced scheduling for the lead projections."""

from .fetch import BOARD_CAP, BOARD_PAGE_SIZE, BoardResult, FetchOrchestrator, FilterOptions, ListResult, campaign_names
from .scheduler import QueryScheduler

__all__ = [
    "BOARD_CAP",
    "BOARD_PAGE_SIZE",
    "BoardResult",
    "FetchOrchestrator",
    "FilterOptions",
    "ListResult",
    "QueryScheduler",
    "campaign_names",
]
