"""Summary counts over whatever lead set is currently materialised."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from .models import ACTIVE_STATUSES, PRIORITIES, STATUSES, Lead, board_column_for, priority_key


@dataclass
class LeadStats:
    total: int = 0
    by_status: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(STATUSES, 0))
    by_priority: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(PRIORITIES, 0))
    unassigned: int = 0
    by_agency: Dict[str, int] = field(default_factory=dict)
    by_agent: Dict[str, int] = field(default_factory=dict)
    by_property: Dict[str, int] = field(default_factory=dict)
    missed_follow_ups: int = 0

    def percentage(self, count: int) -> int:
        """Share of *count* in :attr:`total` as a whole percent; 0 for an empty set."""

        if self.total <= 0:
            return 0
        return round(count * 100 / self.total)

    def status_percentages(self) -> Dict[str, int]:
        return {status: self.percentage(count) for status, count in self.by_status.items()}

    def priority_percentages(self) -> Dict[str, int]:
        return {priority: self.percentage(count) for priority, count in self.by_priority.items()}


def compute_stats(leads: Iterable[Lead], *, now: Optional[datetime] = None) -> LeadStats:
    """Aggregate *leads*; statuses outside the pipeline count under ``new`` like on the board."""

    now = now or datetime.now(timezone.utc)
    stats = LeadStats()
    agencies: Counter = Counter()
    agents: Counter = Counter()
    properties: Counter = Counter()

    for lead in leads:
        stats.total += 1
        column = board_column_for(lead.status)
        stats.by_status[column] += 1

        priority = priority_key(lead.priority)
        if priority in stats.by_priority:
            stats.by_priority[priority] += 1

        if lead.agency is None:
            stats.unassigned += 1
        else:
            agencies[lead.agency.id] += 1
        if lead.assigned_agent is not None:
            agents[lead.assigned_agent.id] += 1
        if lead.property is not None:
            properties[lead.property.id] += 1

        if column in ACTIVE_STATUSES and _is_overdue(lead.follow_up_date, now):
            stats.missed_follow_ups += 1

    stats.by_agency = dict(agencies)
    stats.by_agent = dict(agents)
    stats.by_property = dict(properties)
    return stats


def _is_overdue(follow_up: Optional[datetime], now: datetime) -> bool:
    if follow_up is None:
        return False
    if follow_up.tzinfo is None:
        # Naive timestamps are taken as UTC.
        follow_up = follow_up.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return follow_up < now


__all__ = ["LeadStats", "compute_stats"]
