from datetime import datetime, timedelta, timezone

from leadboard.models import PRIORITIES, STATUSES, Reference
from leadboard.stats import LeadStats, compute_stats

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_empty_set_has_zero_percentages():
    stats = compute_stats([], now=NOW)

    assert stats.total == 0
    assert stats.percentage(0) == 0
    assert set(stats.status_percentages().values()) == {0}
    assert list(stats.by_status) == list(STATUSES)
    assert list(stats.by_priority) == list(PRIORITIES)


def test_counts_and_breakdowns(make_lead):
    leads = [
        make_lead("1", status="new", priority="HOT", agency=Reference("ag-1"), assigned_agent=Reference("a-1")),
        make_lead("2", status="Contacted", priority="warm", agency=Reference("ag-1")),
        make_lead("3", status="booked", priority="cold", property=Reference("p-1")),
        make_lead("4", status=None, priority=None),
    ]

    stats = compute_stats(leads, now=NOW)

    assert stats.total == 4
    assert stats.by_status["new"] == 2
    assert stats.by_status["contacted"] == 1
    assert stats.by_status["booked"] == 1
    assert stats.by_status["junk"] == 0
    assert stats.by_priority == {"hot": 1, "warm": 1, "cold": 1, "not_interested": 0}
    assert stats.unassigned == 2
    assert stats.by_agency == {"ag-1": 2}
    assert stats.by_agent == {"a-1": 1}
    assert stats.by_property == {"p-1": 1}
    assert stats.percentage(stats.by_status["new"]) == 50
    assert stats.status_percentages()["booked"] == 25


def test_missed_follow_ups_only_count_active_statuses(make_lead):
    past = NOW - timedelta(days=1)
    leads = [
        make_lead("1", status="negotiation", follow_up_date=past),
        make_lead("2", status="booked", follow_up_date=past),
        make_lead("3", status="new", follow_up_date=NOW + timedelta(days=1)),
        make_lead("4", status="contacted", follow_up_date=datetime(2024, 5, 1)),
    ]

    assert compute_stats(leads, now=NOW).missed_follow_ups == 2


def test_percentage_rounds_to_whole_numbers():
    stats = LeadStats(total=3)

    assert stats.percentage(1) == 33
    assert stats.percentage(2) == 67
