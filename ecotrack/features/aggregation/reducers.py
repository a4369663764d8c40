"""
Pure deterministic reducers over ledger entries.

All reducers: (entries, window) -> value. No I/O, no clock, no hidden state:
the same entries and window always produce an identical result.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from ecotrack.core.datetime_utils import local_day
from ecotrack.features.aggregation.windows import Window, ZoneLike, make_window
from ecotrack.models.analytics import AggregateResult
from ecotrack.models.challenge import TargetMetric
from ecotrack.models.ledger import LedgerEntry

ZERO = Decimal("0")


def _in_window(entries: Iterable[LedgerEntry], window: Window) -> List[LedgerEntry]:
    # Sorted so summation order never depends on the caller's ordering.
    selected = [e for e in entries if window.contains(e.occurred_at)]
    selected.sort(key=lambda e: (e.occurred_at, e.id))
    return selected


def aggregate(
    entries: Iterable[LedgerEntry],
    window_start: datetime,
    window_end: datetime,
    zone: ZoneLike = "UTC",
) -> AggregateResult:
    """
    Reduce entries to totals over ``[window_start, window_end)``.

    Every entry belongs to exactly one category, so the per-category totals
    always sum to ``total_impact``. Days are local to ``zone``.
    """
    window = make_window(window_start, window_end, zone)
    selected = _in_window(entries, window)

    per_category: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    per_day: Dict[str, Decimal] = {day.isoformat(): ZERO for day in window.days()}
    total = ZERO

    for entry in selected:
        total += entry.carbon_impact
        per_category[entry.category_id] += entry.carbon_impact
        day_key = local_day(entry.occurred_at, window.zone).isoformat()
        per_day[day_key] = per_day.get(day_key, ZERO) + entry.carbon_impact

    return AggregateResult(
        window_start=window.start,
        window_end=window.end,
        total_impact=total,
        entry_count=len(selected),
        per_category_totals={k: per_category[k] for k in sorted(per_category)},
        per_day_totals={k: per_day[k] for k in sorted(per_day)},
    )


def total_impact(entries: Iterable[LedgerEntry], window: Window) -> Decimal:
    return sum((e.carbon_impact for e in _in_window(entries, window)), ZERO)


def carbon_saved(impact: Decimal) -> Decimal:
    """Savings contributed by one entry: the magnitude of a negative impact, else zero."""
    return -impact if impact < 0 else ZERO


# Challenge metrics --------------------------------------------------

def _qualifying(
    metric: TargetMetric, entries: List[LedgerEntry], category_id: Optional[str]
) -> List[LedgerEntry]:
    if metric == TargetMetric.CATEGORY_SPECIFIC:
        return [e for e in entries if e.category_id == category_id]
    if metric == TargetMetric.CARBON_REDUCTION:
        # Optional category scope, e.g. food-only savings.
        return [
            e for e in entries
            if e.carbon_impact < 0 and (category_id is None or e.category_id == category_id)
        ]
    return entries


def _count(entries: List[LedgerEntry], window: Window) -> Decimal:
    return Decimal(len(entries))


def _reduction(entries: List[LedgerEntry], window: Window) -> Decimal:
    return sum((carbon_saved(e.carbon_impact) for e in entries), ZERO)


def _distinct_days(entries: List[LedgerEntry], window: Window) -> Decimal:
    return Decimal(len({local_day(e.occurred_at, window.zone) for e in entries}))


_METRIC_REDUCERS: Dict[TargetMetric, Callable[[List[LedgerEntry], Window], Decimal]] = {
    TargetMetric.ACTIVITY_COUNT: _count,
    TargetMetric.CARBON_REDUCTION: _reduction,
    TargetMetric.CATEGORY_SPECIFIC: _count,
    TargetMetric.CONSISTENCY_DAYS: _distinct_days,
}


def compute_metric(
    metric: TargetMetric,
    entries: Iterable[LedgerEntry],
    window: Window,
    category_id: Optional[str] = None,
) -> Decimal:
    """Current value of a challenge target metric over ``window``."""
    metric = TargetMetric(metric)
    qualifying = _qualifying(metric, _in_window(entries, window), category_id)
    return _METRIC_REDUCERS[metric](qualifying, window)


def window_impact(
    metric: TargetMetric,
    entries: Iterable[LedgerEntry],
    window: Window,
    category_id: Optional[str] = None,
) -> Decimal:
    """Net carbon impact of the entries a metric counts over ``window``."""
    qualifying = _qualifying(TargetMetric(metric), _in_window(entries, window), category_id)
    return sum((e.carbon_impact for e in qualifying), ZERO)
