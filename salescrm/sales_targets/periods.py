# salescrm/sales_targets/periods.py
"""
Fiscal periods and target proration.

Periods are calendar quarters labelled "Q<1-4> <year>". Targets carry an
arbitrary start/end date; monthly and quarterly equivalents divide the
amount by the exact number of months covered, counting partial months by
their share of days.

Usage:
    start, end = quarter_range("Q1 2026")    # 2026-01-01, 2026-03-31
    monthly, quarterly = prorate_target(900_000, start, end)   # 300k, 900k
"""

import calendar
import logging
import re
from collections import Counter
from datetime import date, datetime
from typing import List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r'Q([1-4])\s+(\d{4})')

# Floor for a period shorter than a day's share of a month
MIN_MONTHS = 0.033


def to_date(value) -> Optional[date]:
    """Coerce str / datetime / Timestamp to date; None for empty values."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    try:
        return pd.Timestamp(value).date()
    except (TypeError, ValueError):
        logger.warning(f"Unparseable date: {value!r}")
        return None


# =====================================================================
# QUARTERS
# =====================================================================

def parse_period(period: str) -> Optional[Tuple[int, int]]:
    """'Q3 2025' -> (3, 2025); None if the label is not a quarter."""
    match = PERIOD_PATTERN.search(period or '')
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def quarter_range(period: str) -> Tuple[date, date]:
    """
    First and last day of a quarter label.

    Raises:
        ValueError: label is not 'Q<1-4> <year>'
    """
    parsed = parse_period(period)
    if parsed is None:
        raise ValueError(f"Invalid period format: {period!r}")

    quarter, year = parsed
    start_month = (quarter - 1) * 3 + 1
    end_month = start_month + 2
    last_day = calendar.monthrange(year, end_month)[1]
    return date(year, start_month, 1), date(year, end_month, last_day)


def period_label(value) -> Optional[str]:
    """Quarter label containing a date."""
    d = to_date(value)
    if d is None:
        return None
    return f"Q{(d.month - 1) // 3 + 1} {d.year}"


def _sort_key(period: str) -> Tuple[int, int]:
    quarter, year = parse_period(period)
    return year, quarter


def available_periods(targets_df: pd.DataFrame) -> List[str]:
    """Quarters in which targets start, newest first."""
    if targets_df is None or targets_df.empty or 'period_start' not in targets_df.columns:
        return []
    labels = {period_label(v) for v in targets_df['period_start']}
    labels.discard(None)
    return sorted(labels, key=_sort_key, reverse=True)


def default_period(targets_df: pd.DataFrame, fallback: str = None) -> Optional[str]:
    """
    Quarter with the most targets; ties go to the newest quarter.
    Without targets returns ``fallback``.
    """
    if targets_df is None or targets_df.empty or 'period_start' not in targets_df.columns:
        return fallback
    counts = Counter(period_label(v) for v in targets_df['period_start'])
    counts.pop(None, None)
    if not counts:
        return fallback
    return max(counts, key=lambda p: (counts[p], _sort_key(p)))


def targets_overlapping(targets_df: pd.DataFrame, period: str) -> pd.DataFrame:
    """
    Targets whose [period_start, period_end] overlaps the quarter.

    An unparseable period returns all targets. Targets missing either date
    are dropped.
    """
    if targets_df is None or targets_df.empty:
        return pd.DataFrame() if targets_df is None else targets_df
    if parse_period(period) is None:
        return targets_df

    start, end = quarter_range(period)
    mask = [
        s is not None and e is not None and s <= end and e >= start
        for s, e in zip(targets_df['period_start'].map(to_date), targets_df['period_end'].map(to_date))
    ]
    return targets_df[pd.Series(mask, index=targets_df.index, dtype=bool)].copy()


# =====================================================================
# PRORATION
# =====================================================================

def months_between(start, end) -> float:
    """
    Months covered by [start, end] inclusive.

    Partial first and last months count by their share of days; whole
    months in between count as 1. Never less than MIN_MONTHS.
    """
    start, end = to_date(start), to_date(end)
    if start is None or end is None:
        raise ValueError("Period start and end are required")

    if (start.year, start.month) == (end.year, end.month):
        days_in_month = calendar.monthrange(start.year, start.month)[1]
        return max((end.day - start.day + 1) / days_in_month, MIN_MONTHS)

    days_in_start = calendar.monthrange(start.year, start.month)[1]
    days_in_end = calendar.monthrange(end.year, end.month)[1]

    start_fraction = (days_in_start - start.day + 1) / days_in_start
    end_fraction = end.day / days_in_end
    full_months = max((end.year - start.year) * 12 + (end.month - start.month) - 1, 0)

    return max(start_fraction + full_months + end_fraction, MIN_MONTHS)


def prorate_target(amount: float, start, end) -> Tuple[float, float]:
    """
    Monthly and quarterly equivalents of a target.

    Returns:
        (monthly, quarterly) where quarterly = monthly * 3
    """
    amount = float(amount or 0)
    if amount <= 0:
        return 0.0, 0.0
    monthly = amount / months_between(start, end)
    return monthly, monthly * 3


__all__ = [
    'parse_period',
    'quarter_range',
    'period_label',
    'available_periods',
    'default_period',
    'targets_overlapping',
    'months_between',
    'prorate_target',
    'to_date',
]
