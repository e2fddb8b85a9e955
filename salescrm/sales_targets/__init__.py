# salescrm/sales_targets/__init__.py
"""
Sales Targets Module

Components:
- periods: Quarter labels, available/default periods, target proration
- aggregator: Achieved revenue / margin per profile (manager roll-up)
- queries: Target reads and creation, achievement inputs, archived figures
- metrics: Target tables, department totals, single-user achievement

Usage:
    from salescrm.sales_targets import (
        TargetQueries,
        TargetMetrics,
        quarter_range,
        default_period,
    )
"""

from .periods import (
    parse_period,
    quarter_range,
    period_label,
    available_periods,
    default_period,
    targets_overlapping,
    months_between,
    prorate_target,
)
from .aggregator import aggregate_achievements, select_won_in_period
from .queries import TargetQueries, validate_target
from .metrics import TargetMetrics, target_status
from .constants import MEASURES, MEASURE_LABELS, TARGET_SETTER_ROLES

__all__ = [
    # Periods
    'parse_period',
    'quarter_range',
    'period_label',
    'available_periods',
    'default_period',
    'targets_overlapping',
    'months_between',
    'prorate_target',

    # Aggregation
    'aggregate_achievements',
    'select_won_in_period',

    # Classes
    'TargetQueries',
    'validate_target',
    'TargetMetrics',
    'target_status',

    # Constants
    'MEASURES',
    'MEASURE_LABELS',
    'TARGET_SETTER_ROLES',
]
