# salescrm/pipeline/__init__.py
"""
Pipeline Module

Components:
- queries: Scoped opportunity / activity loading, head drill-down
- financials: Project-based revenue and margin per deal
- metrics: Pipeline by stage, headline numbers, sales summary
- watcher: Detection of pipeline items added by the external workflow

Usage:
    from salescrm.pipeline import PipelineQueries, PipelineMetrics, sales_summary
"""

from .queries import PipelineQueries, is_missing_relation, normalize_activity_type
from .financials import deal_financials
from .metrics import PipelineMetrics, sales_summary
from .watcher import PipelineItemWatcher, pipeline_watcher
from .constants import STAGE_ORDER, WON_STAGES, ACTIVITY_TYPES

__all__ = [
    'PipelineQueries',
    'PipelineMetrics',
    'deal_financials',
    'sales_summary',
    'PipelineItemWatcher',
    'pipeline_watcher',
    'is_missing_relation',
    'normalize_activity_type',
    'STAGE_ORDER',
    'WON_STAGES',
    'ACTIVITY_TYPES',
]
