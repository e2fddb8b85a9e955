# salescrm/pipeline/metrics.py
"""
Pipeline and sales summary calculations

Handles:
- Pipeline by stage (fixed stage order, count, value, share)
- Pipeline headline numbers (open / won / lost, win rate)
- Sales summary from projects (revenue, margin, top performers, by month)
"""

import logging
from typing import Dict, Optional

import pandas as pd

from .constants import STAGE_ORDER, WON_STAGES, LOST_STAGES, STATUS_OPEN, TOP_PERFORMERS_LIMIT
from .financials import deal_financials

logger = logging.getLogger(__name__)


def _is_won(df: pd.DataFrame) -> pd.Series:
    won = df['is_won'].fillna(False).astype(bool) if 'is_won' in df.columns else pd.Series(False, index=df.index)
    return won | df['stage'].isin(WON_STAGES)


def _is_lost(df: pd.DataFrame) -> pd.Series:
    lost = df['stage'].isin(LOST_STAGES)
    if 'status' in df.columns:
        lost = lost | (df['status'] == 'lost')
    return lost & ~_is_won(df)


class PipelineMetrics:
    """
    Calculations over an opportunities DataFrame.

    Usage:
        metrics = PipelineMetrics(opps_df)

        by_stage = metrics.pipeline_by_stage()
        summary = metrics.summary()
    """

    def __init__(self, opportunities_df: pd.DataFrame):
        self.df = opportunities_df if opportunities_df is not None else pd.DataFrame()
        if not self.df.empty:
            self.df = self.df.copy()
            self.df['amount'] = pd.to_numeric(self.df['amount'], errors='coerce').fillna(0.0)

    # =========================================================================
    # BY STAGE
    # =========================================================================

    def pipeline_by_stage(self) -> pd.DataFrame:
        """
        Count and value per stage in pipeline order.

        Returns:
            DataFrame with stage, count, value, share (percent of value)
        """
        columns = ['stage', 'count', 'value', 'share']
        if self.df.empty:
            return pd.DataFrame(columns=columns)

        grouped = self.df.groupby('stage', dropna=False).agg(
            count=('id', 'count'),
            value=('amount', 'sum'),
        ).reset_index()
        grouped['stage'] = grouped['stage'].fillna('Unknown')

        total = grouped['value'].sum()
        grouped['share'] = (grouped['value'] / total * 100).round(1) if total > 0 else 0.0

        order = {stage: i for i, stage in enumerate(STAGE_ORDER)}
        grouped['_order'] = grouped['stage'].map(order).fillna(len(STAGE_ORDER))
        grouped = grouped.sort_values(['_order', 'stage']).drop(columns='_order')
        return grouped[columns].reset_index(drop=True)

    # =========================================================================
    # HEADLINE
    # =========================================================================

    def summary(self) -> Dict:
        """
        Headline pipeline numbers.

        Win rate is won / (won + lost); average deal size uses forecast
        amounts of won deals.
        """
        if self.df.empty:
            return {
                'total_count': 0, 'open_count': 0, 'won_count': 0, 'lost_count': 0,
                'open_value': 0.0, 'win_rate': 0.0, 'avg_won_amount': 0.0,
            }

        won = _is_won(self.df)
        lost = _is_lost(self.df)
        open_mask = ~won & ~lost
        if 'status' in self.df.columns:
            open_mask = open_mask & (self.df['status'].fillna(STATUS_OPEN) == STATUS_OPEN)

        won_count = int(won.sum())
        lost_count = int(lost.sum())
        closed = won_count + lost_count

        return {
            'total_count': len(self.df),
            'open_count': int(open_mask.sum()),
            'won_count': won_count,
            'lost_count': lost_count,
            'open_value': float(self.df.loc[open_mask, 'amount'].sum()),
            'win_rate': round(won_count / closed * 100, 1) if closed else 0.0,
            'avg_won_amount': float(self.df.loc[won, 'amount'].mean()) if won_count else 0.0,
        }


def sales_summary(
    won_df: pd.DataFrame,
    projects_df: pd.DataFrame,
    items_df: pd.DataFrame,
    owner_names: Optional[Dict[str, str]] = None,
    open_count: int = 0,
    target_amount: float = None,
) -> Dict:
    """
    Revenue-side summary for managers, heads and admins.

    Revenue and margin come only from projects (see financials). Deals closed
    counts every won opportunity, with or without a project.

    Args:
        won_df: Won opportunities (id, owner_id)
        projects_df: Projects of those opportunities
        items_df: Pipeline items of those opportunities
        owner_names: login id -> display name
        open_count: Open opportunities, for the conversion rate
        target_amount: Viewer's current target, for achievement

    Returns:
        Dict of totals plus 'top_performers' and 'revenue_by_month' DataFrames
    """
    owner_names = owner_names or {}
    deals = deal_financials(won_df, projects_df, items_df)

    total_revenue = float(deals['revenue'].sum()) if not deals.empty else 0.0
    total_margin = float(deals['margin'].sum()) if not deals.empty else 0.0
    deals_closed = len(deals)

    with_project = deals[deals['has_project']] if not deals.empty else deals

    # Top performers
    if with_project.empty:
        top = pd.DataFrame(columns=['owner_id', 'name', 'revenue', 'margin', 'deals'])
    else:
        top = with_project.groupby('owner_id').agg(
            revenue=('revenue', 'sum'),
            margin=('margin', 'sum'),
            deals=('opportunity_id', 'count'),
        ).reset_index()
        top['name'] = top['owner_id'].map(owner_names).fillna('Unknown')
        top = top.sort_values('revenue', ascending=False).head(TOP_PERFORMERS_LIMIT)
        top = top[['owner_id', 'name', 'revenue', 'margin', 'deals']].reset_index(drop=True)

    # Revenue by month of project creation
    if with_project.empty:
        by_month = pd.DataFrame(columns=['month', 'revenue', 'margin', 'deals'])
    else:
        monthly = with_project.copy()
        monthly['month'] = pd.to_datetime(monthly['project_created_at'], errors='coerce').dt.to_period('M')
        by_month = monthly.dropna(subset=['month']).groupby('month').agg(
            revenue=('revenue', 'sum'),
            margin=('margin', 'sum'),
            deals=('opportunity_id', 'count'),
        ).reset_index().sort_values('month')
        by_month['month'] = by_month['month'].dt.strftime('%b %Y')
        by_month = by_month.reset_index(drop=True)

    return {
        'total_revenue': total_revenue,
        'total_margin': total_margin,
        'margin_percentage': (total_margin / total_revenue * 100) if total_revenue > 0 and total_margin > 0 else 0.0,
        'margin_pending_count': int(deals['margin_pending'].sum()) if not deals.empty else 0,
        'deals_closed': deals_closed,
        'average_deal_size': total_revenue / deals_closed if deals_closed else 0.0,
        'conversion_rate': deals_closed / open_count * 100 if open_count else 0.0,
        'target_achievement': total_revenue / target_amount * 100 if target_amount else 0.0,
        'top_performers': top,
        'revenue_by_month': by_month,
    }


__all__ = ['PipelineMetrics', 'sales_summary']
