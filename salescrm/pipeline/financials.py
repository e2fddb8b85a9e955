# salescrm/pipeline/financials.py
"""
Per-deal revenue and margin.

Revenue comes only from projects (po_amount). A won opportunity without a
project contributes nothing; Opportunity.amount is a forecast and is never
used as revenue.

Margin is revenue minus the costs of the deal's won pipeline items. It is
only computed when the deal has a project and non-zero cost data; otherwise
the deal is flagged ``margin_pending`` and contributes 0 margin.
"""

import logging

import pandas as pd

from .constants import COST_COLUMNS, PIPELINE_ITEM_WON

logger = logging.getLogger(__name__)

FINANCIAL_COLUMNS = [
    'opportunity_id', 'owner_id', 'revenue', 'costs', 'margin',
    'has_project', 'margin_pending', 'project_created_at',
]


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors='coerce').fillna(0.0)


def deal_financials(
    opportunities_df: pd.DataFrame,
    projects_df: pd.DataFrame,
    items_df: pd.DataFrame,
) -> pd.DataFrame:
    """
    Compute revenue and margin per opportunity.

    Args:
        opportunities_df: Won opportunities (id, owner_id)
        projects_df: Projects (opportunity_id, po_amount, created_at)
        items_df: Pipeline items (opportunity_id, cost columns, status)

    Returns:
        One row per opportunity with FINANCIAL_COLUMNS
    """
    if opportunities_df is None or opportunities_df.empty:
        return pd.DataFrame(columns=FINANCIAL_COLUMNS)

    deals = pd.DataFrame({
        'opportunity_id': opportunities_df['id'].astype(str),
        'owner_id': opportunities_df['owner_id'],
    }).drop_duplicates('opportunity_id')

    # Revenue
    if projects_df is not None and not projects_df.empty:
        projects = projects_df.copy()
        projects['opportunity_id'] = projects['opportunity_id'].astype(str)
        projects['po_amount'] = _numeric(projects['po_amount'])
        revenue = projects.groupby('opportunity_id').agg(
            revenue=('po_amount', 'sum'),
            project_created_at=('created_at', 'min'),
        ).reset_index()
        revenue['has_project'] = True
    else:
        revenue = pd.DataFrame(columns=['opportunity_id', 'revenue', 'project_created_at', 'has_project'])

    # Costs from won pipeline items
    if items_df is not None and not items_df.empty:
        items = items_df.copy()
        if 'status' in items.columns:
            items = items[items['status'] == PIPELINE_ITEM_WON]
        items['opportunity_id'] = items['opportunity_id'].astype(str)
        items['costs'] = sum(_numeric(items[col]) for col in COST_COLUMNS if col in items.columns)
        costs = items.groupby('opportunity_id', as_index=False)['costs'].sum()
    else:
        costs = pd.DataFrame(columns=['opportunity_id', 'costs'])

    result = deals.merge(revenue, on='opportunity_id', how='left')
    result = result.merge(costs, on='opportunity_id', how='left')

    result['revenue'] = _numeric(result['revenue'])
    result['costs'] = _numeric(result['costs'])
    result['has_project'] = result['has_project'].fillna(False).astype(bool)

    computable = result['has_project'] & (result['costs'] > 0)
    result['margin'] = (result['revenue'] - result['costs']).where(computable, 0.0)
    result['margin_pending'] = result['has_project'] & ~computable

    pending = int(result['margin_pending'].sum())
    if pending:
        logger.debug(f"{pending} deals have a project but no cost data yet")

    return result[FINANCIAL_COLUMNS]


__all__ = ['deal_financials', 'FINANCIAL_COLUMNS']
