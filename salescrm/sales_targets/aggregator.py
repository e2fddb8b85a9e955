# salescrm/sales_targets/aggregator.py
"""
Achieved revenue and margin per profile for a period.

Rules:
- Only won opportunities count: is_won or stage 'Closed Won', not archived,
  expected_close_date inside the period.
- Revenue is the sum of project po_amount; won deals without a project add 0.
- Margin follows salescrm.pipeline.financials (pending deals add 0).
- A manager's achievement is the sum over their resolved team members,
  never their own opportunities.
- Every other role achieves through the opportunities they own.

Usage:
    achieved = aggregate_achievements(profiles, won_df, projects_df, items_df,
                                      mappings=mappings, period="Q1 2026")
    achieved.loc[profile_id, 'revenue']
"""

import logging
from typing import Iterable, List

import pandas as pd

from ..org.hierarchy import resolve_manager_team
from ..org.models import ManagerTeamMember, Role, UserProfile
from ..pipeline.constants import CLOSED_WON_STAGE, STATUS_ARCHIVED
from ..pipeline.financials import deal_financials
from .periods import quarter_range, to_date

logger = logging.getLogger(__name__)

ACHIEVEMENT_COLUMNS = ['revenue', 'margin', 'deals', 'margin_pending']


def select_won_in_period(opportunities_df: pd.DataFrame, period: str) -> pd.DataFrame:
    """Won, non-archived opportunities closing inside the quarter."""
    if opportunities_df is None or opportunities_df.empty:
        return pd.DataFrame()

    start, end = quarter_range(period)
    df = opportunities_df

    is_won = df['is_won'].fillna(False).astype(bool) if 'is_won' in df.columns else False
    won = is_won | (df['stage'] == CLOSED_WON_STAGE)
    not_archived = df['status'].fillna('') != STATUS_ARCHIVED if 'status' in df.columns else True

    close_dates = df['expected_close_date'].map(to_date)
    in_period = close_dates.map(lambda d: d is not None and start <= d <= end).astype(bool)

    return df[won & not_archived & in_period].copy()


def _individual_totals(deals: pd.DataFrame) -> pd.DataFrame:
    """Sums per owner login id."""
    if deals.empty:
        return pd.DataFrame(columns=ACHIEVEMENT_COLUMNS)
    return deals.groupby('owner_id').agg(
        revenue=('revenue', 'sum'),
        margin=('margin', 'sum'),
        deals=('opportunity_id', 'count'),
        margin_pending=('margin_pending', 'sum'),
    )


def aggregate_achievements(
    profiles: Iterable[UserProfile],
    won_df: pd.DataFrame,
    projects_df: pd.DataFrame,
    items_df: pd.DataFrame,
    all_profiles: Iterable[UserProfile] = None,
    mappings: Iterable[ManagerTeamMember] = (),
    period: str = None,
) -> pd.DataFrame:
    """
    Achieved figures for each profile.

    Args:
        profiles: Profiles to report on
        won_df: Won opportunities of every owner involved
        projects_df: Projects of those opportunities
        items_df: Pipeline items of those opportunities
        all_profiles: Profiles used to resolve manager teams (defaults to profiles)
        mappings: Explicit manager to account manager mappings
        period: If given, won_df is narrowed to this quarter first

    Returns:
        DataFrame indexed by profile id with ACHIEVEMENT_COLUMNS
    """
    profiles = list(profiles)
    all_profiles = list(all_profiles) if all_profiles is not None else profiles
    mappings = list(mappings)

    if period:
        won_df = select_won_in_period(won_df, period)

    deals = deal_financials(won_df, projects_df, items_df)
    by_owner = _individual_totals(deals)

    def individual(profile: UserProfile) -> List[float]:
        if profile.user_id and profile.user_id in by_owner.index:
            row = by_owner.loc[profile.user_id]
            return [float(row['revenue']), float(row['margin']), int(row['deals']), int(row['margin_pending'])]
        return [0.0, 0.0, 0, 0]

    records = {}
    for profile in profiles:
        if profile.role == Role.MANAGER:
            team = resolve_manager_team(profile, all_profiles, mappings)
            totals = [0.0, 0.0, 0, 0]
            for member in team:
                totals = [a + b for a, b in zip(totals, individual(member))]
            records[profile.id] = totals
            logger.debug(f"Manager {profile.id} rolled up {len(team)} members")
        else:
            records[profile.id] = individual(profile)

    result = pd.DataFrame.from_dict(records, orient='index', columns=ACHIEVEMENT_COLUMNS)
    result.index.name = 'profile_id'
    return result


__all__ = ['aggregate_achievements', 'select_won_in_period', 'ACHIEVEMENT_COLUMNS']
