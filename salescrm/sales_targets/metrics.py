# salescrm/sales_targets/metrics.py
"""
Target tables and achievement figures

Handles:
- Per-profile target rows (monthly / quarterly equivalents, achieved, gap, status)
- Department totals over a target table
- Single-user achievement against the latest target
"""

import logging
from typing import Dict, Iterable

import pandas as pd

from ..org.constants import REPORTING_ROLES, ROLE_SORT_ORDER
from ..org.models import UserProfile
from .constants import (
    AHEAD_THRESHOLD, STATUS_AHEAD, STATUS_BEHIND, STATUS_NO_TARGET, STATUS_ON_TRACK,
)
from .periods import prorate_target, to_date

logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    'profile_id', 'name', 'role', 'measure', 'target', 'monthly_target',
    'quarterly_target', 'achieved', 'gap', 'achievement_pct', 'status',
]


def target_status(target: float, achieved: float) -> str:
    """
    No Target when nothing is set; Ahead above 105% of target; On Track
    once the target is met; otherwise Behind.
    """
    if not target or target <= 0:
        return STATUS_NO_TARGET
    if achieved > target * AHEAD_THRESHOLD:
        return STATUS_AHEAD
    if target - achieved <= 0:
        return STATUS_ON_TRACK
    return STATUS_BEHIND


class TargetMetrics:
    """
    Target vs. achievement calculations.

    Usage:
        metrics = TargetMetrics(targets_df, achievements_df)

        table = metrics.build_target_table(profiles, 'revenue')
        totals = metrics.department_totals(table)
    """

    def __init__(self, targets_df: pd.DataFrame, achievements_df: pd.DataFrame = None):
        """
        Args:
            targets_df: Targets already narrowed to the selected period
            achievements_df: aggregate_achievements() output (indexed by profile id)
        """
        self.targets_df = targets_df if targets_df is not None else pd.DataFrame()
        self.achievements_df = achievements_df if achievements_df is not None else pd.DataFrame()

    def _achieved(self, profile_id: str, measure: str) -> float:
        if self.achievements_df.empty or profile_id not in self.achievements_df.index:
            return 0.0
        return float(self.achievements_df.loc[profile_id, measure])

    def _targets_of(self, profile_id: str, measure: str) -> pd.DataFrame:
        if self.targets_df.empty:
            return self.targets_df
        df = self.targets_df
        return df[(df['assigned_to'].astype(str) == str(profile_id)) & (df['measure'] == measure)]

    # =========================================================================
    # TARGET TABLE
    # =========================================================================

    def build_target_table(self, profiles: Iterable[UserProfile], measure: str = 'revenue') -> pd.DataFrame:
        """
        One row per profile, sorted by role (head, manager, account manager)
        then quarterly target descending.
        """
        rows = []
        for profile in profiles:
            targets = self._targets_of(profile.id, measure)
            total = 0.0
            monthly = 0.0
            quarterly = 0.0
            for target in targets.to_dict('records'):
                amount = float(target.get('amount') or 0)
                total += amount
                try:
                    m, q = prorate_target(amount, target.get('period_start'), target.get('period_end'))
                except ValueError:
                    logger.warning(f"Target {target.get('id')} has no valid period, skipped in proration")
                    continue
                monthly += m
                quarterly += q

            achieved = self._achieved(profile.id, measure)
            role = profile.role.value if profile.role else 'account_manager'
            rows.append({
                'profile_id': profile.id,
                'name': profile.display_name,
                'role': role,
                'measure': measure,
                'target': total,
                'monthly_target': monthly,
                'quarterly_target': quarterly,
                'achieved': achieved,
                'gap': total - achieved,
                'achievement_pct': achieved / total * 100 if total > 0 else 0.0,
                'status': target_status(total, achieved),
            })

        if not rows:
            return pd.DataFrame(columns=TABLE_COLUMNS)

        table = pd.DataFrame(rows, columns=TABLE_COLUMNS)
        table['_role_order'] = table['role'].map(ROLE_SORT_ORDER).fillna(len(ROLE_SORT_ORDER))
        table = table.sort_values(['_role_order', 'quarterly_target'], ascending=[True, False])
        return table.drop(columns='_role_order').reset_index(drop=True)

    @staticmethod
    def department_totals(table: pd.DataFrame) -> Dict:
        """Totals over reporting rows (account managers, staff) so manager roll-ups are not double counted."""
        empty = {'total_target': 0.0, 'total_achieved': 0.0, 'gap': 0.0, 'achievement_rate': 0.0}
        if table is None or table.empty:
            return empty

        reps = table[table['role'].isin(REPORTING_ROLES)]
        if reps.empty:
            reps = table

        total_target = float(reps['target'].sum())
        total_achieved = float(reps['achieved'].sum())
        return {
            'total_target': total_target,
            'total_achieved': total_achieved,
            'gap': total_target - total_achieved,
            'achievement_rate': total_achieved / total_target * 100 if total_target > 0 else 0.0,
        }

    # =========================================================================
    # SINGLE USER
    # =========================================================================

    def user_achievement(self, profile_id: str) -> Dict[str, Dict]:
        """
        Revenue and margin of one profile against their latest target.

        Returns:
            {'revenue': {...}, 'margin': {...}} each with target, actual,
            percentage, period_start, period_end
        """
        result = {}
        for measure in ('revenue', 'margin'):
            targets = self._targets_of(profile_id, measure)
            actual = self._achieved(profile_id, measure)

            if targets.empty:
                result[measure] = {
                    'target': 0.0, 'actual': actual, 'percentage': 0.0,
                    'period_start': None, 'period_end': None,
                }
                continue

            latest = targets.assign(_start=targets['period_start'].map(to_date)).sort_values(
                '_start', ascending=False, na_position='last'
            ).iloc[0]
            amount = float(latest['amount'] or 0)
            result[measure] = {
                'target': amount,
                'actual': actual,
                'percentage': actual / amount * 100 if amount > 0 else 0.0,
                'period_start': to_date(latest['period_start']),
                'period_end': to_date(latest['period_end']),
            }
        return result


__all__ = ['TargetMetrics', 'target_status', 'TABLE_COLUMNS']
