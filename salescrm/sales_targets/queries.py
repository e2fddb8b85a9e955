# salescrm/sales_targets/queries.py
"""
Data loading and writes for sales targets.

Handles:
- sales_targets reads and creation
- Inputs of the achievement aggregation (won deals, projects, items)
- Archived manager figures from the get_manager_archived /
  get_head_manager_archived database functions
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..db import call_rpc, execute_query_df, execute_update
from ..errors import ValidationError
from ..events import bus, OrgEvent
from ..org.access_control import AccessControl
from ..org.hierarchy import resolve_manager_team
from ..org.models import Role, UserProfile
from ..pipeline.queries import PipelineQueries
from .aggregator import aggregate_achievements
from .constants import MEASURES, TARGET_SETTER_ROLES, TARGET_ROLES
from .periods import quarter_range, to_date

logger = logging.getLogger(__name__)


def validate_target(measure: str, amount, period_start, period_end) -> Tuple[float, date, date]:
    """
    Check target inputs before they are written.

    Returns:
        (amount, period_start, period_end) as float and dates

    Raises:
        ValidationError: on the first invalid input
    """
    if measure not in MEASURES:
        raise ValidationError("Please select a measure")

    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Target amount must be a number")
    if amount <= 0:
        raise ValidationError("Target amount must be greater than zero")

    start, end = to_date(period_start), to_date(period_end)
    if start is None or end is None:
        raise ValidationError("Period start and end dates are required")
    if end < start:
        raise ValidationError("Period end must be on or after period start")

    return amount, start, end


class TargetQueries:
    """
    Target loading for the viewer's scope.

    Usage:
        access = AccessControl(viewer)
        queries = TargetQueries(access)

        targets_df = queries.get_targets()
        achieved = queries.get_achievements(profiles, "Q1 2026")
        ok, msg = queries.create_target(profile_id, 'revenue', 900000, start, end)
    """

    def __init__(self, access_control: AccessControl, engine=None):
        self.access = access_control
        self.pipeline = PipelineQueries(access_control, engine)

    @property
    def engine(self):
        return self.pipeline.engine

    # =========================================================================
    # TARGETS
    # =========================================================================

    def get_target_profiles(self) -> List[UserProfile]:
        """Active visible profiles that appear in target tables."""
        return [
            p for p in self.access.get_visible_profiles()
            if p.is_active and p.role is not None and p.role.value in TARGET_ROLES
        ]

    def get_targets(self, profile_ids: Optional[List[str]] = None, measure: str = None) -> pd.DataFrame:
        """
        Load targets, limited to the viewer's scope.

        Args:
            profile_ids: Assignees to load; defaults to every visible profile
            measure: 'revenue' or 'margin'
        """
        if profile_ids is None:
            profile_ids = self.access.get_accessible_profile_ids()
        else:
            profile_ids = [pid for pid in profile_ids if self.access.get_scope().contains_profile(pid)]

        if profile_ids is not None and not profile_ids:
            return pd.DataFrame()

        query = """
            SELECT id, assigned_to, measure, amount, period_start, period_end, created_at
            FROM sales_targets
            WHERE 1 = 1
        """
        params = {}
        if profile_ids is not None:
            query += " AND assigned_to IN :profile_ids"
            params['profile_ids'] = list(profile_ids)
        if measure:
            query += " AND measure = :measure"
            params['measure'] = measure
        query += " ORDER BY period_start DESC, created_at DESC"

        return self._execute_query(query, params, "sales_targets")

    def create_target(
        self,
        assigned_to: str,
        measure: str,
        amount: float,
        period_start,
        period_end,
    ) -> Tuple[bool, str]:
        """
        Create a target for a visible profile.

        Returns:
            (success, message)
        """
        viewer_role = self.access.viewer.role
        if viewer_role is None or viewer_role.value not in TARGET_SETTER_ROLES:
            return False, "You do not have permission to set targets"

        if not assigned_to:
            return False, "Please select a team member"
        if not self.access.get_scope().contains_profile(assigned_to):
            logger.warning(f"Profile {self.access.viewer.id} tried to set a target for {assigned_to}")
            return False, "Selected user is outside your team"

        try:
            amount, start, end = validate_target(measure, amount, period_start, period_end)
        except ValidationError as e:
            return False, str(e)

        try:
            execute_update(
                """
                INSERT INTO sales_targets (id, assigned_to, measure, amount, period_start, period_end, created_by)
                VALUES (:id, :assigned_to, :measure, :amount, :period_start, :period_end, :created_by)
                """,
                {
                    'id': str(uuid.uuid4()),
                    'assigned_to': assigned_to,
                    'measure': measure,
                    'amount': amount,
                    'period_start': start.isoformat(),
                    'period_end': end.isoformat(),
                    'created_by': self.access.viewer.id,
                },
                engine=self.engine,
            )
        except Exception as e:
            logger.error(f"Error creating target: {e}")
            return False, "Failed to create sales target. Please try again."

        logger.info(f"Target created: {measure} {amount:,.0f} for {assigned_to} ({start} to {end})")
        bus.publish(OrgEvent.TARGETS_CHANGED, {'assigned_to': assigned_to})
        return True, "Target created successfully"

    # =========================================================================
    # ACHIEVEMENT
    # =========================================================================

    def get_achievements(self, profiles: List[UserProfile], period: str) -> pd.DataFrame:
        """
        Achieved revenue / margin per profile for a quarter.

        Managers roll up their resolved team, so the team members' deals are
        loaded as well.
        """
        start, end = quarter_range(period)

        org = self.access.queries
        all_profiles = org.get_profiles()
        mappings = org.get_manager_mappings()

        owners = set()
        for profile in profiles:
            if profile.role == Role.MANAGER:
                owners.update(m.user_id for m in resolve_manager_team(profile, all_profiles, mappings) if m.user_id)
            elif profile.user_id:
                owners.add(profile.user_id)

        won_df = self.pipeline.get_won_opportunities(sorted(owners), start, end) if owners else pd.DataFrame()
        opp_ids = won_df['id'].astype(str).tolist() if not won_df.empty else []
        projects_df = self.pipeline.get_projects(opp_ids)
        items_df = self.pipeline.get_pipeline_items(opp_ids, status='won')

        logger.info(f"Achievement inputs for {period}: {len(won_df)} won deals, {len(projects_df)} projects")
        return aggregate_achievements(
            profiles, won_df, projects_df, items_df,
            all_profiles=all_profiles, mappings=mappings, period=period,
        )

    # =========================================================================
    # ARCHIVED MANAGER FIGURES
    # =========================================================================

    def get_manager_archived(self, manager_id: str, period: str) -> Dict:
        """
        Archived revenue / margin / project count of one manager.

        Returns:
            Dict with revenue, margin, project_count (zeros on error)
        """
        empty = {'revenue': 0.0, 'margin': 0.0, 'project_count': 0}
        if not manager_id:
            return empty
        start, end = quarter_range(period)
        try:
            rows = call_rpc('get_manager_archived', {
                'p_manager_id': manager_id,
                'p_period': period,
                'p_start_date': start.isoformat(),
                'p_end_date': end.isoformat(),
            }, engine=self.engine)
        except Exception as e:
            logger.error(f"Error loading archived figures for manager {manager_id}: {e}")
            return empty

        if not rows:
            return empty
        row = rows[0]
        return {
            'revenue': float(row.get('revenue') or 0),
            'margin': float(row.get('margin') or 0),
            'project_count': int(row.get('project_count') or 0),
        }

    def get_head_manager_archived(self, period: str) -> pd.DataFrame:
        """
        Archived figures per manager, for heads.

        Rows are limited to managers in the viewer's scope.
        """
        columns = ['manager_id', 'manager_name', 'entity_id', 'division_id', 'revenue', 'margin', 'project_count']
        start, end = quarter_range(period)
        try:
            rows = call_rpc('get_head_manager_archived', {
                'p_period': period,
                'p_start_date': start.isoformat(),
                'p_end_date': end.isoformat(),
            }, engine=self.engine)
        except Exception as e:
            logger.error(f"Error loading head archived figures: {e}")
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(rows, columns=columns)
        if df.empty:
            return df

        scope = self.access.get_scope()
        visible = df['manager_id'].astype(str).map(scope.contains_profile).astype(bool)
        return df[visible].reset_index(drop=True)

    # =========================================================================
    # HELPER
    # =========================================================================

    def _execute_query(self, query: str, params: dict, query_name: str = "query") -> pd.DataFrame:
        """Execute SQL query and return DataFrame, empty on error."""
        try:
            df = execute_query_df(query, params, engine=self.engine)
            logger.debug(f"{query_name} returned {len(df)} rows")
            return df
        except Exception as e:
            logger.error(f"Error executing {query_name}: {e}")
            return pd.DataFrame()


__all__ = ['TargetQueries', 'validate_target']
