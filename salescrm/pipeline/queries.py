# salescrm/pipeline/queries.py
"""
Opportunity, project and activity loading scoped by access control.

Handles:
- Open / all opportunities of the visible owners (archived always excluded)
- Won opportunities with their projects and pipeline items
- Activities from sales_activity_v2 with fallback to the legacy table
- Head drill-down into one manager's team

Every method filters by the viewer's visible login ids. An empty visible set
yields an empty DataFrame, never unfiltered data.
"""

import logging
from datetime import date
from typing import List, Optional, Tuple

import pandas as pd
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from ..db import get_db_engine, execute_query_df
from ..org.access_control import AccessControl
from ..org.hierarchy import head_drilldown_members
from ..org.models import UserProfile
from .constants import (
    ACTIVITY_TYPES, DEFAULT_ACTIVITY_TYPE, ACTIVITY_TABLE, LEGACY_ACTIVITY_TABLE,
    STATUS_ARCHIVED, CLOSED_WON_STAGE,
)

logger = logging.getLogger(__name__)

OPPORTUNITY_COLUMNS = """
    o.id, o.name, o.owner_id, o.amount, o.stage, o.status,
    o.is_won, o.is_closed, o.expected_close_date, o.created_at, o.customer_name
"""

ACTIVITY_COLUMNS = ['id', 'activity_type', 'customer_name', 'notes', 'owner_id', 'activity_time', 'created_at']


def _as_iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def is_missing_relation(error: Exception) -> bool:
    """True when a query failed because the table does not exist."""
    orig = getattr(error, 'orig', None)
    if getattr(orig, 'pgcode', None) == '42P01':
        return True
    message = str(error).lower()
    return 'does not exist' in message or 'no such table' in message


def normalize_activity_type(value) -> str:
    text = str(value or '').strip().lower()
    for activity_type in ACTIVITY_TYPES:
        if text == activity_type.lower():
            return activity_type
    return DEFAULT_ACTIVITY_TYPE


class PipelineQueries:
    """
    Data loading for opportunities and activities.

    Usage:
        access = AccessControl(viewer)
        queries = PipelineQueries(access)

        opps_df = queries.get_opportunities()
        activities_df = queries.get_activities(selected_rep=user_id)
    """

    def __init__(self, access_control: AccessControl, engine: Engine = None):
        """
        Initialize with access control.

        Args:
            access_control: AccessControl instance for filtering
            engine: Optional engine (defaults to the shared engine)
        """
        self.access = access_control
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Lazy load database engine."""
        if self._engine is None:
            self._engine = get_db_engine()
        return self._engine

    # =========================================================================
    # OWNER RESOLUTION
    # =========================================================================

    def resolve_owner_ids(self, selected_rep: str = None) -> Tuple[bool, Optional[List[str]]]:
        """
        Owner ids to filter by.

        Returns:
            (allowed, owner_ids). owner_ids None means no filter. allowed is
            False when nothing may be shown.
        """
        if selected_rep:
            rep = self.access.validate_selected_rep(selected_rep)
            if rep is None:
                return False, []
            return True, [rep]

        owner_ids = self.access.get_accessible_user_ids()
        if owner_ids is None:
            return True, None
        if not owner_ids:
            logger.warning("No accessible owner ids, returning empty result")
            return False, []
        return True, owner_ids

    # =========================================================================
    # OPPORTUNITIES
    # =========================================================================

    def get_opportunities(
        self,
        selected_rep: str = None,
        exclude_promoted: bool = True,
        open_only: bool = False,
    ) -> pd.DataFrame:
        """
        Load non-archived opportunities of visible owners.

        Args:
            selected_rep: Restrict to one rep's login id (validated)
            exclude_promoted: Drop opportunities already in pipeline_items
            open_only: Only status 'open'
        """
        allowed, owner_ids = self.resolve_owner_ids(selected_rep)
        if not allowed:
            return pd.DataFrame()
        return self.get_opportunities_for_owners(owner_ids, exclude_promoted, open_only)

    def get_opportunities_for_owners(
        self,
        owner_ids: Optional[List[str]],
        exclude_promoted: bool = True,
        open_only: bool = False,
    ) -> pd.DataFrame:
        """owner_ids None means every owner; callers enforce scope."""
        if owner_ids is not None and not owner_ids:
            return pd.DataFrame()

        query = f"""
            SELECT {OPPORTUNITY_COLUMNS}
            FROM opportunities o
            WHERE COALESCE(o.status, '') <> :archived
        """
        params = {'archived': STATUS_ARCHIVED}

        if owner_ids is not None:
            query += " AND o.owner_id IN :owner_ids"
            params['owner_ids'] = list(owner_ids)

        if open_only:
            query += " AND o.status = :open_status"
            params['open_status'] = 'open'

        if exclude_promoted:
            query += """
              AND o.id NOT IN (
                  SELECT pi.opportunity_id FROM pipeline_items pi
                  WHERE pi.opportunity_id IS NOT NULL
              )
            """

        query += " ORDER BY o.created_at DESC"
        return self._execute_query(query, params, "opportunities")

    def get_won_opportunities(
        self,
        owner_ids: Optional[List[str]],
        start_date: date = None,
        end_date: date = None,
    ) -> pd.DataFrame:
        """
        Won, non-archived opportunities, optionally closing within a window.

        Won means is_won or stage 'Closed Won'.
        """
        if owner_ids is not None and not owner_ids:
            return pd.DataFrame()

        query = f"""
            SELECT {OPPORTUNITY_COLUMNS}
            FROM opportunities o
            WHERE COALESCE(o.status, '') <> :archived
              AND (o.is_won = :won OR o.stage = :won_stage)
        """
        params = {'archived': STATUS_ARCHIVED, 'won': True, 'won_stage': CLOSED_WON_STAGE}

        if owner_ids is not None:
            query += " AND o.owner_id IN :owner_ids"
            params['owner_ids'] = list(owner_ids)
        if start_date is not None:
            query += " AND o.expected_close_date >= :start_date"
            params['start_date'] = _as_iso(start_date)
        if end_date is not None:
            query += " AND o.expected_close_date <= :end_date"
            params['end_date'] = _as_iso(end_date)

        return self._execute_query(query, params, "won_opportunities")

    def get_projects(self, opportunity_ids: List[str]) -> pd.DataFrame:
        if not opportunity_ids:
            return pd.DataFrame()
        return self._execute_query(
            """
            SELECT opportunity_id, po_amount, created_at
            FROM projects
            WHERE opportunity_id IN :opportunity_ids
            """,
            {'opportunity_ids': list(opportunity_ids)},
            "projects",
        )

    def get_pipeline_items(self, opportunity_ids: List[str], status: str = None) -> pd.DataFrame:
        if not opportunity_ids:
            return pd.DataFrame()
        query = """
            SELECT opportunity_id, cost_of_goods, service_costs, other_expenses, status
            FROM pipeline_items
            WHERE opportunity_id IN :opportunity_ids
        """
        params = {'opportunity_ids': list(opportunity_ids)}
        if status:
            query += " AND status = :status"
            params['status'] = status
        return self._execute_query(query, params, "pipeline_items")

    # =========================================================================
    # ACTIVITIES
    # =========================================================================

    def get_activities(self, selected_rep: str = None) -> pd.DataFrame:
        """
        Load activities of visible owners, newest first.

        Reads sales_activity_v2 and falls back to the legacy table when v2
        does not exist. Columns are normalised to ACTIVITY_COLUMNS.
        """
        allowed, owner_ids = self.resolve_owner_ids(selected_rep)
        if not allowed:
            return pd.DataFrame(columns=ACTIVITY_COLUMNS)

        try:
            df = self._load_activities(ACTIVITY_TABLE, 'created_by', 'scheduled_at', owner_ids)
        except DBAPIError as e:
            if not is_missing_relation(e):
                logger.error(f"Error loading activities: {e}")
                return pd.DataFrame(columns=ACTIVITY_COLUMNS)
            logger.info(f"{ACTIVITY_TABLE} not available, using {LEGACY_ACTIVITY_TABLE}")
            try:
                df = self._load_activities(LEGACY_ACTIVITY_TABLE, 'user_id', 'activity_time', owner_ids)
            except DBAPIError as legacy_error:
                logger.error(f"Error loading legacy activities: {legacy_error}")
                return pd.DataFrame(columns=ACTIVITY_COLUMNS)

        return self._normalize_activities(df)

    def _load_activities(
        self,
        table: str,
        owner_column: str,
        time_column: str,
        owner_ids: Optional[List[str]],
    ) -> pd.DataFrame:
        notes = "COALESCE(a.notes, a.mom_text)" if table == ACTIVITY_TABLE else "a.notes"
        query = f"""
            SELECT a.id, a.activity_type, a.customer_name, {notes} AS notes,
                   a.{owner_column} AS owner_id,
                   a.{time_column} AS activity_time, a.created_at
            FROM {table} a
        """
        params = {}
        if owner_ids is not None:
            query += f" WHERE a.{owner_column} IN :owner_ids"
            params['owner_ids'] = list(owner_ids)
        query += " ORDER BY a.created_at DESC"

        # Errors propagate so the caller can detect a missing table
        return execute_query_df(query, params, engine=self.engine)

    @staticmethod
    def _normalize_activities(df: pd.DataFrame) -> pd.DataFrame:
        if df.empty:
            return pd.DataFrame(columns=ACTIVITY_COLUMNS)
        df = df.copy()
        df['activity_type'] = df['activity_type'].map(normalize_activity_type)
        df['customer_name'] = df['customer_name'].fillna('-')
        df['activity_time'] = df['activity_time'].fillna(df['created_at'])
        df['created_at'] = df['created_at'].fillna(df['activity_time'])
        return df[ACTIVITY_COLUMNS]

    # =========================================================================
    # HEAD DRILL-DOWN
    # =========================================================================

    def get_head_drilldown(self, manager_id: str) -> Tuple[List[UserProfile], pd.DataFrame]:
        """
        Opportunities of one manager's team, for a head.

        The manager's team is re-verified against the head's team; a failed
        check returns no members and an empty DataFrame.

        Returns:
            (members, opportunities_df) where members starts with the manager
        """
        head = self.access.viewer
        org = self.access.queries
        members = head_drilldown_members(
            head,
            manager_id,
            org.get_profiles(),
            org.get_manager_mappings(manager_id),
        )
        if not members:
            return [], pd.DataFrame()

        owner_ids = [m.user_id for m in members if m.user_id]
        logger.info(f"Head {head.id} drill-down into {manager_id}: {len(members)} members")
        return members, self.get_opportunities_for_owners(owner_ids, exclude_promoted=False)

    # =========================================================================
    # HELPER
    # =========================================================================

    def _execute_query(self, query: str, params: dict, query_name: str = "query") -> pd.DataFrame:
        """
        Execute SQL query and return DataFrame.

        Returns:
            DataFrame with results, empty on error
        """
        try:
            logger.debug(f"Executing {query_name}")
            df = execute_query_df(query, params, engine=self.engine)
            logger.debug(f"{query_name} returned {len(df)} rows")
            return df
        except Exception as e:
            logger.error(f"Error executing {query_name}: {e}")
            return pd.DataFrame()


__all__ = [
    'PipelineQueries',
    'is_missing_relation',
    'normalize_activity_type',
    'ACTIVITY_COLUMNS',
]
