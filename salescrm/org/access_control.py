# salescrm/org/access_control.py
"""
Role-based Access Control for the sales CRM

Handles data access permissions based on the viewer's profile:
- admin: Full access to all users and opportunities
- head / manager: Access to self + resolved team (see hierarchy)
- account_manager / staff: Access to own data only
- pending: Access to own data only

Scope is resolved once per instance from user_profiles and
manager_team_members.
"""

import logging
from typing import List, Optional, Set

import pandas as pd

from .constants import FULL_ACCESS_ROLES, TEAM_ACCESS_ROLES
from .hierarchy import VisibleScope, resolve_visible_scope
from .models import UserProfile
from .queries import OrgQueries

logger = logging.getLogger(__name__)


class AccessControl:
    """
    Manage data access based on the viewer's role and hierarchy.

    Usage:
        access = AccessControl(viewer_profile)

        # Get access level
        level = access.get_access_level()  # 'full', 'team', or 'self'

        # Owner ids for opportunity queries (None = no filter)
        ids = access.get_accessible_user_ids()

        # Filter a dataframe
        filtered_df = access.filter_dataframe(df, 'owner_id')
    """

    def __init__(self, viewer: UserProfile, queries: OrgQueries = None):
        """
        Initialize access control.

        Args:
            viewer: Profile of the signed-in user
            queries: OrgQueries used to load the hierarchy
        """
        self.viewer = viewer
        self.queries = queries or OrgQueries()
        self._scope: Optional[VisibleScope] = None

        role = viewer.role.value if viewer.role else 'pending'
        logger.info(f"AccessControl initialized: role={role}, profile_id={viewer.id}")

    # =========================================================================
    # ACCESS LEVEL DETERMINATION
    # =========================================================================

    def get_access_level(self) -> str:
        """
        Determine access level based on role.

        Returns:
            'full' - Can view everything
            'team' - Can view self + team members
            'self' - Can view own data only
        """
        role = self.viewer.role.value if self.viewer.role else ''
        if role in FULL_ACCESS_ROLES:
            return 'full'
        elif role in TEAM_ACCESS_ROLES:
            return 'team'
        else:
            return 'self'

    def can_view_all(self) -> bool:
        """Check if user has full access to all data."""
        return self.get_access_level() == 'full'

    def can_select_rep(self) -> bool:
        """Check if user can pick another rep (not self-only)."""
        return self.get_access_level() != 'self'

    # =========================================================================
    # SCOPE
    # =========================================================================

    def get_scope(self) -> VisibleScope:
        """Resolve (once) and return the viewer's visible scope."""
        if self._scope is not None:
            return self._scope

        if self.get_access_level() == 'self':
            # No need to load the hierarchy for self-only viewers
            self._scope = resolve_visible_scope(self.viewer, [self.viewer])
        else:
            profiles = self.queries.get_profiles()
            mappings = self.queries.get_manager_mappings() if self.viewer.role and self.viewer.role.value == 'manager' else []
            self._scope = resolve_visible_scope(self.viewer, profiles, mappings)

        logger.info(f"Visible scope ({self.get_access_level()}): {len(self._scope.profiles)} profiles")
        return self._scope

    def get_accessible_user_ids(self) -> Optional[List[str]]:
        """
        Login ids whose opportunities and activities are visible.

        Returns:
            None for unrestricted viewers, otherwise a (possibly empty) list
        """
        scope = self.get_scope()
        if scope.unrestricted:
            return None
        return sorted(scope.user_ids)

    def get_accessible_profile_ids(self) -> Optional[List[str]]:
        scope = self.get_scope()
        if scope.unrestricted:
            return None
        return sorted(scope.profile_ids)

    def get_visible_profiles(self) -> List[UserProfile]:
        return list(self.get_scope().profiles.values())

    # =========================================================================
    # VALIDATION & FILTERING
    # =========================================================================

    def can_access_user(self, user_id: str) -> bool:
        return self.get_scope().contains_user(user_id)

    def validate_selected_rep(self, user_id: Optional[str]) -> Optional[str]:
        """
        Validate a rep picked in the UI.

        Returns:
            The user_id if visible, else None
        """
        if not user_id:
            return None
        if self.can_access_user(user_id):
            return user_id
        logger.warning(f"Profile {self.viewer.id} attempted to select rep {user_id} outside scope")
        return None

    def filter_dataframe(self, df: pd.DataFrame, id_column: str = 'owner_id') -> pd.DataFrame:
        """
        Keep only rows owned by visible users.

        Args:
            df: DataFrame to filter
            id_column: Column holding login ids
        """
        if df.empty or self.can_view_all():
            return df

        if id_column not in df.columns:
            logger.warning(f"Column {id_column} not in DataFrame, returning empty")
            return df.iloc[0:0]

        allowed: Set[str] = set(self.get_accessible_user_ids() or [])
        return df[df[id_column].astype(str).isin(allowed)].copy()


__all__ = ['AccessControl']
