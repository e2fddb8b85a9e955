# salescrm/admin/queries.py
"""
Admin user management through the backend's admin functions.

Handles:
- Listing users with profiles (get_users_with_profiles)
- Updating a profile's role / entity / team / manager (admin_update_user_profile)
- Deleting a user (admin_delete_user)
- Pending users and their role assignment

The functions enforce admin rights server-side as well; their messages are
mapped to UI copy by humanize_rpc_error.
"""

import json
import logging
from typing import Dict, Optional, Tuple

import pandas as pd

from ..db import call_rpc, rpc_scalar
from ..errors import PermissionDenied, ValidationError, humanize_rpc_error
from ..events import bus, OrgEvent
from ..org.classifier import is_pending, validate_assignment
from ..org.constants import PENDING_ROLE
from ..org.models import Role, UserProfile

logger = logging.getLogger(__name__)

USER_COLUMNS = [
    'id', 'user_id', 'email', 'full_name', 'role',
    'entity_id', 'division_id', 'manager_id', 'is_active', 'created_at',
]

# UI value meaning "no selection"
NONE_SENTINELS = ('', 'none', None)


def clean_choice(value) -> Optional[str]:
    """Map the UI's 'none' / empty selections to None."""
    if value in NONE_SENTINELS:
        return None
    return str(value)


def _parse_json(value) -> Dict:
    if isinstance(value, dict):
        return value
    if isinstance(value, (str, bytes)):
        try:
            parsed = json.loads(value)
            return parsed if isinstance(parsed, dict) else {}
        except ValueError:
            return {}
    return {}


class AdminUserQueries:
    """
    Admin-only user management.

    Usage:
        admin = AdminUserQueries(current_profile)   # raises PermissionDenied

        users_df = admin.get_users_with_profiles(search, 'all')
        ok, msg = admin.update_user_profile(profile_id, 'manager', entity_id, team_id, None)
    """

    def __init__(self, actor: UserProfile, engine=None):
        if actor is None or actor.role != Role.ADMIN:
            raise PermissionDenied("You must be an admin to manage users.")
        self.actor = actor
        self.engine = engine

    # =========================================================================
    # READ
    # =========================================================================

    def get_users_with_profiles(self, query: str = '', role: str = 'all') -> pd.DataFrame:
        """
        Users joined with profiles, filtered server-side.

        Args:
            query: Free-text search on name / email
            role: Role filter; 'all' means no filter, 'pending' selects
                  profiles without a role

        Returns:
            DataFrame with USER_COLUMNS; missing roles come back as 'pending'
        """
        params = {
            'p_query': (query or '').strip() or None,
            'p_role': None if role in (None, '', 'all') else role,
        }
        try:
            rows = call_rpc('get_users_with_profiles', params, engine=self.engine)
        except Exception as e:
            logger.error(f"Error loading users: {e}")
            return pd.DataFrame(columns=USER_COLUMNS)

        df = pd.DataFrame(rows)
        if df.empty:
            return pd.DataFrame(columns=USER_COLUMNS)

        for column in USER_COLUMNS:
            if column not in df.columns:
                df[column] = None
        df['role'] = df['role'].where(df['role'].notna() & (df['role'] != ''), PENDING_ROLE)

        logger.info(f"Loaded {len(df)} users (query={params['p_query']!r}, role={params['p_role']!r})")
        return df

    def get_pending_users(self, query: str = '') -> pd.DataFrame:
        """Users whose role is missing or lacks required org fields."""
        df = self.get_users_with_profiles(query, 'all')
        if df.empty:
            return df
        pending = df.apply(lambda row: is_pending(UserProfile.from_row(row)), axis=1)
        return df[pending.astype(bool)].reset_index(drop=True)

    # =========================================================================
    # WRITE
    # =========================================================================

    def update_user_profile(
        self,
        profile_id: str,
        role: str,
        entity_id: str = None,
        division_id: str = None,
        manager_id: str = None,
    ) -> Tuple[bool, str]:
        """
        Update role and org assignment of a profile.

        Role requirements are checked before calling the backend.

        Returns:
            (success, message)
        """
        entity_id = clean_choice(entity_id)
        division_id = clean_choice(division_id)
        manager_id = clean_choice(manager_id)

        try:
            parsed_role = validate_assignment(role, entity_id, division_id, manager_id)
        except ValidationError as e:
            logger.info(f"Update of {profile_id} blocked, missing {e.missing}")
            return False, str(e)

        try:
            rows = call_rpc('admin_update_user_profile', {
                'p_profile_id': profile_id,
                'p_role': parsed_role.value,
                'p_entity_id': entity_id,
                'p_division_id': division_id,
                'p_manager_id': manager_id,
            }, engine=self.engine)
        except Exception as e:
            message = str(getattr(e, 'orig', None) or e)
            logger.error(f"Error updating profile {profile_id}: {message}")
            return False, humanize_rpc_error(message)

        if not rpc_scalar(rows, default=False):
            return False, "Update failed: User profile not found or update failed."

        logger.info(f"Profile {profile_id} updated by {self.actor.id}: role={role}")
        bus.publish(OrgEvent.USERS_CHANGED, {'profile_id': profile_id})
        return True, "User updated successfully"

    def delete_user(self, profile_id: str) -> Tuple[bool, str]:
        """
        Delete a user and their profile.

        Returns:
            (success, message)
        """
        if profile_id == self.actor.id:
            return False, "Cannot delete your own account"

        try:
            rows = call_rpc('admin_delete_user', {'p_id': profile_id}, engine=self.engine)
        except Exception as e:
            message = str(getattr(e, 'orig', None) or e)
            logger.error(f"Error deleting user {profile_id}: {message}")
            return False, humanize_rpc_error(message, action="delete users")

        result = _parse_json(rpc_scalar(rows))
        if not result.get('success'):
            error = result.get('error') or "User not found"
            logger.warning(f"Delete of {profile_id} rejected: {error}")
            return False, humanize_rpc_error(error, action="delete users")

        logger.info(f"User {profile_id} deleted by {self.actor.id}")
        bus.publish(OrgEvent.USERS_CHANGED, {'profile_id': profile_id})
        return True, result.get('message') or "User deleted successfully"

    def save_role_assignment(
        self,
        profile_id: str,
        role: str,
        entity_id: str = None,
        division_id: str = None,
        manager_id: str = None,
    ) -> Tuple[bool, str]:
        """Assign a pending user; same rules as update_user_profile."""
        success, message = self.update_user_profile(profile_id, role, entity_id, division_id, manager_id)
        if success:
            message = "Role assigned. The user can now access their dashboard."
        return success, message


__all__ = ['AdminUserQueries', 'clean_choice', 'USER_COLUMNS']
