# salescrm/org/queries.py
"""
Data loading for the organisation hierarchy.

Handles:
- user_profiles (hierarchy input, profile lookup, first sign-in creation)
- manager_team_members mappings
- entities and teams (teams live in the ``divisions`` table)

Reads log failures and return empty results. Entity and team writes live in
salescrm.admin.org_units.
"""

import logging
import uuid
from typing import List, Optional

import pandas as pd
from sqlalchemy.engine import Engine

from ..db import get_db_engine, execute_query_df, execute_update
from .constants import DEFAULT_SIGNUP_ROLE
from .models import ManagerTeamMember, UserProfile, profiles_from_df

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = """
    id, user_id, full_name, email, role,
    entity_id, division_id, manager_id, is_active
"""

# Seeded demo accounts hidden from rep pickers
DEMO_EMAIL_PATTERN = 'demo_am_%@example.com'


class OrgQueries:
    """
    Loader for profiles, mappings, entities and teams.

    Usage:
        queries = OrgQueries()

        profiles = queries.get_profiles()
        mappings = queries.get_manager_mappings()
        teams_df = queries.get_teams(entity_id)
    """

    def __init__(self, engine: Engine = None):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Lazy load database engine."""
        if self._engine is None:
            self._engine = get_db_engine()
        return self._engine

    # =========================================================================
    # PROFILES
    # =========================================================================

    def get_profiles_df(self, active_only: bool = False) -> pd.DataFrame:
        query = f"SELECT {PROFILE_COLUMNS} FROM user_profiles"
        params = {}
        if active_only:
            query += " WHERE is_active = :active"
            params['active'] = True
        query += " ORDER BY full_name"
        return self._execute_query(query, params, "profiles")

    def get_profiles(self, active_only: bool = False) -> List[UserProfile]:
        return profiles_from_df(self.get_profiles_df(active_only))

    def get_profile(self, profile_id: str) -> Optional[UserProfile]:
        df = self._execute_query(
            f"SELECT {PROFILE_COLUMNS} FROM user_profiles WHERE id = :profile_id",
            {'profile_id': profile_id},
            "profile",
        )
        profiles = profiles_from_df(df)
        return profiles[0] if profiles else None

    def get_profile_by_user_id(self, user_id: str) -> Optional[UserProfile]:
        df = self._execute_query(
            f"SELECT {PROFILE_COLUMNS} FROM user_profiles WHERE user_id = :user_id",
            {'user_id': user_id},
            "profile_by_user",
        )
        profiles = profiles_from_df(df)
        return profiles[0] if profiles else None

    def get_managers(self, entity_id: str = None, division_id: str = None) -> pd.DataFrame:
        """Active managers, optionally limited to an entity and/or team."""
        query = f"""
            SELECT {PROFILE_COLUMNS} FROM user_profiles
            WHERE role = 'manager' AND is_active = :active
        """
        params = {'active': True}
        if entity_id:
            query += " AND entity_id = :entity_id"
            params['entity_id'] = entity_id
        if division_id:
            query += " AND division_id = :division_id"
            params['division_id'] = division_id
        query += " ORDER BY full_name"
        return self._execute_query(query, params, "managers")

    def get_available_reps(self, user_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Active account managers for rep pickers.

        Args:
            user_ids: Limit to these login ids; None means no limit (admin)
        """
        if user_ids is not None and not user_ids:
            return pd.DataFrame()

        query = f"""
            SELECT {PROFILE_COLUMNS} FROM user_profiles
            WHERE role IN :roles
              AND is_active = :active
              AND LOWER(COALESCE(email, '')) NOT LIKE :demo_pattern
        """
        params = {
            'roles': ['account_manager', 'sales'],
            'active': True,
            'demo_pattern': DEMO_EMAIL_PATTERN,
        }
        if user_ids is not None:
            query += " AND user_id IN :user_ids"
            params['user_ids'] = list(user_ids)
        query += " ORDER BY full_name"
        return self._execute_query(query, params, "available_reps")

    def ensure_profile(self, user_id: str, email: str = None, full_name: str = None) -> Optional[UserProfile]:
        """
        Return the profile of a login, creating it on first sign-in.

        New profiles get the default sign-up role and no org fields, so they
        start out pending.
        """
        profile = self.get_profile_by_user_id(user_id)
        if profile is not None:
            return profile

        try:
            execute_update(
                """
                INSERT INTO user_profiles (id, user_id, email, full_name, role, is_active)
                VALUES (:id, :user_id, :email, :full_name, :role, :active)
                """,
                {
                    'id': str(uuid.uuid4()),
                    'user_id': user_id,
                    'email': email,
                    'full_name': full_name or email,
                    'role': DEFAULT_SIGNUP_ROLE,
                    'active': True,
                },
                engine=self.engine,
            )
            logger.info(f"Created profile for new user {email or user_id}")
        except Exception as e:
            logger.error(f"Error creating profile for {user_id}: {e}")
            return None

        return self.get_profile_by_user_id(user_id)

    # =========================================================================
    # MAPPINGS
    # =========================================================================

    def get_manager_mappings(self, manager_id: str = None) -> List[ManagerTeamMember]:
        query = "SELECT manager_id, account_manager_id FROM manager_team_members"
        params = {}
        if manager_id:
            query += " WHERE manager_id = :manager_id"
            params['manager_id'] = manager_id
        df = self._execute_query(query, params, "manager_mappings")
        if df.empty:
            return []
        return [ManagerTeamMember.from_row(row) for row in df.to_dict('records')]

    # =========================================================================
    # ENTITIES & TEAMS
    # =========================================================================

    def get_entities(self, active_only: bool = False) -> pd.DataFrame:
        query = "SELECT id, name, code, is_active FROM entities"
        params = {}
        if active_only:
            query += " WHERE is_active = :active"
            params['active'] = True
        query += " ORDER BY name"
        return self._execute_query(query, params, "entities")

    def get_teams(self, entity_id: str = None) -> pd.DataFrame:
        """Teams, optionally of one entity."""
        query = "SELECT id, name, entity_id FROM divisions"
        params = {}
        if entity_id:
            query += " WHERE entity_id = :entity_id"
            params['entity_id'] = entity_id
        query += " ORDER BY name"
        return self._execute_query(query, params, "teams")

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


__all__ = ['OrgQueries', 'PROFILE_COLUMNS']
