# salescrm/org/__init__.py
"""
Organisation Hierarchy Module

Components:
- models: Entity, Team, UserProfile, ManagerTeamMember, Role
- hierarchy: Visibility resolution per role, head drill-down checks
- classifier: Pending-assignment rules and landing page selection
- access_control: Per-viewer scope with dataframe filtering
- queries: Profiles, mappings, entities and teams

Usage:
    from salescrm.org import (
        AccessControl,
        OrgQueries,
        UserProfile,
        resolve_visible_scope,
        is_pending,
    )
"""

from .models import Role, Entity, Team, UserProfile, ManagerTeamMember, profiles_from_df
from .hierarchy import (
    VisibleScope,
    resolve_visible_scope,
    resolve_manager_team,
    head_drilldown_members,
)
from .classifier import missing_assignments, is_pending, describe_missing, validate_assignment, landing_page
from .access_control import AccessControl
from .queries import OrgQueries

from .constants import (
    FULL_ACCESS_ROLES,
    TEAM_ACCESS_ROLES,
    SELF_ACCESS_ROLES,
    REPORTING_ROLES,
    ASSIGNABLE_ROLES,
    ROLE_LABELS,
    ROLE_REQUIREMENTS,
)

__all__ = [
    # Models
    'Role',
    'Entity',
    'Team',
    'UserProfile',
    'ManagerTeamMember',
    'profiles_from_df',

    # Hierarchy
    'VisibleScope',
    'resolve_visible_scope',
    'resolve_manager_team',
    'head_drilldown_members',

    # Classifier
    'missing_assignments',
    'is_pending',
    'describe_missing',
    'validate_assignment',
    'landing_page',

    # Classes
    'AccessControl',
    'OrgQueries',

    # Constants
    'FULL_ACCESS_ROLES',
    'TEAM_ACCESS_ROLES',
    'SELF_ACCESS_ROLES',
    'REPORTING_ROLES',
    'ASSIGNABLE_ROLES',
    'ROLE_LABELS',
    'ROLE_REQUIREMENTS',
]
