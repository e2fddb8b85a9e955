# salescrm/admin/__init__.py
"""
Admin Module

Components:
- queries: User listing, profile updates, deletion, role assignment
- drafts: Dirty-tracked staged edits for the admin user table
- org_units: Entity and team management

Usage:
    from salescrm.admin import AdminUserQueries, UserUpdateDrafts, OrgUnitManager
"""

from .queries import AdminUserQueries, clean_choice, USER_COLUMNS
from .drafts import UserUpdateDrafts, DRAFT_FIELDS
from .org_units import OrgUnitManager

__all__ = [
    'AdminUserQueries',
    'UserUpdateDrafts',
    'OrgUnitManager',
    'clean_choice',
    'USER_COLUMNS',
    'DRAFT_FIELDS',
]
