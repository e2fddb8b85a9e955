# salescrm/org/models.py
"""
Typed records for the organisation hierarchy.

Rows come back from the database as mappings (SQLAlchemy rows or pandas
records). ``from_row`` turns them into dataclasses so the resolver and the
classifier work on explicit fields instead of dict lookups.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import pandas as pd


class Role(str, Enum):
    ADMIN = 'admin'
    HEAD = 'head'
    MANAGER = 'manager'
    ACCOUNT_MANAGER = 'account_manager'
    STAFF = 'staff'

    @classmethod
    def parse(cls, value: Any) -> Optional['Role']:
        """
        Parse a stored role value.

        'sales' is an old name for an account manager. Empty, 'pending' and
        unknown values return None, which callers treat as pending.
        """
        if isinstance(value, Role):
            return value
        value = _clean(value)
        if value is None:
            return None
        value = str(value).strip().lower()
        if value == 'sales':
            return cls.ACCOUNT_MANAGER
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_reporting(self) -> bool:
        """Reports to a manager"""
        return self in (Role.ACCOUNT_MANAGER, Role.STAFF)

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').title()


def _clean(value: Any) -> Any:
    """Map NULL-ish values (None, NaN, NaT, '') to None."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _id(value: Any) -> Optional[str]:
    value = _clean(value)
    return str(value) if value is not None else None


def _flag(value: Any, default: bool = True) -> bool:
    value = _clean(value)
    return default if value is None else bool(value)


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    code: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping) -> 'Entity':
        return cls(
            id=_id(row.get('id')),
            name=_clean(row.get('name')) or '',
            code=_clean(row.get('code')),
            is_active=_flag(row.get('is_active')),
        )


@dataclass(frozen=True)
class Team:
    """A team inside an entity, stored in the ``divisions`` table."""
    id: str
    name: str
    entity_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping) -> 'Team':
        return cls(
            id=_id(row.get('id')),
            name=_clean(row.get('name')) or '',
            entity_id=_id(row.get('entity_id')),
        )


@dataclass(frozen=True)
class UserProfile:
    """
    A user's place in the hierarchy.

    ``id`` is the profile key used by targets, managers and mappings;
    ``user_id`` is the login identity that owns opportunities and activities.
    """
    id: str
    user_id: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    entity_id: Optional[str] = None
    division_id: Optional[str] = None
    manager_id: Optional[str] = None
    is_active: bool = True

    @property
    def team_id(self) -> Optional[str]:
        return self.division_id

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or self.id

    @classmethod
    def from_row(cls, row: Mapping) -> 'UserProfile':
        return cls(
            id=_id(row.get('id')),
            user_id=_id(row.get('user_id')),
            full_name=_clean(row.get('full_name')),
            email=_clean(row.get('email')),
            role=Role.parse(row.get('role')),
            entity_id=_id(row.get('entity_id')),
            division_id=_id(row.get('division_id', row.get('team_id'))),
            manager_id=_id(row.get('manager_id')),
            is_active=_flag(row.get('is_active')),
        )


@dataclass(frozen=True)
class ManagerTeamMember:
    """Explicit manager to account manager mapping (profile ids)."""
    manager_id: str
    account_manager_id: str

    @classmethod
    def from_row(cls, row: Mapping) -> 'ManagerTeamMember':
        return cls(
            manager_id=_id(row.get('manager_id')),
            account_manager_id=_id(row.get('account_manager_id')),
        )


def profiles_from_df(df: pd.DataFrame) -> list:
    """Convert a user_profiles DataFrame into UserProfile records."""
    if df is None or df.empty:
        return []
    return [UserProfile.from_row(row) for row in df.to_dict('records')]


__all__ = [
    'Role',
    'Entity',
    'Team',
    'UserProfile',
    'ManagerTeamMember',
    'profiles_from_df',
]
