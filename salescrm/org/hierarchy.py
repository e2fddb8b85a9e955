# salescrm/org/hierarchy.py
"""
Hierarchy resolution: which profiles a viewer may see.

Rules by role:
- admin: unrestricted
- head: active profiles in the head's team, else in the head's entity;
  a head with neither sees only themself
- manager: union of
    * explicit manager_team_members mappings
    * reporting-role profiles whose manager_id is the manager
    * reporting-role profiles in the manager's entity + team with no manager_id
  plus the manager's own profile
- account_manager / staff / pending / unknown: self only

Every visible profile carries the source that admitted it. When a profile
qualifies through several sources the first in MANAGER_SOURCE_PRECEDENCE
is recorded.

Usage:
    scope = resolve_visible_scope(viewer, profiles, mappings)
    if not scope.unrestricted:
        owner_ids = scope.user_ids
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .models import ManagerTeamMember, Role, UserProfile

logger = logging.getLogger(__name__)

# ===== MEMBER SOURCES =====

SOURCE_SELF = 'self'
SOURCE_ALL = 'all'
SOURCE_TEAM = 'team'
SOURCE_ENTITY = 'entity'
SOURCE_MAPPING = 'mapping'
SOURCE_MANAGER_ID = 'manager_id'
SOURCE_ENTITY_TEAM = 'entity_team'

MANAGER_SOURCE_PRECEDENCE = [SOURCE_MAPPING, SOURCE_MANAGER_ID, SOURCE_ENTITY_TEAM]


@dataclass
class VisibleScope:
    """Result of resolving a viewer's visibility."""
    viewer: UserProfile
    unrestricted: bool = False
    profiles: Dict[str, UserProfile] = field(default_factory=dict)
    sources: Dict[str, str] = field(default_factory=dict)

    @property
    def profile_ids(self) -> Set[str]:
        return set(self.profiles)

    @property
    def user_ids(self) -> Set[str]:
        """Login ids of visible profiles (owner ids of opportunities)."""
        return {p.user_id for p in self.profiles.values() if p.user_id}

    def contains_profile(self, profile_id: str) -> bool:
        return self.unrestricted or profile_id in self.profiles

    def contains_user(self, user_id: str) -> bool:
        return self.unrestricted or user_id in self.user_ids

    def source_of(self, profile_id: str) -> Optional[str]:
        return self.sources.get(profile_id)

    def members(self, source: str = None) -> List[UserProfile]:
        """Visible profiles other than the viewer, optionally by source."""
        return [
            p for pid, p in self.profiles.items()
            if pid != self.viewer.id and (source is None or self.sources.get(pid) == source)
        ]

    def _add(self, profile: UserProfile, source: str):
        if profile.id not in self.profiles:
            self.profiles[profile.id] = profile
            self.sources[profile.id] = source


def resolve_visible_scope(
    viewer: UserProfile,
    profiles: Iterable[UserProfile],
    mappings: Iterable[ManagerTeamMember] = (),
) -> VisibleScope:
    """
    Compute the profiles ``viewer`` may see.

    Args:
        viewer: Profile of the signed-in user
        profiles: All known profiles
        mappings: Explicit manager to account manager mappings

    Returns:
        VisibleScope; admins get ``unrestricted=True`` with every profile
    """
    profiles = list(profiles)
    scope = VisibleScope(viewer=viewer)
    role = viewer.role

    if role == Role.ADMIN:
        scope.unrestricted = True
        for profile in profiles:
            scope._add(profile, SOURCE_ALL)
        return scope

    scope._add(viewer, SOURCE_SELF)

    if role == Role.HEAD:
        _add_head_members(scope, viewer, profiles)
    elif role == Role.MANAGER:
        for member, source in _manager_members(viewer, profiles, mappings):
            scope._add(member, source)

    logger.debug(f"Resolved scope for {viewer.id} ({role.value if role else 'pending'}): {len(scope.profiles)} profiles")
    return scope


def _add_head_members(scope: VisibleScope, head: UserProfile, profiles: List[UserProfile]):
    if head.team_id:
        for profile in profiles:
            if profile.is_active and profile.team_id == head.team_id:
                scope._add(profile, SOURCE_TEAM)
    elif head.entity_id:
        for profile in profiles:
            if profile.is_active and profile.entity_id == head.entity_id:
                scope._add(profile, SOURCE_ENTITY)
    else:
        logger.warning(f"Head {head.id} has no team or entity, limiting to self")


def _manager_members(
    manager: UserProfile,
    profiles: List[UserProfile],
    mappings: Iterable[ManagerTeamMember],
):
    """Yield (profile, source) pairs in precedence order."""
    by_id = {p.id: p for p in profiles}

    for mapping in mappings:
        if mapping.manager_id != manager.id:
            continue
        member = by_id.get(mapping.account_manager_id)
        if member is not None and member.is_active and member.id != manager.id:
            yield member, SOURCE_MAPPING

    reporting = [
        p for p in profiles
        if p.is_active and p.role is not None and p.role.is_reporting and p.id != manager.id
    ]

    for profile in reporting:
        if profile.manager_id == manager.id:
            yield profile, SOURCE_MANAGER_ID

    # Unassigned reps of the manager's own entity + team
    if manager.entity_id and manager.team_id:
        for profile in reporting:
            if (not profile.manager_id
                    and profile.entity_id == manager.entity_id
                    and profile.team_id == manager.team_id):
                yield profile, SOURCE_ENTITY_TEAM


def resolve_manager_team(
    manager: UserProfile,
    profiles: Iterable[UserProfile],
    mappings: Iterable[ManagerTeamMember] = (),
) -> List[UserProfile]:
    """
    Team members of a manager, without the manager.

    Uses the same discovery as the manager scope so a manager's rolled-up
    achievement and what the manager can see never disagree.
    """
    seen = {}
    for member, _source in _manager_members(manager, list(profiles), mappings):
        seen.setdefault(member.id, member)
    return list(seen.values())


# ===== HEAD DRILL-DOWN =====

def head_drilldown_members(
    head: UserProfile,
    manager_id: str,
    profiles: Iterable[UserProfile],
    mappings: Iterable[ManagerTeamMember] = (),
) -> List[UserProfile]:
    """
    Profiles a head may inspect when drilling into one of their managers.

    The target manager is re-verified against the head's team on every call.
    Any failed check returns an empty list, never a wider set.

    Returns:
        The manager followed by their account managers, or []
    """
    profiles = list(profiles)
    if head.role != Role.HEAD or not head.team_id:
        logger.warning(f"Drill-down refused: viewer {head.id} is not a head with a team")
        return []

    manager = next((p for p in profiles if p.id == manager_id), None)
    if manager is None or manager.role != Role.MANAGER:
        logger.warning(f"Drill-down refused: {manager_id} is not a known manager")
        return []

    if manager.team_id != head.team_id:
        logger.warning(f"Drill-down refused: manager {manager_id} is outside head {head.id}'s team")
        return []

    by_id = {p.id: p for p in profiles}
    own_mappings = [m for m in mappings if m.manager_id == manager.id]

    # A manager with mappings is limited to mapped members inside the head's
    # team, even when that leaves only the manager
    if own_mappings:
        members = []
        for mapping in own_mappings:
            member = by_id.get(mapping.account_manager_id)
            if member is not None and member.team_id == head.team_id:
                members.append(member)
    else:
        members = [
            p for p in profiles
            if p.role is not None and p.role.is_reporting
            and p.entity_id == manager.entity_id
            and p.team_id == manager.team_id
        ]

    return [manager] + [m for m in members if m.id != manager.id]


__all__ = [
    'VisibleScope',
    'resolve_visible_scope',
    'resolve_manager_team',
    'head_drilldown_members',
    'MANAGER_SOURCE_PRECEDENCE',
    'SOURCE_SELF',
    'SOURCE_ALL',
    'SOURCE_TEAM',
    'SOURCE_ENTITY',
    'SOURCE_MAPPING',
    'SOURCE_MANAGER_ID',
    'SOURCE_ENTITY_TEAM',
]
