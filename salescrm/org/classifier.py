# salescrm/org/classifier.py
"""
Pending-assignment classification and landing-page selection.

A user is pending until their role has every org field it requires
(see ROLE_REQUIREMENTS). Pending users are routed to the pending page
instead of a dashboard.
"""

import logging
from typing import List, Optional, Union

from .constants import (
    ROLE_REQUIREMENTS, FIELD_LABELS, LANDING_PAGES, PENDING_PAGE,
)
from ..errors import ValidationError
from .models import Role, UserProfile

logger = logging.getLogger(__name__)


def missing_assignments(
    role: Union[Role, str, None],
    entity_id: Optional[str] = None,
    division_id: Optional[str] = None,
    manager_id: Optional[str] = None,
) -> List[str]:
    """
    List the org fields ``role`` still needs.

    Returns:
        Field names ('entity_id', 'division_id', 'manager_id'); ['role'] if
        the role itself is missing or unknown
    """
    parsed = Role.parse(role)
    if parsed is None:
        return ['role']

    values = {
        'entity_id': entity_id,
        'division_id': division_id,
        'manager_id': manager_id,
    }
    return [name for name in ROLE_REQUIREMENTS[parsed.value] if not values.get(name)]


def is_pending(profile: Optional[UserProfile]) -> bool:
    """True when the profile is missing, has no role, or lacks required fields."""
    if profile is None:
        return True
    return bool(missing_assignments(
        profile.role, profile.entity_id, profile.division_id, profile.manager_id
    ))


def describe_missing(role: Union[Role, str, None], missing: List[str]) -> str:
    """Human-readable reason, e.g. 'Manager requires entity and team'."""
    if not missing:
        return ''
    parsed = Role.parse(role)
    if parsed is None or missing == ['role']:
        return 'A role must be assigned'

    labels = [FIELD_LABELS.get(name, name) for name in missing]
    if len(labels) > 1:
        joined = ', '.join(labels[:-1]) + ' and ' + labels[-1]
    else:
        joined = labels[0]
    return f"{parsed.label} requires {joined}"


def validate_assignment(
    role: Union[Role, str, None],
    entity_id: Optional[str] = None,
    division_id: Optional[str] = None,
    manager_id: Optional[str] = None,
) -> Role:
    """
    Check a role assignment before it is written.

    Raises:
        ValidationError: with the missing field names
    """
    missing = missing_assignments(role, entity_id, division_id, manager_id)
    if missing:
        raise ValidationError(describe_missing(role, missing), missing)
    return Role.parse(role)


def landing_page(profile: Optional[UserProfile]) -> str:
    """
    Page key a signed-in user lands on.

    Admins always reach the admin dashboard, even without org fields.
    """
    if profile is not None and profile.role == Role.ADMIN:
        return LANDING_PAGES['admin']

    if is_pending(profile):
        return PENDING_PAGE

    return LANDING_PAGES[profile.role.value]


__all__ = [
    'missing_assignments',
    'is_pending',
    'describe_missing',
    'validate_assignment',
    'landing_page',
]
