# salescrm/admin/drafts.py
"""
Staged edits of user assignments in the admin table.

Each row of the admin table edits a draft. Staging a value equal to the
stored one drops it, so a draft is dirty only when something really
changed. Saving a clean draft does not call the backend.

Usage:
    drafts = st.session_state.setdefault('user_drafts', UserUpdateDrafts())
    drafts.load(profile_id, row)
    drafts.stage(profile_id, 'role', 'manager')
    if drafts.is_dirty(profile_id):
        ok, msg = drafts.save(profile_id, admin)
"""

import logging
from typing import Dict, List, Mapping, Tuple

from ..org.constants import PENDING_ROLE
from ..org.models import Role
from .queries import AdminUserQueries, clean_choice

logger = logging.getLogger(__name__)

DRAFT_FIELDS = ('role', 'entity_id', 'division_id', 'manager_id')


def _normalize(field: str, value):
    value = clean_choice(value)
    if field == 'role' and value is not None:
        if value == PENDING_ROLE:
            return None
        role = Role.parse(value)
        return role.value if role else value
    return value


class UserUpdateDrafts:
    """Per-profile staged changes with dirty tracking."""

    def __init__(self):
        self._originals: Dict[str, Dict] = {}
        self._changes: Dict[str, Dict] = {}

    def load(self, profile_id: str, row: Mapping) -> None:
        """Record the stored values of a profile; keeps staged changes."""
        self._originals[profile_id] = {f: _normalize(f, row.get(f)) for f in DRAFT_FIELDS}

        # Changes that now equal the stored values are no longer changes
        for field, value in list(self._changes.get(profile_id, {}).items()):
            if self._originals[profile_id][field] == value:
                del self._changes[profile_id][field]
        if profile_id in self._changes and not self._changes[profile_id]:
            del self._changes[profile_id]

    def stage(self, profile_id: str, field: str, value) -> None:
        if field not in DRAFT_FIELDS:
            raise KeyError(f"Unknown field: {field}")
        if profile_id not in self._originals:
            raise KeyError(f"Profile {profile_id} not loaded")

        value = _normalize(field, value)
        changes = self._changes.setdefault(profile_id, {})
        if self._originals[profile_id][field] == value:
            changes.pop(field, None)
        else:
            changes[field] = value

        if not changes:
            del self._changes[profile_id]

    def is_dirty(self, profile_id: str) -> bool:
        return bool(self._changes.get(profile_id))

    def dirty_ids(self) -> List[str]:
        return [pid for pid, changes in self._changes.items() if changes]

    def changes(self, profile_id: str) -> Dict:
        return dict(self._changes.get(profile_id, {}))

    def merged(self, profile_id: str) -> Dict:
        """Stored values with staged changes applied."""
        values = dict(self._originals.get(profile_id, {f: None for f in DRAFT_FIELDS}))
        values.update(self._changes.get(profile_id, {}))
        return values

    def discard(self, profile_id: str) -> None:
        self._changes.pop(profile_id, None)

    def save(self, profile_id: str, admin: AdminUserQueries) -> Tuple[bool, str]:
        """
        Write the merged values of a dirty draft.

        Returns:
            (success, message); a clean draft returns (True, ...) without a write
        """
        if not self.is_dirty(profile_id):
            return True, "No changes to save"

        values = self.merged(profile_id)
        if values['role'] is None:
            return False, "A role must be assigned"

        success, message = admin.update_user_profile(
            profile_id,
            values['role'],
            values['entity_id'],
            values['division_id'],
            values['manager_id'],
        )
        if success:
            self._originals[profile_id] = values
            self.discard(profile_id)
        else:
            logger.warning(f"Draft save failed for {profile_id}: {message}")
        return success, message


__all__ = ['UserUpdateDrafts', 'DRAFT_FIELDS']
