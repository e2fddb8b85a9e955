# salescrm/admin/org_units.py
"""
Entity and team management for admins.

Entities are changed through the admin_* database functions; teams are
rows of the ``divisions`` table. Each successful change publishes
ORG_UNITS_CHANGED so pages reload their entity and team lists.
"""

import logging
import uuid
from typing import Optional, Tuple

from ..db import call_rpc, execute_update, rpc_scalar
from ..errors import PermissionDenied, humanize_rpc_error
from ..events import bus, OrgEvent
from ..org.models import Role, UserProfile

logger = logging.getLogger(__name__)


class OrgUnitManager:
    """
    Usage:
        units = OrgUnitManager(current_profile)   # raises PermissionDenied

        ok, msg, entity_id = units.create_entity("PT Contoh", "CTH")
        ok, msg, team_id = units.create_team("Enterprise", entity_id)
    """

    def __init__(self, actor: UserProfile, engine=None):
        if actor is None or actor.role != Role.ADMIN:
            raise PermissionDenied("Only admins can manage entities and teams")
        self.actor = actor
        self.engine = engine

    def _changed(self, **payload):
        bus.publish(OrgEvent.ORG_UNITS_CHANGED, payload)

    # ==================== ENTITIES ====================

    def create_entity(self, name: str, code: str = None) -> Tuple[bool, str, Optional[str]]:
        """
        Returns:
            (success, message, new entity id)
        """
        name = (name or '').strip()
        if not name:
            return False, "Entity name is required", None

        try:
            rows = call_rpc('admin_create_entity', {
                'p_name': name,
                'p_code': (code or '').strip() or None,
            }, engine=self.engine)
        except Exception as e:
            message = str(getattr(e, 'orig', None) or e)
            logger.error(f"Error creating entity {name}: {message}")
            return False, humanize_rpc_error(message, action="create entities"), None

        entity_id = rpc_scalar(rows)
        if entity_id is None:
            return False, "Failed to create entity", None

        logger.info(f"Entity created: {name} ({entity_id}) by {self.actor.id}")
        self._changed(entity_id=str(entity_id))
        return True, "Entity created successfully", str(entity_id)

    def update_entity(self, entity_id: str, name: str, code: str = None, is_active: bool = True) -> Tuple[bool, str]:
        name = (name or '').strip()
        if not name:
            return False, "Entity name is required"

        try:
            rows = call_rpc('admin_update_entity', {
                'p_entity_id': entity_id,
                'p_name': name,
                'p_code': (code or '').strip() or None,
                'p_is_active': bool(is_active),
            }, engine=self.engine)
        except Exception as e:
            message = str(getattr(e, 'orig', None) or e)
            logger.error(f"Error updating entity {entity_id}: {message}")
            return False, humanize_rpc_error(message, action="update entities")

        if not rpc_scalar(rows, default=False):
            return False, "Entity not found"

        logger.info(f"Entity {entity_id} updated by {self.actor.id}")
        self._changed(entity_id=entity_id)
        return True, "Entity updated successfully"

    def delete_entity(self, entity_id: str) -> Tuple[bool, str]:
        try:
            rows = call_rpc('admin_delete_entity', {'p_entity_id': entity_id}, engine=self.engine)
        except Exception as e:
            message = str(getattr(e, 'orig', None) or e)
            logger.error(f"Error deleting entity {entity_id}: {message}")
            return False, humanize_rpc_error(message, action="delete entities")

        if not rpc_scalar(rows, default=False):
            return False, "Entity not found"

        logger.info(f"Entity {entity_id} deleted by {self.actor.id}")
        self._changed(entity_id=entity_id)
        return True, "Entity deleted successfully"

    # ==================== TEAMS ====================

    def create_team(self, name: str, entity_id: str = None) -> Tuple[bool, str, Optional[str]]:
        name = (name or '').strip()
        if not name:
            return False, "Team name is required", None

        team_id = str(uuid.uuid4())
        try:
            execute_update(
                "INSERT INTO divisions (id, name, entity_id) VALUES (:id, :name, :entity_id)",
                {'id': team_id, 'name': name, 'entity_id': entity_id or None},
                engine=self.engine,
            )
        except Exception as e:
            logger.error(f"Error creating team {name}: {e}")
            return False, f"Failed to create team: {e}", None

        logger.info(f"Team created: {name} ({team_id}) in entity {entity_id}")
        self._changed(team_id=team_id, entity_id=entity_id)
        return True, "Team created successfully", team_id

    def update_team(self, team_id: str, name: str, entity_id: str = None) -> Tuple[bool, str]:
        name = (name or '').strip()
        if not name:
            return False, "Team name is required"

        try:
            rows = execute_update(
                "UPDATE divisions SET name = :name, entity_id = :entity_id WHERE id = :id",
                {'id': team_id, 'name': name, 'entity_id': entity_id or None},
                engine=self.engine,
            )
        except Exception as e:
            logger.error(f"Error updating team {team_id}: {e}")
            return False, f"Failed to update team: {e}"

        if rows == 0:
            return False, "Team not found"

        self._changed(team_id=team_id, entity_id=entity_id)
        return True, "Team updated successfully"

    def delete_team(self, team_id: str) -> Tuple[bool, str]:
        try:
            rows = execute_update(
                "DELETE FROM divisions WHERE id = :id",
                {'id': team_id},
                engine=self.engine,
            )
        except Exception as e:
            logger.error(f"Error deleting team {team_id}: {e}")
            return False, f"Failed to delete team: {e}"

        if rows == 0:
            return False, "Team not found"

        logger.info(f"Team {team_id} deleted by {self.actor.id}")
        self._changed(team_id=team_id)
        return True, "Team deleted successfully"


__all__ = ['OrgUnitManager']
