# salescrm/events.py
"""
Cross-page invalidation events.

Writes publish an OrgEvent; readers subscribe the cache-clear of the data
they show. Handlers run synchronously in the publishing script run, so the
next st.rerun() already sees fresh data.

Page scripts are re-executed on every interaction, so they subscribe with a
``key``: a later subscription under the same key replaces the earlier one
instead of piling up.

Usage:
    from salescrm.events import bus, OrgEvent

    @bus.subscribe(OrgEvent.ORG_UNITS_CHANGED, key='admin.teams')
    def _refresh_teams(payload):
        load_teams.clear()

    bus.publish(OrgEvent.ORG_UNITS_CHANGED, {'team_id': team_id})
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Handler = Callable[[Optional[Dict[str, Any]]], None]


class OrgEvent(str, Enum):
    ORG_UNITS_CHANGED = 'org-units-changed'
    USERS_CHANGED = 'users-changed'
    TARGETS_CHANGED = 'targets-changed'
    PIPELINE_ITEM_ADDED = 'pipeline-item-added'


class EventBus:
    """Typed publish/subscribe registry keyed by OrgEvent."""

    def __init__(self):
        self._handlers: Dict[OrgEvent, List[Tuple[Optional[str], Handler]]] = defaultdict(list)

    def subscribe(self, event: OrgEvent, handler: Handler = None, key: str = None):
        """
        Register a handler. Usable directly or as a decorator.

        Args:
            event: Event to listen to
            handler: Callable receiving the payload dict (or None)
            key: Replace any handler previously registered under this key
        """
        def register(func: Handler) -> Handler:
            entries = self._handlers[event]
            if key is not None:
                entries[:] = [(k, h) for k, h in entries if k != key]
            elif any(h is func for _, h in entries):
                return func
            entries.append((key, func))
            return func

        if handler is not None:
            return register(handler)
        return register

    def unsubscribe(self, event: OrgEvent, handler: Handler = None, key: str = None) -> None:
        self._handlers[event] = [
            (k, h) for k, h in self._handlers[event]
            if not ((key is not None and k == key) or (handler is not None and h is handler))
        ]

    def handler_count(self, event: OrgEvent) -> int:
        return len(self._handlers[event])

    def publish(self, event: OrgEvent, payload: Dict[str, Any] = None) -> int:
        """
        Notify every handler of ``event``.

        A failing handler is logged and skipped; the write that triggered the
        event has already succeeded.

        Returns:
            Number of handlers that ran without error
        """
        delivered = 0
        for _key, handler in list(self._handlers[event]):
            try:
                handler(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)} failed for {event.value}: {e}")

        logger.debug(f"Published {event.value} to {delivered} handlers")
        return delivered

    def clear(self) -> None:
        self._handlers.clear()


# Process-wide bus shared by all pages
bus = EventBus()

__all__ = ['OrgEvent', 'EventBus', 'bus']
