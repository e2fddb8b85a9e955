# salescrm/pipeline/watcher.py
"""
Detection of pipeline items written outside the app.

Pipeline items are created by the external sales workflow, so no write in
this app can announce them. Pages poll the watcher once per run; when the
number of items grew since the last poll it publishes PIPELINE_ITEM_ADDED
and the subscribed caches are cleared before anything is read.

Usage:
    from salescrm.pipeline import pipeline_watcher

    bus.subscribe(OrgEvent.PIPELINE_ITEM_ADDED, _clear_all, key='dashboard.pipeline')
    pipeline_watcher.poll()
"""

import logging
import threading
from typing import Optional

from ..db import execute_query
from ..events import bus, OrgEvent

logger = logging.getLogger(__name__)


class PipelineItemWatcher:
    """Publishes PIPELINE_ITEM_ADDED when pipeline_items gained rows."""

    def __init__(self, engine=None):
        self.engine = engine
        self._last_count: Optional[int] = None
        self._lock = threading.Lock()

    def _count(self) -> Optional[int]:
        try:
            rows = execute_query("SELECT COUNT(*) AS item_count FROM pipeline_items", engine=self.engine)
        except Exception as e:
            logger.error(f"Error counting pipeline items: {e}")
            return None
        return int(rows[0]['item_count']) if rows else 0

    def poll(self) -> bool:
        """
        Compare the item count with the previous poll.

        The first poll only records the count.

        Returns:
            True when new items were found and the event was published
        """
        count = self._count()
        if count is None:
            return False

        with self._lock:
            previous, self._last_count = self._last_count, count

        if previous is None or count <= previous:
            return False

        logger.info(f"{count - previous} new pipeline items detected")
        bus.publish(OrgEvent.PIPELINE_ITEM_ADDED, {'added': count - previous, 'total': count})
        return True


# Process-wide watcher shared by all pages, like the st.cache_data caches it clears
pipeline_watcher = PipelineItemWatcher()

__all__ = ['PipelineItemWatcher', 'pipeline_watcher']
