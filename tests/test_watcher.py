"""PIPELINE_ITEM_ADDED detection for items written by the external workflow."""

from conftest import insert_row
from salescrm.events import bus, OrgEvent
from salescrm.pipeline import PipelineItemWatcher


def _item(engine, opp_id):
    insert_row(engine, 'pipeline_items', opportunity_id=opp_id, cost_of_goods=10,
               service_costs=0, other_expenses=0, status='won')


def test_first_poll_only_records(engine):
    events = []
    bus.subscribe(OrgEvent.PIPELINE_ITEM_ADDED, events.append)
    _item(engine, 'o1')

    assert PipelineItemWatcher(engine).poll() is False
    assert events == []


def test_new_items_publish_once(engine):
    events = []
    bus.subscribe(OrgEvent.PIPELINE_ITEM_ADDED, events.append)
    watcher = PipelineItemWatcher(engine)
    watcher.poll()

    _item(engine, 'o1')
    _item(engine, 'o2')

    assert watcher.poll() is True
    assert events == [{'added': 2, 'total': 2}]
    assert watcher.poll() is False
    assert len(events) == 1


def test_read_error_publishes_nothing(engine):
    events = []
    bus.subscribe(OrgEvent.PIPELINE_ITEM_ADDED, events.append)
    watcher = PipelineItemWatcher(engine)
    watcher.poll()

    with engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE pipeline_items")

    assert watcher.poll() is False
    assert events == []
