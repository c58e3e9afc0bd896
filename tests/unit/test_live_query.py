"""Unit tests for live queries and the subscription manager."""

import pytest

from paintcal.core.config import constants
from paintcal.core.db_client import DatabaseError
from paintcal.core.live_query import LiveQuery, QuerySpec, SubscriptionManager, fetch_once
from paintcal.core.realtime import changefeed
from paintcal.domain.task import Task


TASKS = constants.TASKS_COLLECTION


def _maple_spec() -> QuerySpec:
    return QuerySpec(collection=TASKS, filter_query='project_id = "proj-maple"', sort="start_date")


def _oak_spec() -> QuerySpec:
    return QuerySpec(collection=TASKS, filter_query='project_id = "proj-oak"', sort="start_date")


class Recorder:
    """Collects delivered snapshots."""

    def __init__(self):
        self.snapshots: list[list] = []

    def __call__(self, items: list) -> None:
        self.snapshots.append(items)

    @property
    def last_ids(self) -> list[str]:
        return [item.id for item in self.snapshots[-1]]


@pytest.mark.unit
class TestFetchOnce:
    """Tests for fetch_once."""

    async def test_none_spec_is_empty(self, seeded_db):
        assert await fetch_once(None, model=Task) == []

    async def test_validates_into_model(self, seeded_db):
        tasks = await fetch_once(_maple_spec(), model=Task)

        assert {t.id for t in tasks} == {"task-wash", "task-body"}
        assert all(isinstance(t, Task) for t in tasks)

    async def test_client_sort_applied(self, seeded_db):
        spec = QuerySpec(collection=TASKS, client_sort=lambda items: sorted(items, key=lambda t: t.name))

        tasks = await fetch_once(spec, model=Task)

        assert [t.name for t in tasks] == ["Body coat", "Other", "Powerwash"]

    async def test_invalid_records_skipped(self, seeded_db):
        await seeded_db.create_record(collection=TASKS, data={"project_id": "proj-maple"}, record_id="broken")

        tasks = await fetch_once(_maple_spec(), model=Task)

        assert "broken" not in {t.id for t in tasks}
        assert len(tasks) == 2

    async def test_failure_propagates(self, seeded_db, monkeypatch):
        async def failing_list(**kwargs):
            raise DatabaseError("database is locked")

        monkeypatch.setattr("paintcal.core.db_client.list_records", failing_list)

        with pytest.raises(DatabaseError):
            await fetch_once(_maple_spec(), model=Task)


@pytest.mark.unit
class TestLiveQuery:
    """Tests for LiveQuery snapshot delivery."""

    async def test_initial_snapshot_on_start(self, seeded_db):
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)

        await query.start()

        assert len(recorder.snapshots) == 1
        assert set(recorder.last_ids) == {"task-wash", "task-body"}
        await query.cancel()

    async def test_follows_writes_with_full_snapshots(self, seeded_db):
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)
        await query.start()

        await seeded_db.create_record(
            collection=TASKS,
            data={"project_id": "proj-maple", "name": "Trim", "start_date": "", "due_date": ""},
            record_id="task-trim",
        )
        await query.settled()

        assert set(recorder.last_ids) == {"task-wash", "task-body", "task-trim"}

        await seeded_db.delete_record(collection=TASKS, record_id="task-wash")
        await query.settled()

        assert set(recorder.last_ids) == {"task-body", "task-trim"}
        await query.cancel()

    async def test_update_is_reflected(self, seeded_db):
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)
        await query.start()

        await seeded_db.update_record(collection=TASKS, record_id="task-body", data={"status": "completed"})
        await query.settled()

        body = next(t for t in recorder.snapshots[-1] if t.id == "task-body")
        assert body.status == "completed"
        await query.cancel()

    async def test_failure_delivers_empty_list(self, seeded_db, monkeypatch, caplog):
        async def failing_list(**kwargs):
            raise DatabaseError("database is locked")

        monkeypatch.setattr("paintcal.core.db_client.list_records", failing_list)
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)

        await query.start()

        assert recorder.snapshots == [[]]
        assert query.failed is True
        assert "live_query_failed" in caplog.text
        await query.cancel()

    async def test_recovers_after_failure(self, seeded_db, monkeypatch):
        real_list = seeded_db.list_records

        async def failing_list(**kwargs):
            raise DatabaseError("database is locked")

        monkeypatch.setattr("paintcal.core.db_client.list_records", failing_list)
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)
        await query.start()

        monkeypatch.setattr("paintcal.core.db_client.list_records", real_list)
        await seeded_db.update_record(collection=TASKS, record_id="task-body", data={"status": "completed"})
        await query.settled()

        assert query.failed is False
        assert set(recorder.last_ids) == {"task-wash", "task-body"}
        await query.cancel()

    async def test_other_collections_do_not_trigger(self, seeded_db):
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)
        await query.start()

        await seeded_db.create_record(collection=constants.NO_WORK_DAYS_COLLECTION, data={"date": "2024-03-05"})
        await query.settled()

        assert len(recorder.snapshots) == 1
        await query.cancel()

    async def test_nothing_delivered_after_cancel(self, seeded_db):
        recorder = Recorder()
        query = LiveQuery(_maple_spec(), model=Task, on_snapshot=recorder)
        await query.start()

        await query.cancel()
        await query.cancel()
        await seeded_db.delete_record(collection=TASKS, record_id="task-wash")

        assert len(recorder.snapshots) == 1
        assert query.is_active is False
        assert changefeed.listener_count(TASKS) == 0


@pytest.mark.unit
class TestSubscriptionManager:
    """Tests for SubscriptionManager slots."""

    async def test_resubscribe_replaces_listener(self, seeded_db):
        manager = SubscriptionManager()
        recorder = Recorder()

        await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=recorder)
        await manager.subscribe("tasks", _oak_spec(), model=Task, on_snapshot=recorder)

        assert changefeed.listener_count(TASKS) == 1
        assert recorder.last_ids == ["task-other"]
        await manager.close()

    async def test_same_spec_keeps_running_query(self, seeded_db):
        manager = SubscriptionManager()
        recorder = Recorder()

        first = await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=recorder)
        second = await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=recorder)

        assert first is second
        assert len(recorder.snapshots) == 1
        await manager.close()

    async def test_none_spec_delivers_empty_and_holds_nothing(self, seeded_db):
        manager = SubscriptionManager()
        recorder = Recorder()
        await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=recorder)

        result = await manager.subscribe("tasks", None, on_snapshot=recorder)

        assert result is None
        assert recorder.snapshots[-1] == []
        assert manager.active_slots() == []
        assert changefeed.listener_count(TASKS) == 0

    async def test_stale_snapshot_dropped(self, seeded_db):
        manager = SubscriptionManager()
        recorder = Recorder()
        old = await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=recorder)
        await manager.subscribe("tasks", _oak_spec(), model=Task, on_snapshot=recorder)
        delivered = len(recorder.snapshots)

        # A snapshot still in flight from the superseded query
        old._on_snapshot([])

        assert len(recorder.snapshots) == delivered
        assert recorder.last_ids == ["task-other"]
        await manager.close()

    async def test_slots_are_independent(self, seeded_db):
        manager = SubscriptionManager()
        tasks = Recorder()
        templates = Recorder()

        await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=tasks)
        await manager.subscribe(
            "task_templates",
            QuerySpec(collection=constants.TASK_TEMPLATES_COLLECTION, sort="name"),
            on_snapshot=templates,
        )

        assert sorted(manager.active_slots()) == ["task_templates", "tasks"]
        assert [r["name"] for r in templates.snapshots[-1]] == ["Body coat", "Other", "Powerwash"]
        await manager.unsubscribe("tasks")
        assert manager.active_slots() == ["task_templates"]
        await manager.close()

    async def test_closed_manager_rejects_subscriptions(self, seeded_db):
        async with SubscriptionManager() as manager:
            await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=Recorder())

        assert changefeed.listener_count() == 0
        with pytest.raises(RuntimeError, match="closed"):
            await manager.subscribe("tasks", _maple_spec(), model=Task, on_snapshot=Recorder())
