"""Live queries: full-collection snapshots that follow every committed write.

A LiveQuery runs its query once on start and again after each change event
for its collection, always delivering the complete result list (never a
diff). Consumers replace their local list wholesale with every snapshot.

SubscriptionManager owns named slots ("tasks", "projects", ...). Each slot
holds at most one LiveQuery; re-subscribing a slot cancels the old query
before the new one starts, and snapshots from superseded queries are
dropped so stale data never overwrites newer data.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from paintcal.core import db_client
from paintcal.core.config import constants
from paintcal.core.errors import subscription_error_response
from paintcal.core.realtime import ChangeEvent, ChangeFeed, changefeed


logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Any]], None]
ClientSort = Callable[[list[Any]], list[Any]]


@dataclass(frozen=True)
class QuerySpec:
    """What a live query reads: collection, server-side filter and order."""

    collection: str
    filter_query: str = ""
    sort: str = ""
    client_sort: ClientSort | None = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the query; equal keys mean the same result set."""
        return (self.collection, self.filter_query, self.sort)


def _validate_records(spec: QuerySpec, records: list[dict[str, Any]], model: type[BaseModel] | None) -> list[Any]:
    """Parse records into ``model``, skipping (and logging) invalid ones."""
    if model is None:
        return records

    items = []
    for record in records:
        try:
            items.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning(
                "live_query_record_skipped",
                extra={"collection": spec.collection, "record_id": record.get("id"), "error": str(e)},
            )
    return items


async def fetch_once(spec: QuerySpec | None, *, model: type[BaseModel] | None = None) -> list[Any]:
    """Run a query a single time. Unlike a LiveQuery, failures propagate."""
    if spec is None:
        return []
    records = await db_client.list_records(
        collection=spec.collection,
        per_page=constants.SNAPSHOT_PAGE_SIZE,
        filter_query=spec.filter_query,
        sort=spec.sort,
    )
    items = _validate_records(spec, records, model)
    if spec.client_sort is not None:
        items = spec.client_sort(items)
    return items


class LiveQuery:
    """A cancellable live query against one collection."""

    def __init__(
        self,
        spec: QuerySpec,
        *,
        on_snapshot: SnapshotCallback,
        model: type[BaseModel] | None = None,
        feed: ChangeFeed | None = None,
    ) -> None:
        self.spec = spec
        self._on_snapshot = on_snapshot
        self._model = model
        self._feed = feed or changefeed
        self._snapshot: list[Any] = []
        self._dirty = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._runner: asyncio.Task | None = None
        self._unlisten: Callable[[], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cancelled = False
        self.failed = False

    @property
    def snapshot(self) -> list[Any]:
        """The most recently delivered snapshot."""
        return list(self._snapshot)

    @property
    def is_active(self) -> bool:
        """True between start() and cancel()."""
        return self._runner is not None and not self._cancelled

    async def start(self) -> None:
        """Register for change events, deliver the first snapshot, then follow changes."""
        if self._runner is not None or self._cancelled:
            return
        self._loop = asyncio.get_running_loop()
        # Listen before the first read so no write between the two is missed
        self._unlisten = self._feed.listen(self.spec.collection, self._on_change)
        self._idle.clear()
        await self._refresh()
        if self._cancelled:
            return
        self._runner = asyncio.create_task(self._run(), name=f"live_query:{self.spec.collection}")
        if not self._dirty.is_set():
            self._idle.set()

    def _on_change(self, event: ChangeEvent) -> None:
        if self._cancelled or self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._mark_dirty()
        else:
            self._loop.call_soon_threadsafe(self._mark_dirty)

    def _mark_dirty(self) -> None:
        self._idle.clear()
        self._dirty.set()

    async def _run(self) -> None:
        while not self._cancelled:
            await self._dirty.wait()
            # Events that arrive during the refresh below set the flag again
            self._dirty.clear()
            await self._refresh()
            if not self._dirty.is_set():
                self._idle.set()

    async def _refresh(self) -> None:
        try:
            items = await fetch_once(self.spec, model=self._model)
            self.failed = False
        except Exception as e:
            error_response = subscription_error_response(self.spec.collection)
            logger.warning(
                "live_query_failed",
                extra={
                    "collection": self.spec.collection,
                    "filter_query": self.spec.filter_query,
                    "error": str(e),
                    "error_code": error_response.code,
                },
            )
            self.failed = True
            items = []

        if self._cancelled:
            return
        self._snapshot = items
        self._on_snapshot(list(items))

    async def settled(self) -> None:
        """Wait until every change seen so far has been reflected in a snapshot."""
        await self._idle.wait()

    async def cancel(self) -> None:
        """Stop listening and delivering. Safe to call more than once."""
        self._cancelled = True
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None
        self._idle.set()
        if self._runner is not None:
            self._runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._runner


@dataclass
class _Slot:
    query: LiveQuery | None
    key: tuple[str, str, str] | None
    generation: int


class SubscriptionManager:
    """Registry of named live-query slots with deterministic teardown."""

    def __init__(self, *, feed: ChangeFeed | None = None) -> None:
        self._feed = feed or changefeed
        self._slots: dict[str, _Slot] = {}
        self._generation = 0
        self._closed = False

    async def subscribe(
        self,
        slot: str,
        spec: QuerySpec | None,
        *,
        on_snapshot: SnapshotCallback,
        model: type[BaseModel] | None = None,
    ) -> LiveQuery | None:
        """Point a slot at a query, replacing whatever it held before.

        A ``None`` spec means the caller may see nothing: the slot delivers
        one empty snapshot and holds no listener. Subscribing with the key
        the slot already holds keeps the running query.
        """
        if self._closed:
            raise RuntimeError("SubscriptionManager is closed")

        current = self._slots.get(slot)
        new_key = spec.key if spec is not None else None
        if current is not None and current.key == new_key and (current.query is None or current.query.is_active):
            return current.query

        if current is not None and current.query is not None:
            await current.query.cancel()

        self._generation += 1
        generation = self._generation

        if spec is None:
            self._slots[slot] = _Slot(query=None, key=None, generation=generation)
            logger.debug("Slot cleared", extra={"slot": slot})
            on_snapshot([])
            return None

        def _deliver(items: list[Any]) -> None:
            held = self._slots.get(slot)
            if held is None or held.generation != generation:
                logger.debug("Dropped stale snapshot", extra={"slot": slot, "collection": spec.collection})
                return
            on_snapshot(items)

        query = LiveQuery(spec, on_snapshot=_deliver, model=model, feed=self._feed)
        self._slots[slot] = _Slot(query=query, key=new_key, generation=generation)
        logger.debug(
            "Slot subscribed",
            extra={"slot": slot, "collection": spec.collection, "filter_query": spec.filter_query},
        )
        await query.start()
        return query

    async def unsubscribe(self, slot: str) -> None:
        """Cancel and forget a slot's query."""
        held = self._slots.pop(slot, None)
        if held is not None and held.query is not None:
            await held.query.cancel()

    def current(self, slot: str) -> LiveQuery | None:
        """The query a slot currently holds."""
        held = self._slots.get(slot)
        return held.query if held is not None else None

    def active_slots(self) -> list[str]:
        """Names of slots holding a running query."""
        return [name for name, held in self._slots.items() if held.query is not None and held.query.is_active]

    async def settled(self) -> None:
        """Wait until every held query has caught up with the change feed."""
        for held in list(self._slots.values()):
            if held.query is not None:
                await held.query.settled()

    async def close(self) -> None:
        """Cancel every slot; the manager cannot be used afterwards."""
        self._closed = True
        for slot in list(self._slots):
            await self.unsubscribe(slot)

    async def __aenter__(self) -> "SubscriptionManager":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
