from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import AsyncIterator, Callable, TypeVar

from .channel import Channel
from .config import JournalConfig
from .db import (
    connect_sqlite,
    delete_discoveries_by_owner,
    delete_discovery_by_id,
    ensure_schema,
    get_discovery_by_id,
    get_owner_of,
    insert_discovery,
    list_discoveries_by_owner,
    update_discovery,
)
from .models import Discovery, NewDiscovery

logger = logging.getLogger(__name__)

R = TypeVar("R")


class DiscoveryStore:
    """
    Async record store over one SQLite connection.

    Every call runs in a worker thread under a single lock, so writes are
    serialized here and callers never lock. Each owner has a change channel
    carrying a version counter; ``stream_by_owner`` re-reads the owner's list
    whenever it ticks.
    """

    def __init__(self, cfg: JournalConfig | None = None, *, conn: sqlite3.Connection | None = None):
        self.cfg = cfg or JournalConfig()
        self._conn = conn or connect_sqlite(self.cfg)
        ensure_schema(self._conn)
        self._lock = asyncio.Lock()
        self._channels: dict[str, Channel[int]] = {}

    async def _run(self, fn: Callable[..., R], *args) -> R:
        async with self._lock:
            return await asyncio.to_thread(fn, self._conn, *args)

    def _channel(self, owner_id: str) -> Channel[int]:
        channel = self._channels.get(owner_id)
        if channel is None:
            channel = Channel(0, name=f"discoveries:{owner_id}")
            self._channels[owner_id] = channel
        return channel

    def _notify(self, *owner_ids: str | None) -> None:
        for owner_id in {o for o in owner_ids if o}:
            channel = self._channels.get(owner_id)
            if channel is not None:
                channel.publish(channel.value + 1)

    async def insert(self, record: NewDiscovery | Discovery) -> int:
        previous_owner = None
        if isinstance(record, Discovery):
            previous_owner = await self._run(get_owner_of, record.id)
        discovery_id = await self._run(insert_discovery, record)
        logger.info("Inserted discovery %s for %s", discovery_id, record.owner_id)
        self._notify(record.owner_id, previous_owner)
        return discovery_id

    async def get_by_id(self, discovery_id: int) -> Discovery | None:
        return await self._run(get_discovery_by_id, discovery_id)

    async def update(self, record: Discovery) -> None:
        previous_owner = await self._run(get_owner_of, record.id)
        changed = await self._run(update_discovery, record)
        if changed:
            self._notify(record.owner_id, previous_owner)

    async def delete_by_id(self, discovery_id: int) -> None:
        owner_id = await self._run(get_owner_of, discovery_id)
        if owner_id is None:
            return
        await self._run(delete_discovery_by_id, discovery_id)
        logger.info("Deleted discovery %s", discovery_id)
        self._notify(owner_id)

    async def delete_all_by_owner(self, owner_id: str) -> int:
        removed = await self._run(delete_discoveries_by_owner, owner_id)
        if removed:
            logger.info("Deleted %d discoveries for %s", removed, owner_id)
            self._notify(owner_id)
        return removed

    async def list_by_owner(self, owner_id: str) -> list[Discovery]:
        return await self._run(list_discoveries_by_owner, owner_id)

    async def stream_by_owner(self, owner_id: str) -> AsyncIterator[list[Discovery]]:
        changes = self._channel(owner_id).subscribe()
        try:
            async for _version in changes:
                yield await self.list_by_owner(owner_id)
        finally:
            await changes.aclose()

    def close(self) -> None:
        for channel in self._channels.values():
            channel.close()
        self._conn.close()
