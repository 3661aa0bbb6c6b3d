from __future__ import annotations

import asyncio
from enum import Enum
from typing import AsyncIterator, Iterable

from .channel import Channel
from .config import ALL_CATEGORIES
from .models import Discovery
from .repository import DiscoveryRepository
from .session import OwnerSession


class SortOrder(str, Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"


def _matches_text(record: Discovery, needle: str) -> bool:
    haystacks = (record.name, record.category, record.location, record.notes)
    return any(needle in (h or "").casefold() for h in haystacks)


def project_discoveries(
    records: Iterable[Discovery],
    search_text: str = "",
    category: str = ALL_CATEGORIES,
    sort: SortOrder = SortOrder.DATE_DESC,
) -> list[Discovery]:
    """Text filter, then category filter, then sort. Pure; inputs are not modified."""
    items = list(records)

    needle = (search_text or "").strip().casefold()
    if needle:
        items = [r for r in items if _matches_text(r, needle)]

    wanted = (category or ALL_CATEGORIES).strip().casefold()
    if wanted != ALL_CATEGORIES.casefold():
        items = [r for r in items if (r.category or "").casefold() == wanted]

    sort = SortOrder(sort)
    if sort is SortOrder.DATE_DESC:
        return sorted(items, key=lambda r: r.captured_at, reverse=True)
    if sort is SortOrder.DATE_ASC:
        return sorted(items, key=lambda r: r.captured_at)
    if sort is SortOrder.NAME_ASC:
        return sorted(items, key=lambda r: r.name.casefold())
    return sorted(items, key=lambda r: r.name.casefold(), reverse=True)


async def _wait_ready(task: asyncio.Task, ready: asyncio.Event) -> None:
    waiter = asyncio.create_task(ready.wait())
    done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    if waiter not in done:
        waiter.cancel()
        task.result()


class JournalView:
    """
    Live journal list for one owner.

    Recomputes whenever the owner's records, the search text, the category
    filter or the sort order changes, and publishes the result on a channel.
    """

    def __init__(self, repository: DiscoveryRepository):
        self.repository = repository
        self.owner_id: str | None = None
        self.search_text = ""
        self.category = ALL_CATEGORIES
        self.sort = SortOrder.DATE_DESC
        self._records: list[Discovery] = []
        self._channel: Channel[list[Discovery]] = Channel([], name="journal")
        self._task: asyncio.Task | None = None
        self._session_task: asyncio.Task | None = None

    @property
    def items(self) -> list[Discovery]:
        return self._channel.value

    @property
    def records(self) -> list[Discovery]:
        return list(self._records)

    def updates(self) -> AsyncIterator[list[Discovery]]:
        return self._channel.subscribe()

    def _recompute(self) -> None:
        self._channel.publish(project_discoveries(self._records, self.search_text, self.category, self.sort))

    def set_search_text(self, text: str) -> None:
        self.search_text = text or ""
        self._recompute()

    def clear_search(self) -> None:
        self.set_search_text("")

    def set_category(self, category: str) -> None:
        self.category = category or ALL_CATEGORIES
        self._recompute()

    def set_sort(self, sort: SortOrder | str) -> None:
        self.sort = SortOrder(sort)
        self._recompute()

    async def _follow_records(self, owner_id: str, ready: asyncio.Event) -> None:
        async for snapshot in self.repository.stream_discoveries(owner_id):
            self._records = snapshot
            self._recompute()
            ready.set()

    async def bind(self, owner_id: str) -> None:
        """Scope the view to ``owner_id``; returns once the first snapshot is in."""
        await self.unbind()
        self.owner_id = owner_id
        ready = asyncio.Event()
        self._task = asyncio.create_task(self._follow_records(owner_id, ready))
        await _wait_ready(self._task, ready)

    async def unbind(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.owner_id = None
        self._records = []
        self._recompute()

    async def follow(self, session: OwnerSession) -> None:
        """Rebind whenever the signed-in owner changes."""
        if self._session_task is not None:
            self._session_task.cancel()
        ready = asyncio.Event()

        async def _track() -> None:
            async for owner_id in session.changes():
                if owner_id != self.owner_id:
                    if owner_id:
                        await self.bind(owner_id)
                    else:
                        await self.unbind()
                ready.set()

        self._session_task = asyncio.create_task(_track())
        await _wait_ready(self._session_task, ready)

    async def delete(self, discovery_id: int) -> None:
        await self.repository.delete_discovery(discovery_id)

    async def close(self) -> None:
        if self._session_task is not None:
            self._session_task.cancel()
            try:
                await self._session_task
            except asyncio.CancelledError:
                pass
            self._session_task = None
        await self.unbind()
        self._channel.close()
