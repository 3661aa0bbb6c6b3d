from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import httpx

from .config import ALL_CATEGORIES, JournalConfig
from .image_store import ImageStore
from .journal_view import SortOrder, project_discoveries
from .repository import DiscoveryRepository
from .store import DiscoveryStore
from .vision_client import get_client
from .workflow import CaptureWorkflow, Error, Success


@asynccontextmanager
async def open_repository(
    cfg: JournalConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[DiscoveryRepository]:
    cfg = cfg or JournalConfig()
    image_store = ImageStore(cfg)
    store = DiscoveryStore(cfg)
    client = get_client(cfg, image_store=image_store, transport=transport)
    try:
        yield DiscoveryRepository(image_store, client, store)
    finally:
        await client.aclose()
        store.close()


async def capture_async(
    image_path: str,
    owner_id: str,
    category: str,
    *,
    location: str = "",
    notes: str = "",
    cfg: JournalConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    cfg = cfg or JournalConfig()
    async with open_repository(cfg, transport=transport) as repo:
        workflow = CaptureWorkflow(repo, owner_id, cleanup_orphans=cfg.cleanup_orphans)
        state = await workflow.process(Path(image_path), category, location=location, notes=notes)
        stages = [s.stage for s in workflow.history if hasattr(s, "stage")]
        if isinstance(state, Success):
            discovery = await repo.get_discovery(state.discovery_id)
            return {"status": "success", "stages": stages, "discovery": discovery.to_dict() if discovery else None}
        if isinstance(state, Error):
            out = {"status": "error", "stages": stages, "kind": state.kind.value, "message": state.message}
            await workflow.reset()
            return out
        return {"status": type(state).__name__.lower(), "stages": stages}


def capture(image_path: str, owner_id: str, category: str, *, location: str = "", notes: str = "", cfg: JournalConfig | None = None) -> dict[str, Any]:
    return asyncio.run(capture_async(image_path, owner_id, category, location=location, notes=notes, cfg=cfg))


async def list_discoveries_async(
    owner_id: str,
    *,
    search: str = "",
    category: str = ALL_CATEGORIES,
    sort: str = SortOrder.DATE_DESC.value,
    cfg: JournalConfig | None = None,
) -> list[dict[str, Any]]:
    async with open_repository(cfg) as repo:
        records = await repo.list_discoveries(owner_id)
    return [r.to_dict() for r in project_discoveries(records, search, category, SortOrder(sort))]


def list_discoveries(owner_id: str, *, search: str = "", category: str = ALL_CATEGORIES, sort: str = "date_desc", cfg: JournalConfig | None = None) -> list[dict[str, Any]]:
    return asyncio.run(list_discoveries_async(owner_id, search=search, category=category, sort=sort, cfg=cfg))


async def _get(discovery_id: int, cfg: JournalConfig | None) -> dict[str, Any] | None:
    async with open_repository(cfg) as repo:
        discovery = await repo.get_discovery(discovery_id)
    return discovery.to_dict() if discovery else None


def get_discovery(discovery_id: int, cfg: JournalConfig | None = None) -> dict[str, Any] | None:
    return asyncio.run(_get(discovery_id, cfg))


async def _set_category(discovery_id: int, category: str, cfg: JournalConfig | None) -> dict[str, Any]:
    async with open_repository(cfg) as repo:
        updated = await repo.update_category(discovery_id, category)
    if updated is None:
        return {"status": "not_found", "id": discovery_id}
    return {"status": "updated", "discovery": updated.to_dict()}


def set_category(discovery_id: int, category: str, cfg: JournalConfig | None = None) -> dict[str, Any]:
    return asyncio.run(_set_category(discovery_id, category, cfg))


async def _delete(discovery_id: int, cfg: JournalConfig | None) -> dict[str, Any]:
    async with open_repository(cfg) as repo:
        await repo.delete_discovery(discovery_id)
    return {"status": "deleted", "id": discovery_id}


def delete_discovery(discovery_id: int, cfg: JournalConfig | None = None) -> dict[str, Any]:
    return asyncio.run(_delete(discovery_id, cfg))


async def _delete_all(owner_id: str, cfg: JournalConfig | None) -> dict[str, Any]:
    async with open_repository(cfg) as repo:
        removed = await repo.delete_all_for_owner(owner_id)
    return {"status": "deleted", "owner_id": owner_id, "removed": removed}


def delete_all(owner_id: str, cfg: JournalConfig | None = None) -> dict[str, Any]:
    return asyncio.run(_delete_all(owner_id, cfg))
