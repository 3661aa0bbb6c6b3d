from __future__ import annotations

import inspect
import logging
import sqlite3
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Union

from .config import CATEGORIES
from .errors import AttemptCancelled, JournalError, StorageError, UnidentifiableSubject
from .image_store import ImageInput, ImageStore
from .models import Discovery, NewDiscovery, PipelineResult
from .parser import is_unidentifiable
from .store import DiscoveryStore
from .utils import now_millis
from .vision_client import VisionClient

logger = logging.getLogger(__name__)

StageCallback = Callable[[str, float], Union[None, Awaitable[None]]]

STAGE_SAVING_IMAGE = ("Saving image", 0.2)
STAGE_IDENTIFYING = ("Identifying", 0.5)
STAGE_SAVING_DISCOVERY = ("Saving discovery", 0.8)


def normalize_category(category: str) -> str:
    for known in CATEGORIES:
        if known.lower() == (category or "").strip().lower():
            return known
    raise ValueError(f"Unknown category {category!r}; expected one of {', '.join(CATEGORIES)}")


class DiscoveryRepository:
    def __init__(self, image_store: ImageStore, client: VisionClient, store: DiscoveryStore):
        self.image_store = image_store
        self.client = client
        self.store = store

    @staticmethod
    async def _stage(on_stage: StageCallback | None, stage: tuple[str, float]) -> None:
        if on_stage is None:
            return
        result = on_stage(*stage)
        if inspect.isawaitable(result):
            await result

    async def identify_and_save(
        self,
        owner_id: str,
        image: ImageInput | None,
        category: str,
        *,
        image_path: str | None = None,
        captured_at: int | None = None,
        location: str = "",
        notes: str = "",
        on_stage: StageCallback | None = None,
    ) -> PipelineResult:
        """
        Save the image, identify it, and persist the discovery.

        Each step failing ends the attempt with ``PipelineResult.error`` set;
        nothing is retried here. Passing ``image_path`` (an image saved by an
        earlier attempt) skips the first step. ``on_stage`` runs before every
        step and may raise ``AttemptCancelled`` to stop the attempt.
        """
        category = normalize_category(category)
        captured_at = captured_at if captured_at is not None else now_millis()

        if image_path is None:
            await self._stage(on_stage, STAGE_SAVING_IMAGE)
            if image is None:
                return PipelineResult(error=StorageError("no image to save"))
            try:
                image_path = await self.image_store.save(image, owner_id)
            except StorageError as exc:
                logger.warning("Image save failed for %s: %s", owner_id, exc)
                return PipelineResult(error=exc)

        try:
            await self._stage(on_stage, STAGE_IDENTIFYING)
        except AttemptCancelled as exc:
            exc.image_path = image_path
            raise
        result = await self.client.identify(image_path)
        if not result.ok:
            return PipelineResult(image_path=image_path, error=result.error)

        identification = result.identification
        if is_unidentifiable(identification.name):
            logger.info("Subject in %s reported unidentifiable", image_path)
            return PipelineResult(
                image_path=image_path,
                identification=identification,
                error=UnidentifiableSubject(identification.name),
            )

        try:
            await self._stage(on_stage, STAGE_SAVING_DISCOVERY)
        except AttemptCancelled as exc:
            exc.image_path = image_path
            raise
        if not Path(image_path).exists():
            logger.warning("Image %s vanished before insert", image_path)
        try:
            discovery_id = await self.store.insert(
                NewDiscovery(
                    owner_id=owner_id,
                    name=identification.name,
                    fact=identification.fact,
                    image_path=image_path,
                    category=category,
                    captured_at=captured_at,
                    location=location,
                    notes=notes,
                )
            )
        except (sqlite3.Error, OSError, ValueError) as exc:
            logger.warning("Discovery insert failed for %s: %s", owner_id, exc)
            return PipelineResult(
                image_path=image_path,
                identification=identification,
                error=StorageError(f"{type(exc).__name__}: {exc}"),
            )

        return PipelineResult(discovery_id=discovery_id, image_path=image_path, identification=identification)

    async def get_discovery(self, discovery_id: int) -> Discovery | None:
        return await self.store.get_by_id(discovery_id)

    async def update_category(self, discovery_id: int, category: str) -> Discovery | None:
        category = normalize_category(category)
        current = await self.store.get_by_id(discovery_id)
        if current is None:
            return None
        if current.category == category:
            return current
        updated = current.with_category(category)
        await self.store.update(updated)
        return updated

    async def delete_discovery(self, discovery_id: int) -> None:
        await self.store.delete_by_id(discovery_id)

    async def delete_all_for_owner(self, owner_id: str) -> int:
        return await self.store.delete_all_by_owner(owner_id)

    async def list_discoveries(self, owner_id: str) -> list[Discovery]:
        return await self.store.list_by_owner(owner_id)

    def stream_discoveries(self, owner_id: str) -> AsyncIterator[list[Discovery]]:
        return self.store.stream_by_owner(owner_id)

    async def discard_image(self, image_path: str) -> bool:
        try:
            return await self.image_store.delete(image_path)
        except JournalError as exc:
            logger.warning("Could not discard %s: %s", image_path, exc)
            return False
