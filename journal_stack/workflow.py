from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

from .channel import Channel
from .errors import AttemptCancelled, ErrorKind, JournalError
from .image_store import ImageInput
from .repository import DiscoveryRepository, normalize_category

logger = logging.getLogger(__name__)

STAGE_DONE = ("Done", 1.0)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Processing:
    stage: str
    image: Any = field(repr=False)
    progress: float


@dataclass(frozen=True)
class Success:
    discovery_id: int


@dataclass(frozen=True)
class Error:
    message: str
    image: Any = field(default=None, repr=False)
    image_path: str | None = None
    kind: ErrorKind = ErrorKind.NETWORK


@dataclass(frozen=True)
class Cancelled:
    image_path: str | None = None


CaptureState = Union[Idle, Processing, Success, Error, Cancelled]


@dataclass
class _Attempt:
    token: int
    image: Any
    category: str
    owner_id: str
    capture_fields: dict[str, Any]
    image_path: str | None = None
    progress: float = 0.0


class CaptureWorkflow:
    """
    Drives one capture at a time from image to Success, Error or Cancelled.

    Callers must not submit while ``Processing``. Cancellation only moves the
    state; a result that arrives after it is dropped.
    """

    def __init__(self, repository: DiscoveryRepository, owner_id: str, *, cleanup_orphans: bool = True):
        if not owner_id:
            raise ValueError("owner_id must not be empty")
        self.repository = repository
        self.owner_id = owner_id
        self.cleanup_orphans = cleanup_orphans
        self._channel: Channel[CaptureState] = Channel(Idle(), name=f"capture:{owner_id}")
        self._token = 0
        self._attempt: _Attempt | None = None
        self._orphan: str | None = None
        self._in_flight: _Attempt | None = None
        self.history: list[CaptureState] = [Idle()]

    @property
    def state(self) -> CaptureState:
        return self._channel.value

    def states(self) -> AsyncIterator[CaptureState]:
        return self._channel.subscribe()

    def _set(self, state: CaptureState) -> None:
        self.history.append(state)
        self._channel.publish(state)

    async def process(self, image: ImageInput, category: str, **capture_fields: Any) -> CaptureState:
        if not isinstance(self.state, Idle):
            raise RuntimeError(f"cannot submit while {type(self.state).__name__}; reset first")
        category = normalize_category(category)
        self._token += 1
        attempt = _Attempt(
            token=self._token,
            image=image,
            category=category,
            owner_id=self.owner_id,
            capture_fields=capture_fields,
        )
        return await self._run(attempt)

    async def retry(self) -> CaptureState:
        state = self.state
        if not isinstance(state, Error) or self._attempt is None:
            raise RuntimeError("retry is only possible from Error")
        if state.image is None and state.image_path is None:
            raise RuntimeError("nothing to retry: the failed attempt kept no image")
        previous = self._attempt
        self._token += 1
        attempt = _Attempt(
            token=self._token,
            image=state.image,
            category=previous.category,
            owner_id=previous.owner_id,
            capture_fields=previous.capture_fields,
            image_path=state.image_path,
        )
        self._orphan = None
        return await self._run(attempt)

    def cancel(self) -> None:
        if not isinstance(self.state, Processing):
            return
        self._token += 1
        image_path = self._attempt.image_path if self._attempt else None
        self._orphan = image_path
        logger.info("Capture cancelled for %s", self.owner_id)
        self._set(Cancelled(image_path=image_path))

    async def reset(self) -> None:
        if isinstance(self.state, Processing):
            raise RuntimeError("cannot reset while Processing; cancel first")
        orphan = self._orphan
        self._token += 1
        self._attempt = None
        self._orphan = None
        # An attempt still in flight settles its own image when it returns.
        if orphan and self.cleanup_orphans and self._in_flight is None:
            await self.repository.discard_image(orphan)
        self.history = []
        self._set(Idle())

    def _release(self, image_path: str | None) -> None:
        if image_path and self._orphan == image_path:
            self._orphan = None

    def _on_stage_for(self, attempt: _Attempt):
        def _on_stage(stage: str, progress: float) -> None:
            if attempt.token != self._token:
                raise AttemptCancelled()
            attempt.progress = max(attempt.progress, progress)
            self._set(Processing(stage=stage, image=attempt.image, progress=attempt.progress))

        return _on_stage

    async def _run(self, attempt: _Attempt) -> CaptureState:
        self._attempt = attempt
        self._in_flight = attempt
        try:
            return await self._settle(attempt)
        finally:
            if self._in_flight is attempt:
                self._in_flight = None

    async def _settle(self, attempt: _Attempt) -> CaptureState:
        try:
            result = await self.repository.identify_and_save(
                attempt.owner_id,
                attempt.image,
                attempt.category,
                image_path=attempt.image_path,
                on_stage=self._on_stage_for(attempt),
                **attempt.capture_fields,
            )
        except AttemptCancelled as exc:
            logger.info("Dropped cancelled attempt %d", attempt.token)
            self._release(exc.image_path)
            if exc.image_path and self.cleanup_orphans:
                await self.repository.discard_image(exc.image_path)
            return self.state
        except JournalError as exc:
            result = None
            error: JournalError | None = exc
        except Exception as exc:
            logger.exception("Capture step crashed for %s", self.owner_id)
            result = None
            error = JournalError(f"{type(exc).__name__}: {exc}", kind=ErrorKind.NETWORK)
        else:
            error = result.error
            if result.image_path:
                attempt.image_path = result.image_path

        if attempt.token != self._token:
            # Cancelled or reset while the last step was in flight.
            if result is not None and result.ok:
                self._release(result.image_path)
                logger.info("Late result for cancelled attempt: discovery %s kept", result.discovery_id)
            elif result is not None and result.image_path:
                self._release(result.image_path)
                if self.cleanup_orphans:
                    await self.repository.discard_image(result.image_path)
            return self.state

        if error is not None:
            self._orphan = attempt.image_path
            logger.warning("Capture failed for %s (%s): %s", self.owner_id, error.kind.value, error)
            self._set(
                Error(
                    message=error.user_message,
                    image=attempt.image,
                    image_path=attempt.image_path,
                    kind=error.kind,
                )
            )
            return self.state

        self._set(Processing(stage=STAGE_DONE[0], image=attempt.image, progress=STAGE_DONE[1]))
        self._set(Success(discovery_id=result.discovery_id))
        return self.state
