from __future__ import annotations

import logging
from typing import Protocol

import httpx

from .config import JournalConfig
from .errors import ErrorKind, IdentificationError, StorageError
from .image_store import ImageStore
from .models import IdentifyResult
from .parser import parse_reply

logger = logging.getLogger(__name__)

# Checked in order; first hit wins. Status codes are matched before substrings.
_STATUS_KINDS: dict[int, ErrorKind] = {
    401: ErrorKind.AUTH,
    403: ErrorKind.PERMISSION,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.QUOTA,
}

_DETAIL_KINDS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.AUTH, ("invalid x-api-key", "api key", "api_key", "authentication", "unauthenticated", "unauthorized")),
    (ErrorKind.NOT_FOUND, ("not_found", "not found")),
    (ErrorKind.QUOTA, ("rate limit", "rate_limit", "quota", "resource_exhausted", "overloaded", "too many requests")),
    (ErrorKind.PERMISSION, ("permission", "forbidden")),
)


def classify_error(status_code: int | None = None, detail: str = "") -> ErrorKind:
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    lowered = (detail or "").lower()
    for kind, needles in _DETAIL_KINDS:
        if any(needle in lowered for needle in needles):
            return kind
    return ErrorKind.NETWORK


def error_from_response(response: httpx.Response) -> IdentificationError:
    detail = f"{response.status_code}: {response.text[:500]}"
    return IdentificationError(detail, kind=classify_error(response.status_code, response.text))


class VisionClient(Protocol):
    provider_name: str

    async def identify(self, image_path: str) -> IdentifyResult: ...

    async def aclose(self) -> None: ...


class BaseVisionClient:
    """
    Shared ``identify`` flow for HTTP vision providers.

    Subclasses implement ``request_text`` and raise ``IdentificationError``
    (or let ``httpx`` errors escape); ``identify`` turns everything into an
    ``IdentifyResult`` and never raises.
    """

    provider_name = "base"

    def __init__(
        self,
        cfg: JournalConfig | None = None,
        *,
        image_store: ImageStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cfg = cfg or JournalConfig()
        self.image_store = image_store or ImageStore(self.cfg)
        self._client = httpx.AsyncClient(timeout=self.cfg.request_timeout_s, transport=transport)

    async def request_text(self, media_type: str, data: str) -> str:
        raise NotImplementedError

    async def identify(self, image_path: str) -> IdentifyResult:
        try:
            media_type, data = await self.image_store.load_encoded(image_path)
            text = await self.request_text(media_type, data)
        except IdentificationError as exc:
            logger.warning("%s identification failed (%s): %s", self.provider_name, exc.kind.value, exc.detail)
            return IdentifyResult.failure(exc)
        except StorageError as exc:
            logger.warning("%s could not load %s: %s", self.provider_name, image_path, exc)
            return IdentifyResult.failure(IdentificationError(str(exc), kind=ErrorKind.STORAGE))
        except httpx.HTTPError as exc:
            kind = classify_error(None, str(exc))
            logger.warning("%s request error (%s): %s", self.provider_name, kind.value, exc)
            return IdentifyResult.failure(IdentificationError(f"{type(exc).__name__}: {exc}", kind=kind))
        except Exception as exc:
            logger.exception("%s unexpected identification error", self.provider_name)
            return IdentifyResult.failure(
                IdentificationError(f"{type(exc).__name__}: {exc}", kind=classify_error(None, str(exc)))
            )

        identification = parse_reply(text)
        logger.info("%s identified %r (degraded=%s)", self.provider_name, identification.name, identification.degraded)
        return IdentifyResult.success(identification)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def get_client(
    cfg: JournalConfig | None = None,
    *,
    image_store: ImageStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BaseVisionClient:
    cfg = cfg or JournalConfig()
    provider = (cfg.vision_provider or "").strip().lower()
    if provider == "anthropic":
        from .anthropic_client import AnthropicVisionClient

        return AnthropicVisionClient(cfg, image_store=image_store, transport=transport)
    if provider == "gemini":
        from .gemini_client import GeminiVisionClient

        return GeminiVisionClient(cfg, image_store=image_store, transport=transport)
    raise ValueError(f"Unknown vision provider: {cfg.vision_provider}")
