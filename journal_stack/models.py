from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any

from .errors import IdentificationError, JournalError


@dataclass(frozen=True)
class NewDiscovery:
    owner_id: str
    name: str
    fact: str
    image_path: str
    category: str
    captured_at: int
    created_at: int | None = None
    location: str = ""
    notes: str = ""


@dataclass(frozen=True)
class Discovery:
    id: int
    owner_id: str
    name: str
    fact: str
    image_path: str
    category: str
    captured_at: int
    created_at: int
    location: str = ""
    notes: str = ""

    def with_category(self, category: str) -> "Discovery":
        return replace(self, category=category)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Identification:
    name: str
    fact: str
    degraded: bool = False
    raw_text: str = field(default="", repr=False)


@dataclass(frozen=True)
class IdentifyResult:
    identification: Identification | None = None
    error: IdentificationError | None = None

    @property
    def ok(self) -> bool:
        return self.identification is not None and self.error is None

    @classmethod
    def success(cls, identification: Identification) -> "IdentifyResult":
        return cls(identification=identification)

    @classmethod
    def failure(cls, error: IdentificationError) -> "IdentifyResult":
        return cls(error=error)


@dataclass(frozen=True)
class PipelineResult:
    discovery_id: int | None = None
    image_path: str | None = None
    identification: Identification | None = None
    error: JournalError | None = None

    @property
    def ok(self) -> bool:
        return self.discovery_id is not None and self.error is None
