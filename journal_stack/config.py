from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class JournalConfig:
    data_root: Path = Path(os.getenv("JOURNAL_DATA_ROOT", "~/.plant_journal")).expanduser()

    media_dir: Path = Path(os.getenv("JOURNAL_MEDIA_DIR", str(data_root / "media"))).expanduser()
    sqlite_path: Path = Path(os.getenv("JOURNAL_SQLITE_PATH", str(data_root / "journal.db"))).expanduser()

    # anthropic | gemini
    vision_provider: str = os.getenv("JOURNAL_VISION_PROVIDER", "anthropic")

    anthropic_api_key: str | None = os.getenv("ANTHROPIC_API_KEY")
    anthropic_model: str = os.getenv("JOURNAL_ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
    anthropic_base_url: str = os.getenv("JOURNAL_ANTHROPIC_BASE_URL", "https://api.anthropic.com")
    anthropic_version: str = "2023-06-01"

    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_model: str = os.getenv("JOURNAL_GEMINI_MODEL", "gemini-1.5-flash")
    gemini_base_url: str = os.getenv("JOURNAL_GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")

    request_timeout_s: float = float(os.getenv("JOURNAL_REQUEST_TIMEOUT_S", "60"))
    max_tokens: int = 1024

    max_upload_dim: int = 1568
    jpeg_quality: int = 90
    upload_jpeg_quality: int = 80

    cleanup_orphans: bool = _env_flag("JOURNAL_CLEANUP_ORPHANS", "true")


CATEGORIES: tuple[str, ...] = ("Flower", "Tree", "Insect", "Other")
DEFAULT_CATEGORY = "Flower"
ALL_CATEGORIES = "All"

DEFAULT_NAME = "Unidentified"
DEFAULT_FACT = "An interesting discovery!"

UNIDENTIFIABLE_NAME = "Unidentifiable subject"
UNIDENTIFIABLE_SENTINELS: tuple[str, ...] = (
    "unidentifiable",
    "non identifiable",
    "not identifiable",
)

NAME_MARKERS: tuple[str, ...] = ("NAME", "NOM")
FACT_MARKERS: tuple[str, ...] = ("FACT", "FAIT")

IDENTIFY_PROMPT = (
    "Identify the plant, flower or insect in this image and write a fun fact "
    "about it in two sentences.\n"
    "\n"
    "Reply ONLY in the following format, with no other text:\n"
    "NAME: [precise common name of the subject]\n"
    "FACT: [two interesting, fun sentences about it]\n"
    "\n"
    f'If you cannot clearly identify a plant, flower or insect, answer "{UNIDENTIFIABLE_NAME}" as the name.'
)
