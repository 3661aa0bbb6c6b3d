from __future__ import annotations

import asyncio
import base64
import io
import logging
from pathlib import Path
from typing import Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import JournalConfig
from .errors import StorageError
from .utils import now_millis, safe_segment

logger = logging.getLogger(__name__)

ImageInput = Union[Image.Image, bytes, str, Path]


def _unique_dest(directory: Path, name: str) -> Path:
    candidate = directory / name
    if not candidate.exists():
        return candidate
    stem = Path(name).stem
    suffix = Path(name).suffix
    i = 1
    while True:
        alt = directory / f"{stem}_{i}{suffix}"
        if not alt.exists():
            return alt
        i += 1


def _open_image(image: ImageInput) -> Image.Image:
    if isinstance(image, Image.Image):
        return image
    if isinstance(image, (bytes, bytearray)):
        img = Image.open(io.BytesIO(image))
    else:
        img = Image.open(Path(image))
    img.load()
    return img


def _to_rgb(img: Image.Image) -> Image.Image:
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


class ImageStore:
    def __init__(self, cfg: JournalConfig | None = None):
        self.cfg = cfg or JournalConfig()
        self.root = self.cfg.media_dir / "discoveries"

    def owner_dir(self, owner_id: str) -> Path:
        return self.root / safe_segment(owner_id)

    def _save_sync(self, image: ImageInput, owner_id: str) -> str:
        try:
            img = _to_rgb(_open_image(image))
            directory = self.owner_dir(owner_id)
            directory.mkdir(parents=True, exist_ok=True)
            dest = _unique_dest(directory, f"discovery_{now_millis()}.jpg")
            with open(dest, "xb") as fh:
                img.save(fh, format="JPEG", quality=self.cfg.jpeg_quality)
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError) as exc:
            raise StorageError(f"could not save image for {owner_id}: {exc}") from exc
        return str(dest.resolve())

    def _load_encoded_sync(self, image_path: str) -> tuple[str, str]:
        path = Path(image_path)
        if not path.is_file():
            raise StorageError(f"image not found: {image_path}")
        try:
            with Image.open(path) as raw:
                img = _to_rgb(raw)
                w, h = img.size
                max_dim = max(w, h)
                if max_dim > self.cfg.max_upload_dim:
                    scale = self.cfg.max_upload_dim / float(max_dim)
                    size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
                    img = img.resize(size, Image.Resampling.LANCZOS)
                buffer = io.BytesIO()
                img.save(buffer, format="JPEG", quality=self.cfg.upload_jpeg_quality)
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
            raise StorageError(f"could not read image {image_path}: {exc}") from exc
        return "image/jpeg", base64.b64encode(buffer.getvalue()).decode("ascii")

    def _delete_sync(self, image_path: str) -> bool:
        try:
            Path(image_path).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"could not delete image {image_path}: {exc}") from exc
        return True

    async def save(self, image: ImageInput, owner_id: str) -> str:
        if not owner_id:
            raise StorageError("owner id is required to save an image")
        path = await asyncio.to_thread(self._save_sync, image, owner_id)
        logger.info("Saved image for %s to %s", owner_id, path)
        return path

    async def load_encoded(self, image_path: str) -> tuple[str, str]:
        return await asyncio.to_thread(self._load_encoded_sync, image_path)

    async def delete(self, image_path: str) -> bool:
        removed = await asyncio.to_thread(self._delete_sync, image_path)
        if removed:
            logger.info("Removed image %s", image_path)
        return removed
