from __future__ import annotations

import logging
import os
import re
import shutil
import uuid
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Protocol

from PIL import Image, UnidentifiedImageError

from travel_lens.core.errors import DependencyError, ValidationError
from travel_lens.core.models import StoredAsset, VariantSpec

from .variants import render_variant, variant_key

logger = logging.getLogger(__name__)

VARIANTS_DIR = "_variants"
_ASSET_ID = re.compile(r"[0-9a-f]{32}")
_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "WEBP": ".webp", "GIF": ".gif", "TIFF": ".tif"}


@dataclass
class MediaStoreConfig:
    root: Path
    base_url: str
    folder: str

    @classmethod
    def from_env(cls) -> "MediaStoreConfig":
        return cls(
            root=Path(os.getenv("MEDIA_ROOT", Path(__file__).resolve().parents[2] / "media")),
            base_url=os.getenv("MEDIA_BASE_URL", "/media").rstrip("/"),
            folder=os.getenv("MEDIA_FOLDER", "travel-photos"),
        )


class MediaStore(Protocol):
    def store(self, data: bytes, folder: Optional[str] = None) -> StoredAsset: ...

    def delete(self, asset_id: str) -> bool: ...

    def derive_variant(self, asset_id: str, spec: VariantSpec) -> str: ...


def _safe_folder(folder: str) -> str:
    parts = [p for p in re.split(r"[\\/]+", folder) if p and p not in {".", ".."}]
    return "/".join(re.sub(r"[^A-Za-z0-9_.-]", "_", p) for p in parts) or "misc"


class LocalMediaStore:
    """Media store on the local filesystem; variants are rendered lazily and cached."""

    def __init__(self, config: MediaStoreConfig):
        self.config = config
        self.root = Path(config.root)

    @classmethod
    def from_env(cls) -> "LocalMediaStore":
        return cls(MediaStoreConfig.from_env())

    def _url(self, relative: Path) -> str:
        return f"{self.config.base_url}/{relative.as_posix()}"

    def _locate(self, asset_id: str) -> Optional[Path]:
        if not _ASSET_ID.fullmatch(asset_id):
            raise ValidationError(f"Malformed asset id: {asset_id!r}")
        if not self.root.exists():
            return None
        for path in self.root.rglob(f"{asset_id}.*"):
            if VARIANTS_DIR not in path.relative_to(self.root).parts and path.is_file():
                return path
        return None

    def store(self, data: bytes, folder: Optional[str] = None) -> StoredAsset:
        if not data:
            raise DependencyError("Media store rejected upload: empty payload")
        try:
            with Image.open(BytesIO(data)) as img:
                image_format = img.format or "JPEG"
                width, height = img.size
        except (UnidentifiedImageError, OSError) as exc:
            raise DependencyError(f"Media store rejected upload: {exc}") from exc

        asset_id = uuid.uuid4().hex
        directory = Path(_safe_folder(self.config.folder))
        if folder:
            directory = directory / _safe_folder(folder)
        relative = directory / (asset_id + _EXTENSIONS.get(image_format, ".bin"))
        target = self.root / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise DependencyError(f"Media store write failed: {exc}") from exc
        return StoredAsset(
            asset_id=asset_id,
            url=self._url(relative),
            byte_size=len(data),
            width=width,
            height=height,
            format=image_format,
        )

    def delete(self, asset_id: str) -> bool:
        """Remove the original and its cached variants. False if nothing was stored."""
        path = self._locate(asset_id)
        try:
            shutil.rmtree(self.root / VARIANTS_DIR / asset_id, ignore_errors=True)
            if path is None:
                return False
            path.unlink()
        except OSError as exc:
            raise DependencyError(f"Media store delete failed: {exc}") from exc
        return True

    def derive_variant(self, asset_id: str, spec: VariantSpec) -> str:
        relative = Path(VARIANTS_DIR) / asset_id / f"{variant_key(spec)}.jpg"
        target = self.root / relative
        if target.exists():
            return self._url(relative)
        source = self._locate(asset_id)
        if source is None:
            raise DependencyError(f"Media store has no asset {asset_id}")
        try:
            rendered = render_variant(source, spec)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(rendered)
        except (UnidentifiedImageError, OSError) as exc:
            raise DependencyError(f"Variant rendering failed for {asset_id}: {exc}") from exc
        logger.debug("Rendered %s variant for %s", spec.name, asset_id)
        return self._url(relative)
