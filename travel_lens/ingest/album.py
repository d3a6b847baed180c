from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from travel_lens.core.env import env_float, env_int
from travel_lens.core.errors import DependencyError
from travel_lens.core.models import AlbumValidation

logger = logging.getLogger(__name__)

ALBUM_LINK_PATTERNS = (
    re.compile(r"photos\.app\.goo\.gl/([A-Za-z0-9_-]+)"),
    re.compile(r"photos\.google\.com/share/([A-Za-z0-9_-]+)"),
    re.compile(r"photos\.google\.com/.*/album/([A-Za-z0-9_-]+)"),
)
IMAGE_LOCATOR = re.compile(r"https://lh3\.googleusercontent\.com/[A-Za-z0-9_-]+")
PAGE_TITLE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)
DEFAULT_TITLE = "Shared Album"
PRIVATE_ALBUM_MESSAGE = "Invalid or private album link. Make sure album is publicly shared."


@dataclass
class AlbumListerConfig:
    timeout: float
    download_timeout: float
    max_download_bytes: int
    user_agent: str

    @classmethod
    def from_env(cls) -> "AlbumListerConfig":
        return cls(
            timeout=env_float("ALBUM_HTTP_TIMEOUT", 10.0),
            download_timeout=env_float("ALBUM_DOWNLOAD_TIMEOUT", 30.0),
            max_download_bytes=env_int("ALBUM_MAX_DOWNLOAD_BYTES", 50 * 1024 * 1024),
            user_agent=os.getenv(
                "ALBUM_USER_AGENT",
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
            ),
        )


class AlbumLister(Protocol):
    def validate(self, share_link: str) -> AlbumValidation: ...

    def list_items(self, share_link: str) -> list[str]: ...

    def download(self, locator: str) -> bytes: ...


def extract_album_id(share_link: str) -> Optional[str]:
    link = share_link.strip()
    for pattern in ALBUM_LINK_PATTERNS:
        match = pattern.search(link)
        if match:
            return match.group(1)
    return None


def parse_album_title(html: str) -> str:
    match = PAGE_TITLE.search(html)
    if not match:
        return DEFAULT_TITLE
    title = match.group(1).replace(" - Google Photos", "").strip()
    return title or DEFAULT_TITLE


def parse_album_items(html: str) -> list[str]:
    """Image locators in page order, deduplicated by exact string."""
    return list(dict.fromkeys(IMAGE_LOCATOR.findall(html)))


class SharedAlbumScraper:
    """Lists and downloads images of a publicly shared Google Photos album. No auth."""

    def __init__(self, config: AlbumListerConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.client = client or httpx.Client(
            headers={"User-Agent": config.user_agent},
            timeout=config.timeout,
            follow_redirects=True,
        )

    def _fetch_page(self, share_link: str) -> str:
        response = self.client.get(share_link.strip())
        response.raise_for_status()
        return response.text

    def validate(self, share_link: str) -> AlbumValidation:
        try:
            page = self._fetch_page(share_link)
        except httpx.HTTPError as exc:
            logger.info("Album link %s not accessible: %s", share_link, exc)
            return AlbumValidation(valid=False, error=PRIVATE_ALBUM_MESSAGE)
        return AlbumValidation(valid=True, title=parse_album_title(page))

    def list_items(self, share_link: str) -> list[str]:
        try:
            page = self._fetch_page(share_link)
        except httpx.HTTPError as exc:
            raise DependencyError(
                "Failed to access shared album. Make sure the link is public."
            ) from exc
        return parse_album_items(page)

    def download(self, locator: str) -> bytes:
        """Fetch the full-resolution original (`=d` suffix), enforcing the size limit."""
        limit = self.config.max_download_bytes
        try:
            with self.client.stream(
                "GET", f"{locator}=d", timeout=self.config.download_timeout
            ) as response:
                response.raise_for_status()
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > limit:
                    raise DependencyError(f"Photo exceeds download limit of {limit} bytes")
                chunks: list[bytes] = []
                received = 0
                for chunk in response.iter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise DependencyError(f"Photo exceeds download limit of {limit} bytes")
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise DependencyError(f"Failed to download photo: {exc}") from exc
        return b"".join(chunks)
