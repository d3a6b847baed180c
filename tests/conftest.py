from __future__ import annotations

import uuid
from io import BytesIO
from typing import Optional

import pytest
from PIL import Image

from travel_lens.core.errors import DependencyError
from travel_lens.core.models import (
    AlbumValidation,
    ReverseGeocodeResult,
    StoredAsset,
    VariantSpec,
)
from travel_lens.index import UserRow, init_db, session_factory


def jpeg_bytes(color: str = "red", size: tuple[int, int] = (16, 12)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="JPEG")
    return buf.getvalue()


class StubStore:
    """In-memory media store that records every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.assets: dict[str, bytes] = {}
        self.store_calls = 0
        self.deleted: list[str] = []

    def store(self, data: bytes, folder: Optional[str] = None) -> StoredAsset:
        self.store_calls += 1
        if self.fail:
            raise DependencyError("media store unavailable")
        asset_id = uuid.uuid4().hex
        self.assets[asset_id] = data
        return StoredAsset(
            asset_id=asset_id,
            url=f"memory://{folder}/{asset_id}",
            byte_size=len(data),
            width=16,
            height=12,
            format="JPEG",
        )

    def delete(self, asset_id: str) -> bool:
        self.deleted.append(asset_id)
        return self.assets.pop(asset_id, None) is not None

    def derive_variant(self, asset_id: str, spec: VariantSpec) -> str:
        return f"memory://{asset_id}/{spec.name}"


class StubGeocoder:
    """Names every coordinate after `place_name`; optionally raises instead."""

    def __init__(self, place_name: str = "Indiranagar", fail: bool = False):
        self.place_name = place_name
        self.fail = fail
        self.calls: list[tuple[float, float]] = []

    def reverse_geocode(self, latitude: float, longitude: float) -> Optional[ReverseGeocodeResult]:
        self.calls.append((latitude, longitude))
        if self.fail:
            raise DependencyError("geocoder down")
        return ReverseGeocodeResult(
            place_name=self.place_name,
            city="Bengaluru",
            state="Karnataka",
            country="India",
        )

    def forward_geocode(self, postal_code: str):
        return None


class StubLister:
    """Shared-album lister serving fixed bytes per locator; some locators fail to download."""

    def __init__(
        self,
        items: list[str],
        failing: Optional[set[str]] = None,
        valid: bool = True,
        title: str = "Goa 2024",
    ):
        self.items = items
        self.failing = failing or set()
        self.valid = valid
        self.title = title
        self.downloads: list[str] = []

    def validate(self, share_link: str) -> AlbumValidation:
        if not self.valid:
            return AlbumValidation(valid=False, error="Invalid or private album link")
        return AlbumValidation(valid=True, title=self.title)

    def list_items(self, share_link: str) -> list[str]:
        return list(self.items)

    def download(self, locator: str) -> bytes:
        self.downloads.append(locator)
        if locator in self.failing:
            raise DependencyError(f"Failed to download photo: {locator}")
        return jpeg_bytes()


def add_user(session, user_id: str = "user-1", role: str = "user") -> UserRow:
    user = UserRow(id=user_id, name=user_id.title(), email=f"{user_id}@example.test", role=role)
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def session():
    engine = init_db("sqlite+pysqlite:///:memory:")
    SessionLocal = session_factory(engine)
    with SessionLocal() as session:
        yield session
    engine.dispose()


@pytest.fixture
def store() -> StubStore:
    return StubStore()


@pytest.fixture
def geocoder() -> StubGeocoder:
    return StubGeocoder()


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory over a file-backed SQLite DB, for tests that need several connections."""
    engine = init_db(f"sqlite+pysqlite:///{tmp_path / 'travel_lens.db'}")
    yield session_factory(engine)
    engine.dispose()
