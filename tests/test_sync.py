import httpx
import pytest
from sqlalchemy import select

from conftest import StubLister, StubStore, add_user
from travel_lens.core.errors import DependencyError, NotFoundError, ValidationError
from travel_lens.index import LedgerConfig, PhotoRow, get_sync_status, reject_photo
from travel_lens.ingest import (
    AlbumListerConfig,
    SharedAlbumScraper,
    extract_album_id,
    parse_album_items,
    parse_album_title,
    source_dedup_key,
    sync_album,
)

LINK = "https://photos.app.goo.gl/AbCdEf123"
ITEMS = [
    "https://lh3.googleusercontent.com/item-one",
    "https://lh3.googleusercontent.com/item-two",
    "https://lh3.googleusercontent.com/item-three",
]


def _config(**overrides) -> AlbumListerConfig:
    values = dict(timeout=1.0, download_timeout=1.0, max_download_bytes=1024, user_agent="tests")
    values.update(overrides)
    return AlbumListerConfig(**values)


def test_second_sync_of_unchanged_album_skips_everything(session) -> None:
    add_user(session)
    store = StubStore()
    lister = StubLister(ITEMS)

    first = sync_album(session, "user-1", LINK, lister=lister, store=store)
    second = sync_album(session, "user-1", LINK, lister=lister, store=store)

    assert (first.total, first.uploaded, first.skipped, first.failed) == (3, 3, 0, 0)
    assert (second.total, second.uploaded, second.skipped, second.failed) == (3, 0, 3, 0)
    assert second.album_title == "Goa 2024"
    # Skips are decided before any download or upload.
    assert len(lister.downloads) == 3
    assert store.store_calls == 3


def test_failing_item_is_recorded_and_the_rest_still_import(session) -> None:
    add_user(session)
    lister = StubLister(ITEMS, failing={ITEMS[1]})

    result = sync_album(session, "user-1", LINK, lister=lister, store=StubStore())

    assert (result.total, result.uploaded, result.failed, result.skipped) == (3, 2, 1, 0)
    assert len(result.errors) == 1
    assert result.errors[0].source_item == ITEMS[1]
    assert "Failed to download" in result.errors[0].error
    keys = set(session.scalars(select(PhotoRow.source_key)).all())
    assert keys == {source_dedup_key(ITEMS[0]), source_dedup_key(ITEMS[2])}


def test_failed_item_is_retried_on_next_sync(session) -> None:
    add_user(session)
    lister = StubLister(ITEMS, failing={ITEMS[1]})
    sync_album(session, "user-1", LINK, lister=lister, store=StubStore())

    lister.failing.clear()
    again = sync_album(session, "user-1", LINK, lister=lister, store=StubStore())

    assert (again.uploaded, again.skipped, again.failed) == (1, 2, 0)


def test_store_outage_fails_items_not_the_job(session) -> None:
    add_user(session)

    result = sync_album(session, "user-1", LINK, lister=StubLister(ITEMS), store=StubStore(fail=True))

    assert (result.total, result.uploaded, result.failed) == (3, 0, 3)
    assert [e.source_item for e in result.errors] == ITEMS


def test_duplicate_locators_in_listing_count_once(session) -> None:
    add_user(session)
    lister = StubLister([ITEMS[0], ITEMS[0], ITEMS[1]])

    result = sync_album(session, "user-1", LINK, lister=lister, store=StubStore())

    assert (result.total, result.uploaded) == (2, 2)


def test_empty_album_is_an_error(session) -> None:
    add_user(session)
    with pytest.raises(ValidationError, match="No photos found"):
        sync_album(session, "user-1", LINK, lister=StubLister([]), store=StubStore())


def test_link_is_checked_before_any_item_work(session) -> None:
    add_user(session)
    lister = StubLister(ITEMS)
    store = StubStore()

    with pytest.raises(ValidationError):
        sync_album(session, "user-1", "", lister=lister, store=store)
    with pytest.raises(ValidationError):
        sync_album(session, "user-1", "https://example.com/not-an-album", lister=lister, store=store)
    with pytest.raises(ValidationError):
        sync_album(session, "user-1", LINK, lister=StubLister(ITEMS, valid=False), store=store)
    with pytest.raises(NotFoundError):
        sync_album(session, "ghost", LINK, lister=lister, store=store)
    assert lister.downloads == []
    assert store.store_calls == 0


def test_sync_status_counts_album_imports_by_state(session) -> None:
    add_user(session)
    sync_album(session, "user-1", LINK, lister=StubLister(ITEMS), store=StubStore())
    photo_id = session.scalars(select(PhotoRow.id)).first()
    reject_photo(session, photo_id, config=LedgerConfig())

    status = get_sync_status(session, "user-1")

    assert status.total_synced == 3
    assert status.pending_approval == 2
    assert status.rejected == 1
    assert status.approved == 0


@pytest.mark.parametrize(
    "link,expected",
    [
        ("https://photos.app.goo.gl/AbCdEf123", "AbCdEf123"),
        ("https://photos.google.com/share/AF1QipN_x-9?key=abc", "AF1QipN_x-9"),
        ("https://photos.google.com/u/0/album/AF1QipAlbum", "AF1QipAlbum"),
        ("https://example.com/photos", None),
    ],
)
def test_extract_album_id(link: str, expected) -> None:
    assert extract_album_id(link) == expected


def test_album_page_parsing() -> None:
    html = """
    <html><head><title>Goa Trip - Google Photos</title></head>
    <body>
      ["https://lh3.googleusercontent.com/AAA_1",1024,768]
      ["https://lh3.googleusercontent.com/BBB-2",1024,768]
      ["https://lh3.googleusercontent.com/AAA_1",1024,768]
    </body></html>
    """
    assert parse_album_title(html) == "Goa Trip"
    assert parse_album_items(html) == [
        "https://lh3.googleusercontent.com/AAA_1",
        "https://lh3.googleusercontent.com/BBB-2",
    ]
    assert parse_album_title("<html></html>") == "Shared Album"


def test_scraper_validates_and_lists_over_http() -> None:
    page = '<title>Hampi - Google Photos</title> "https://lh3.googleusercontent.com/XyZ"'

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/private":
            return httpx.Response(404)
        return httpx.Response(200, text=page)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    scraper = SharedAlbumScraper(_config(), client=client)

    validation = scraper.validate("https://photos.app.goo.gl/ok")
    assert validation.valid and validation.title == "Hampi"
    assert scraper.list_items("https://photos.app.goo.gl/ok") == [
        "https://lh3.googleusercontent.com/XyZ"
    ]
    assert not scraper.validate("https://photos.app.goo.gl/private").valid
    with pytest.raises(DependencyError):
        scraper.list_items("https://photos.app.goo.gl/private")


def test_scraper_downloads_full_resolution_within_limit() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.path.startswith("/big"):
            return httpx.Response(200, content=b"x" * 2048)
        return httpx.Response(200, content=b"image-bytes")

    scraper = SharedAlbumScraper(_config(), client=httpx.Client(transport=httpx.MockTransport(handler)))

    assert scraper.download("https://lh3.googleusercontent.com/small") == b"image-bytes"
    assert requested[0] == "https://lh3.googleusercontent.com/small=d"
    with pytest.raises(DependencyError, match="download limit"):
        scraper.download("https://lh3.googleusercontent.com/big")
