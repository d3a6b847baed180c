from __future__ import annotations

import importlib
from pathlib import Path

from fastapi.testclient import TestClient

from conftest import StubLister, jpeg_bytes
from travel_lens.index import UserRow

ALBUM = "https://photos.app.goo.gl/AbCdEf123"


def _setup_api(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "api.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path / "media"))
    monkeypatch.delenv("MEDIA_BASE_URL", raising=False)
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    monkeypatch.delenv("REWARD_AMOUNT", raising=False)

    from travel_lens.api import http_api

    http_api = importlib.reload(http_api)
    with http_api.SessionLocal() as session:
        session.add_all(
            [
                UserRow(id="user-1", name="Asha"),
                UserRow(id="user-2", name="Ben"),
                UserRow(id="admin-1", name="Admin", role="admin"),
            ]
        )
        session.commit()
    return http_api


def _upload(client: TestClient, **params) -> dict:
    resp = client.post(
        "/photos",
        params={"owner_id": "user-1", **params},
        content=jpeg_bytes(size=(64, 48)),
        headers={"content-type": "image/jpeg"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_health(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_upload_approve_delete_round_trip(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)

    photo = _upload(client, latitude=12.9, longitude=77.6)
    assert photo["approval_status"] == "pending"
    assert photo["location"] == {"latitude": 12.9, "longitude": 77.6}
    assert photo["width"] == 64

    resp = client.post(f"/photos/{photo['id']}/approve", json={"actor_id": "admin-1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["approval_status"] == "approved"

    again = client.post(f"/photos/{photo['id']}/approve", json={"actor_id": "admin-1"})
    assert again.status_code == 409
    assert again.json() == {
        "success": False,
        "message": "Photo is already approved",
        "error": "conflict",
    }

    wallet = client.get("/users/user-1/wallet").json()["data"]
    assert wallet["balance"] == 1
    assert wallet["ledger_total"] == 1

    forbidden = client.delete(f"/photos/{photo['id']}", params={"actor_id": "user-2"})
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "forbidden"

    deleted = client.delete(f"/photos/{photo['id']}", params={"actor_id": "user-1"})
    assert deleted.status_code == 200
    assert deleted.json()["data"]["refund"]["amount"] == -1
    assert client.get("/users/user-1/wallet").json()["data"]["balance"] == 0


def test_upload_validation_errors(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)

    empty = client.post("/photos", params={"owner_id": "user-1"}, headers={"content-type": "image/jpeg"})
    assert empty.status_code == 400
    assert empty.json()["error"] == "validation"

    half = client.post(
        "/photos",
        params={"owner_id": "user-1", "latitude": 12.9},
        content=jpeg_bytes(),
        headers={"content-type": "image/jpeg"},
    )
    assert half.status_code == 400

    ghost = client.post(
        "/photos",
        params={"owner_id": "ghost"},
        content=jpeg_bytes(),
        headers={"content-type": "image/jpeg"},
    )
    assert ghost.status_code == 404
    assert ghost.json()["success"] is False


def test_reject_and_unknown_photo(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)
    photo = _upload(client)

    resp = client.post(f"/photos/{photo['id']}/reject", json={})
    assert resp.status_code == 200
    assert resp.json()["data"]["rejection_reason"] == "Does not meet quality standards"

    missing = client.post(f"/photos/{'0' * 32}/approve", json={"actor_id": "admin-1"})
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_variants_are_rendered_and_served(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)
    photo = _upload(client)

    resp = client.get(f"/photos/{photo['id']}/variants")
    assert resp.status_code == 200
    urls = resp.json()["data"]
    assert set(urls) == {"thumbnail", "medium", "large", "watermarked"}
    assert urls["thumbnail"].startswith(f"/media/_variants/{photo['id']}/")

    served = client.get(urls["thumbnail"])
    assert served.status_code == 200
    assert served.content[:2] == b"\xff\xd8"
    assert client.get(photo["url"]).status_code == 200


def test_album_sync_endpoints(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    items = [
        "https://lh3.googleusercontent.com/one",
        "https://lh3.googleusercontent.com/two",
        "https://lh3.googleusercontent.com/three",
    ]
    monkeypatch.setattr(http_api, "album_lister", StubLister(items, failing={items[1]}))
    client = TestClient(http_api.app)

    valid = client.post("/albums/validate", json={"share_link": ALBUM})
    assert valid.status_code == 200
    assert valid.json()["data"]["title"] == "Goa 2024"

    bad = client.post("/albums/validate", json={"share_link": "https://example.com/x"})
    assert bad.status_code == 400

    resp = client.post("/albums/sync", json={"owner_id": "user-1", "share_link": ALBUM})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert (data["total"], data["uploaded"], data["skipped"], data["failed"]) == (3, 2, 0, 1)
    assert data["errors"][0]["source_item"] == items[1]

    http_api.album_lister.failing.clear()
    rerun = client.post("/albums/sync", json={"owner_id": "user-1", "share_link": ALBUM}).json()
    assert rerun["data"]["skipped"] == 2
    assert rerun["message"] == "Sync completed: 1 new photos, 2 skipped, 0 failed"

    status = client.get("/users/user-1/sync-status").json()["data"]
    assert status == {"total_synced": 3, "pending_approval": 3, "approved": 0, "rejected": 0}


def test_admin_stats_and_watermark(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)
    _upload(client)

    stats = client.get("/admin/stats").json()["data"]
    assert stats["total_users"] == 3
    assert stats["pending_photos"] == 1

    current = client.get("/admin/watermark").json()["data"]
    assert current["text"] == "© Travel Lens"

    resp = client.put(
        "/admin/watermark",
        json={"text": "Travel Lens", "font_size": 32, "position_x": 90, "actor_id": "admin-1"},
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert updated["is_active"] is True
    assert updated["created_by"] == "admin-1"
    assert client.get("/admin/watermark").json()["data"]["id"] == updated["id"]

    invalid = client.put("/admin/watermark", json={"text": "x", "color": "purple"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "validation"


def test_redeem_endpoint(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)
    photo = _upload(client)
    client.post(f"/photos/{photo['id']}/approve", json={"actor_id": "admin-1"})

    overdraft = client.post("/users/user-1/wallet/redeem", json={"amount": 2})
    assert overdraft.status_code == 409

    ok = client.post("/users/user-1/wallet/redeem", json={"amount": 1, "reference": "coffee"})
    assert ok.status_code == 200
    assert ok.json()["data"]["type"] == "redemption"
    assert client.get("/users/user-1/wallet").json()["data"]["balance"] == 0


def test_malformed_requests_use_the_error_envelope(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)
    client = TestClient(http_api.app)

    missing_owner = client.post("/photos", content=jpeg_bytes(), headers={"content-type": "image/jpeg"})
    assert missing_owner.status_code == 400
    body = missing_owner.json()
    assert body["success"] is False
    assert body["error"] == "validation"
    assert "owner_id" in body["message"]

    no_actor = client.post(f"/photos/{'0' * 32}/approve", json={})
    assert no_actor.status_code == 400
    assert "actor_id" in no_actor.json()["message"]


def test_unexpected_errors_use_the_error_envelope(tmp_path: Path, monkeypatch) -> None:
    http_api = _setup_api(tmp_path, monkeypatch)

    def broken(session):
        raise RuntimeError("stats table missing")

    monkeypatch.setattr(http_api, "moderation_stats", broken)
    client = TestClient(http_api.app, raise_server_exceptions=False)

    resp = client.get("/admin/stats")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Internal server error", "error": "internal"}
