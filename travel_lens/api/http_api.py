import logging
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from sqlalchemy.orm import Session

from travel_lens.core.env import configure_logging, database_url, load_dotenv_if_present
from travel_lens.core.errors import NotFoundError, TravelLensError, ValidationError
from travel_lens.core.models import GeoPoint, PhotoSource, WatermarkSpec
from travel_lens.geo import GeoResolverConfig, GoogleGeocoder
from travel_lens.index import (
    LedgerConfig,
    PlaceRegistryConfig,
    approve_photo,
    delete_photo,
    get_active_watermark,
    get_sync_status,
    init_db,
    ledger_entry,
    moderation_stats,
    photo_model,
    photo_variants,
    redeem,
    reject_photo,
    session_factory,
    update_watermark,
    wallet_summary,
)
from travel_lens.ingest import (
    AlbumListerConfig,
    SharedAlbumScraper,
    extract_album_id,
    ingest_photo,
    sync_album,
)
from travel_lens.media import LocalMediaStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Travel Lens API")

load_dotenv_if_present()
configure_logging()

DATABASE_URL = database_url()
engine = init_db(DATABASE_URL)
SessionLocal = session_factory(engine)

ledger_config = LedgerConfig.from_env()
place_config = PlaceRegistryConfig.from_env()
store = LocalMediaStore.from_env()
geocoder = GoogleGeocoder(GeoResolverConfig.from_env())
album_lister = SharedAlbumScraper(AlbumListerConfig.from_env())

if store.config.base_url.startswith("/"):
    store.root.mkdir(parents=True, exist_ok=True)
    app.mount(store.config.base_url, StaticFiles(directory=store.root), name="media")

STATUS_CODES = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "forbidden": 403,
    "dependency": 502,
}


def get_session() -> Session:
    with SessionLocal() as session:
        yield session


def ok(message: str, data: Any = None) -> dict:
    return {"success": True, "message": message, "data": data}


@app.exception_handler(TravelLensError)
async def travel_lens_error(_: Request, exc: TravelLensError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_CODES.get(exc.kind, 500),
        content={"success": False, "message": exc.message, "error": exc.kind},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    detail = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=STATUS_CODES["validation"],
        content={
            "success": False,
            "message": f"{field}: {detail}" if field else detail,
            "error": "validation",
        },
    )


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": "internal"},
    )


class AlbumLinkRequest(BaseModel):
    share_link: str


class AlbumSyncRequest(BaseModel):
    owner_id: str
    share_link: str


class ApproveRequest(BaseModel):
    actor_id: str


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class RedeemRequest(BaseModel):
    amount: int
    reference: Optional[str] = None


class WatermarkUpdateRequest(WatermarkSpec):
    actor_id: Optional[str] = None


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/photos")
def upload_photo(
    owner_id: str,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    file_name: Optional[str] = None,
    data: bytes = Body(b"", media_type="application/octet-stream"),
    session: Session = Depends(get_session),
) -> dict:
    manual_point = None
    if latitude is not None or longitude is not None:
        if latitude is None or longitude is None:
            raise ValidationError("Both latitude and longitude are required for a manual location")
        if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
            raise ValidationError("Manual location is out of range")
        manual_point = GeoPoint(latitude=latitude, longitude=longitude)
    result = ingest_photo(
        session,
        owner_id,
        data,
        source=PhotoSource.DIRECT_UPLOAD,
        store=store,
        geocoder=geocoder,
        manual_point=manual_point,
        file_name=file_name,
        place_config=place_config,
    )
    return ok(
        "Photo uploaded successfully. Pending admin approval.",
        photo_model(result.photo).model_dump(mode="json"),
    )


@app.post("/albums/validate")
def validate_album(req: AlbumLinkRequest) -> dict:
    if extract_album_id(req.share_link or "") is None:
        raise ValidationError("Unrecognized shared album link")
    validation = album_lister.validate(req.share_link)
    if not validation.valid:
        raise ValidationError(validation.error or "Album link is not accessible")
    return ok("Album is accessible", validation.model_dump())


@app.post("/albums/sync")
def sync_shared_album(req: AlbumSyncRequest, session: Session = Depends(get_session)) -> dict:
    result = sync_album(
        session,
        req.owner_id,
        req.share_link,
        lister=album_lister,
        store=store,
        geocoder=geocoder,
        place_config=place_config,
    )
    message = (
        f"Sync completed: {result.uploaded} new photos, "
        f"{result.skipped} skipped, {result.failed} failed"
    )
    return ok(message, result.model_dump())


@app.get("/users/{user_id}/sync-status")
def sync_status(user_id: str, session: Session = Depends(get_session)) -> dict:
    return ok("Sync status", get_sync_status(session, user_id).model_dump())


@app.post("/photos/{photo_id}/approve")
def approve(photo_id: str, req: ApproveRequest, session: Session = Depends(get_session)) -> dict:
    row = approve_photo(session, photo_id, req.actor_id, config=ledger_config)
    return ok("Photo approved and reward credited", photo_model(row).model_dump(mode="json"))


@app.post("/photos/{photo_id}/reject")
def reject(photo_id: str, req: RejectRequest, session: Session = Depends(get_session)) -> dict:
    row = reject_photo(session, photo_id, req.reason, config=ledger_config)
    return ok("Photo rejected", photo_model(row).model_dump(mode="json"))


@app.delete("/photos/{photo_id}")
def remove_photo(photo_id: str, actor_id: str, session: Session = Depends(get_session)) -> dict:
    refund = delete_photo(session, photo_id, actor_id, store=store)
    data = {"refund": ledger_entry(refund).model_dump(mode="json") if refund is not None else None}
    return ok("Photo deleted successfully", data)


@app.get("/photos/{photo_id}/variants")
def variants(photo_id: str, session: Session = Depends(get_session)) -> dict:
    return ok("Photo variants", photo_variants(session, photo_id, store))


@app.get("/users/{user_id}/wallet")
def wallet(user_id: str, session: Session = Depends(get_session)) -> dict:
    return ok("Wallet", wallet_summary(session, user_id).model_dump(mode="json"))


@app.post("/users/{user_id}/wallet/redeem")
def redeem_wallet(user_id: str, req: RedeemRequest, session: Session = Depends(get_session)) -> dict:
    entry = redeem(session, user_id, req.amount, reference=req.reference)
    return ok("Redemption completed", ledger_entry(entry).model_dump(mode="json"))


@app.get("/geo/postal/{postal_code}")
def postal_lookup(postal_code: str) -> dict:
    address = geocoder.forward_geocode(postal_code)
    if address is None:
        raise NotFoundError("No address found for this postal code")
    return ok("Address found", address.model_dump())


@app.get("/admin/stats")
def admin_stats(session: Session = Depends(get_session)) -> dict:
    return ok("Moderation stats", moderation_stats(session).model_dump())


@app.get("/admin/watermark")
def read_watermark(session: Session = Depends(get_session)) -> dict:
    return ok("Watermark settings", get_active_watermark(session).model_dump(mode="json"))


@app.put("/admin/watermark")
def write_watermark(req: WatermarkUpdateRequest, session: Session = Depends(get_session)) -> dict:
    spec = WatermarkSpec(**req.model_dump(exclude={"actor_id"}))
    setting = update_watermark(session, spec, created_by=req.actor_id)
    return ok("Watermark settings updated", setting.model_dump(mode="json"))
