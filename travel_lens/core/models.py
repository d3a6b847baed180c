from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PhotoSource(str, Enum):
    DIRECT_UPLOAD = "direct_upload"
    BULK_UPLOAD = "bulk_upload"
    GOOGLE_PHOTOS = "google_photos"


class TransactionType(str, Enum):
    REWARD = "reward"
    REFUND = "refund"
    REDEMPTION = "redemption"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class GeoPoint(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class ExifData(BaseModel):
    datetime_original: Optional[datetime] = None
    gps_lat: Optional[float] = None
    gps_lon: Optional[float] = None
    gps_altitude: Optional[float] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    lens_model: Optional[str] = None
    software: Optional[str] = None
    orientation: Optional[int] = None
    exposure_time: Optional[float] = None
    f_number: Optional[float] = None
    iso: Optional[int] = None
    focal_length: Optional[float] = None

    def gps_point(self) -> Optional[GeoPoint]:
        # 0/0 is what broken cameras write when they have no fix.
        if self.gps_lat is None or self.gps_lon is None:
            return None
        if self.gps_lat == 0 and self.gps_lon == 0:
            return None
        if not (-90.0 <= self.gps_lat <= 90.0 and -180.0 <= self.gps_lon <= 180.0):
            return None
        return GeoPoint(latitude=self.gps_lat, longitude=self.gps_lon)

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class ReverseGeocodeResult(BaseModel):
    place_name: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    formatted_address: Optional[str] = None


class PostalAddress(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    full_address: str


class StoredAsset(BaseModel):
    """What the media store hands back for a successful write."""

    asset_id: str
    url: str
    byte_size: int
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None


class WatermarkSpec(BaseModel):
    """Text overlay; position is a percentage of the frame from the top-left corner."""

    text: str
    font_size: int = Field(default=24, ge=6, le=200)
    color: str = Field(default="#FFFFFF", pattern=r"^#?[0-9A-Fa-f]{6}$")
    opacity: float = Field(default=0.7, ge=0.0, le=1.0)
    position_x: float = Field(default=50.0, ge=0.0, le=100.0)
    position_y: float = Field(default=90.0, ge=0.0, le=100.0)


class VariantSpec(BaseModel):
    """Deterministic transformation recipe for a derived display variant."""

    name: str
    width: Optional[int] = None
    height: Optional[int] = None
    crop: Literal["fill", "limit", "none"] = "limit"
    quality: int = Field(default=85, ge=1, le=95)
    watermark: Optional[WatermarkSpec] = None


class WatermarkSetting(BaseModel):
    id: int
    text: str
    font_size: int
    color: str
    opacity: float
    position_x: float
    position_y: float
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def spec(self) -> WatermarkSpec:
        return WatermarkSpec(
            text=self.text,
            font_size=self.font_size,
            color=self.color,
            opacity=self.opacity,
            position_x=self.position_x,
            position_y=self.position_y,
        )


class Photo(BaseModel):
    id: str
    owner_id: str
    source: PhotoSource
    source_key: Optional[str] = None
    url: str
    file_name: Optional[str] = None
    byte_size: int
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: Optional[str] = None
    location: Optional[GeoPoint] = None
    place_id: Optional[int] = None
    place_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    exif: Optional[ExifData] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    reward_given: bool = False
    created_at: Optional[datetime] = None


class Place(BaseModel):
    id: int
    name: str
    location: GeoPoint
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    photo_count: int = 0


class LedgerEntry(BaseModel):
    id: int
    user_id: str
    amount: int
    type: TransactionType
    status: TransactionStatus
    photo_id: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    created_at: Optional[datetime] = None


class WalletSummary(BaseModel):
    user_id: str
    balance: int
    ledger_total: int
    transactions: list[LedgerEntry] = Field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_total


class AlbumValidation(BaseModel):
    valid: bool
    title: Optional[str] = None
    error: Optional[str] = None


class SyncItemError(BaseModel):
    source_item: str
    error: str


class SyncJobResult(BaseModel):
    album_title: Optional[str] = None
    total: int = 0
    uploaded: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[SyncItemError] = Field(default_factory=list)


class SyncStatus(BaseModel):
    total_synced: int = 0
    pending_approval: int = 0
    approved: int = 0
    rejected: int = 0


class ModerationStats(BaseModel):
    total_users: int = 0
    total_photos: int = 0
    pending_photos: int = 0
    approved_photos: int = 0
    rejected_photos: int = 0
    total_rewards_given: int = 0
    total_wallet_balance: int = 0
