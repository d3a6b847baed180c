from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from travel_lens.core.errors import NotFoundError
from travel_lens.core.models import (
    ApprovalStatus,
    ExifData,
    GeoPoint,
    LedgerEntry,
    ModerationStats,
    Photo,
    PhotoSource,
    Place,
    SyncStatus,
    TransactionStatus,
    TransactionType,
    WalletSummary,
)

from .ledger import ledger_total
from .schema import ExifDataRow, PhotoRow, PlaceRow, TransactionRow, UserRow


def _load_exif(row: ExifDataRow | None) -> ExifData | None:
    if row is None:
        return None
    return ExifData(
        datetime_original=row.datetime_original,
        gps_lat=row.gps_lat,
        gps_lon=row.gps_lon,
        gps_altitude=row.gps_altitude,
        camera_make=row.camera_make,
        camera_model=row.camera_model,
        lens_model=row.lens_model,
        software=row.software,
        orientation=row.orientation,
        exposure_time=row.exposure_time,
        f_number=row.f_number,
        iso=row.iso,
        focal_length=row.focal_length,
    )


def photo_model(row: PhotoRow) -> Photo:
    location = None
    if row.latitude is not None and row.longitude is not None:
        location = GeoPoint(latitude=row.latitude, longitude=row.longitude)
    return Photo(
        id=row.id,
        owner_id=row.owner_id,
        source=PhotoSource(row.source),
        source_key=row.source_key,
        url=row.url,
        file_name=row.file_name,
        byte_size=row.byte_size,
        width=row.width,
        height=row.height,
        mime_type=row.mime_type,
        location=location,
        place_id=row.place_id,
        place_name=row.place_name,
        city=row.city,
        state=row.state,
        country=row.country,
        exif=_load_exif(row.exif),
        approval_status=ApprovalStatus(row.approval_status),
        rejection_reason=row.rejection_reason,
        approved_at=row.approved_at,
        approved_by=row.approved_by,
        reward_given=bool(row.reward_given),
        created_at=row.created_at,
    )


def place_model(row: PlaceRow) -> Place:
    return Place(
        id=row.id,
        name=row.name,
        location=GeoPoint(latitude=row.latitude, longitude=row.longitude),
        city=row.city,
        state=row.state,
        country=row.country,
        photo_count=row.photo_count,
    )


def ledger_entry(row: TransactionRow) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        user_id=row.user_id,
        amount=row.amount,
        type=TransactionType(row.type),
        status=TransactionStatus(row.status),
        photo_id=row.photo_id,
        description=row.description,
        reference=row.reference,
        created_at=row.created_at,
    )


def load_photo(session: Session, photo_id: str) -> Optional[Photo]:
    row = session.get(PhotoRow, photo_id)
    if row is None:
        return None
    return photo_model(row)


def list_transactions(
    session: Session, user_id: str, *, photo_id: str | None = None, limit: int = 50
) -> list[LedgerEntry]:
    """Newest first."""
    stmt = select(TransactionRow).where(TransactionRow.user_id == user_id)
    if photo_id:
        stmt = stmt.where(TransactionRow.photo_id == photo_id)
    rows = session.scalars(
        stmt.order_by(TransactionRow.created_at.desc(), TransactionRow.id.desc()).limit(limit)
    ).all()
    return [ledger_entry(row) for row in rows]


def wallet_summary(session: Session, user_id: str, *, limit: int = 50) -> WalletSummary:
    user = session.get(UserRow, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    session.refresh(user, ["wallet_balance"])
    return WalletSummary(
        user_id=user_id,
        balance=user.wallet_balance,
        ledger_total=ledger_total(session, user_id),
        transactions=list_transactions(session, user_id, limit=limit),
    )


def get_sync_status(session: Session, user_id: str) -> SyncStatus:
    """Counts of the user's album imports, by approval state."""
    if session.get(UserRow, user_id) is None:
        raise NotFoundError(f"User {user_id} not found")
    rows = session.execute(
        select(PhotoRow.approval_status, func.count())
        .where(
            PhotoRow.owner_id == user_id,
            PhotoRow.source == PhotoSource.GOOGLE_PHOTOS.value,
        )
        .group_by(PhotoRow.approval_status)
    ).all()
    counts = {status: int(count) for status, count in rows}
    return SyncStatus(
        total_synced=sum(counts.values()),
        pending_approval=counts.get(ApprovalStatus.PENDING.value, 0),
        approved=counts.get(ApprovalStatus.APPROVED.value, 0),
        rejected=counts.get(ApprovalStatus.REJECTED.value, 0),
    )


def moderation_stats(session: Session) -> ModerationStats:
    by_status = dict(
        session.execute(
            select(PhotoRow.approval_status, func.count()).group_by(PhotoRow.approval_status)
        ).all()
    )
    rewards = session.scalar(
        select(func.coalesce(func.sum(TransactionRow.amount), 0)).where(
            TransactionRow.type == TransactionType.REWARD.value,
            TransactionRow.status == TransactionStatus.COMPLETED.value,
        )
    )
    return ModerationStats(
        total_users=int(session.scalar(select(func.count()).select_from(UserRow)) or 0),
        total_photos=int(sum(by_status.values())),
        pending_photos=int(by_status.get(ApprovalStatus.PENDING.value, 0)),
        approved_photos=int(by_status.get(ApprovalStatus.APPROVED.value, 0)),
        rejected_photos=int(by_status.get(ApprovalStatus.REJECTED.value, 0)),
        total_rewards_given=int(rewards or 0),
        total_wallet_balance=int(
            session.scalar(select(func.coalesce(func.sum(UserRow.wallet_balance), 0))) or 0
        ),
    )
