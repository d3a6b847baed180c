from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from travel_lens.core.errors import NotFoundError
from travel_lens.core.models import WatermarkSetting, WatermarkSpec
from travel_lens.media.store import MediaStore
from travel_lens.media.variants import standard_variants

from .schema import PhotoRow, WatermarkSettingRow

logger = logging.getLogger(__name__)

DEFAULT_WATERMARK = WatermarkSpec(text="© Travel Lens")


def _load_setting(row: WatermarkSettingRow) -> WatermarkSetting:
    return WatermarkSetting(
        id=row.id,
        text=row.text,
        font_size=row.font_size,
        color=row.color,
        opacity=row.opacity,
        position_x=row.position_x,
        position_y=row.position_y,
        is_active=bool(row.is_active),
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _insert_active(session: Session, spec: WatermarkSpec, created_by: Optional[str]) -> WatermarkSettingRow:
    row = WatermarkSettingRow(
        text=spec.text,
        font_size=spec.font_size,
        color=spec.color,
        opacity=spec.opacity,
        position_x=spec.position_x,
        position_y=spec.position_y,
        is_active=True,
        created_by=created_by,
    )
    session.add(row)
    return row


def get_active_watermark(session: Session, created_by: Optional[str] = None) -> WatermarkSetting:
    """The active watermark setting; the default one is created on first read."""
    row = session.scalar(
        select(WatermarkSettingRow)
        .where(WatermarkSettingRow.is_active.is_(True))
        .order_by(WatermarkSettingRow.id.desc())
    )
    if row is None:
        row = _insert_active(session, DEFAULT_WATERMARK, created_by)
        session.commit()
        logger.info("Created default watermark setting %s", row.id)
    return _load_setting(row)


def update_watermark(session: Session, spec: WatermarkSpec, created_by: Optional[str] = None) -> WatermarkSetting:
    """Retire every earlier setting and make spec the single active one."""
    try:
        session.execute(
            update(WatermarkSettingRow)
            .where(WatermarkSettingRow.is_active.is_(True))
            .values(is_active=False)
        )
        row = _insert_active(session, spec, created_by)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("Watermark updated by %s: %r", created_by or "-", spec.text)
    return _load_setting(row)


def photo_variants(session: Session, photo_id: str, store: MediaStore) -> dict[str, str]:
    """Display URLs (thumbnail, medium, large, watermarked) for a photo, all watermarked."""
    if session.get(PhotoRow, photo_id) is None:
        raise NotFoundError("Photo not found")
    watermark = get_active_watermark(session).spec()
    return {
        name: store.derive_variant(photo_id, spec)
        for name, spec in standard_variants(watermark).items()
    }
