"""Persistence layer: schema, place registry, moderation ledger and read models."""

from .ledger import (
    LedgerConfig,
    approve_photo,
    delete_photo,
    ledger_total,
    redeem,
    reject_photo,
)
from .places import PlaceRegistryConfig, adjust_photo_count, find_nearby_place, resolve_place
from .records import (
    get_sync_status,
    ledger_entry,
    list_transactions,
    load_photo,
    moderation_stats,
    photo_model,
    place_model,
    wallet_summary,
)
from .schema import (
    Base,
    ExifDataRow,
    PhotoRow,
    PlaceRow,
    TransactionRow,
    UserRow,
    WatermarkSettingRow,
    create_engine_from_url,
    init_db,
    session_factory,
)
from .watermarks import DEFAULT_WATERMARK, get_active_watermark, photo_variants, update_watermark

__all__ = [
    "Base",
    "DEFAULT_WATERMARK",
    "ExifDataRow",
    "LedgerConfig",
    "PhotoRow",
    "PlaceRegistryConfig",
    "PlaceRow",
    "TransactionRow",
    "UserRow",
    "WatermarkSettingRow",
    "adjust_photo_count",
    "approve_photo",
    "create_engine_from_url",
    "delete_photo",
    "find_nearby_place",
    "get_active_watermark",
    "get_sync_status",
    "init_db",
    "ledger_entry",
    "ledger_total",
    "list_transactions",
    "load_photo",
    "moderation_stats",
    "photo_model",
    "photo_variants",
    "place_model",
    "redeem",
    "reject_photo",
    "resolve_place",
    "session_factory",
    "update_watermark",
    "wallet_summary",
]
