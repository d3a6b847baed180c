from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from travel_lens.core.env import env_int
from travel_lens.core.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from travel_lens.core.models import (
    ApprovalStatus,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from travel_lens.media.store import MediaStore

from .places import adjust_photo_count
from .schema import PhotoRow, TransactionRow, UserRow

logger = logging.getLogger(__name__)

ADMIN_ROLES = {UserRole.ADMIN.value, UserRole.SUPERADMIN.value}


@dataclass
class LedgerConfig:
    reward_amount: int = 1
    default_rejection_reason: str = "Does not meet quality standards"

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        return cls(
            reward_amount=env_int("REWARD_AMOUNT", 1),
            default_rejection_reason=os.getenv(
                "DEFAULT_REJECTION_REASON", "Does not meet quality standards"
            ),
        )


def _get_photo(session: Session, photo_id: str) -> PhotoRow:
    photo = session.get(PhotoRow, photo_id)
    if photo is None:
        raise NotFoundError("Photo not found")
    return photo


def _get_user(session: Session, user_id: str) -> UserRow:
    user = session.get(UserRow, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _post_entry(
    session: Session,
    *,
    user_id: str,
    amount: int,
    kind: TransactionType,
    photo_id: Optional[str] = None,
    description: Optional[str] = None,
    reference: Optional[str] = None,
) -> TransactionRow:
    """Move the wallet balance and append the matching completed ledger entry."""
    session.execute(
        update(UserRow)
        .where(UserRow.id == user_id)
        .values(wallet_balance=UserRow.wallet_balance + amount)
    )
    entry = TransactionRow(
        user_id=user_id,
        amount=amount,
        type=kind.value,
        status=TransactionStatus.COMPLETED.value,
        photo_id=photo_id,
        description=description,
        reference=reference,
    )
    session.add(entry)
    return entry


def _claim_pending(session: Session, photo_id: str, **values: object) -> None:
    """Move a photo out of pending; ConflictError if someone else already did."""
    claimed = session.execute(
        update(PhotoRow)
        .where(
            PhotoRow.id == photo_id,
            PhotoRow.approval_status == ApprovalStatus.PENDING.value,
        )
        .values(**values)
    ).rowcount
    if claimed != 1:
        raise ConflictError("Photo is no longer pending review")


def approve_photo(
    session: Session,
    photo_id: str,
    actor_id: str,
    *,
    config: Optional[LedgerConfig] = None,
) -> PhotoRow:
    """
    Approve a pending photo and credit its owner exactly once.

    Photo state, wallet balance, reward entry and place counter change in a single
    database transaction, the photo update first; any failure rolls all of them back
    and leaves the photo pending, so approval can simply be retried.
    """
    config = config or LedgerConfig.from_env()
    photo = _get_photo(session, photo_id)
    if photo.approval_status == ApprovalStatus.APPROVED.value:
        raise ConflictError("Photo is already approved")
    if photo.approval_status != ApprovalStatus.PENDING.value:
        raise ConflictError(f"Photo is {photo.approval_status} and cannot be approved")

    try:
        _claim_pending(
            session,
            photo_id,
            approval_status=ApprovalStatus.APPROVED.value,
            approved_at=datetime.now(timezone.utc),
            approved_by=actor_id,
            reward_given=True,
        )
        _post_entry(
            session,
            user_id=photo.owner_id,
            amount=config.reward_amount,
            kind=TransactionType.REWARD,
            photo_id=photo_id,
            description="Photo approved - reward credited",
        )
        if photo.place_id is not None:
            adjust_photo_count(session, photo.place_id, 1)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(photo)
    logger.info(
        "Photo %s approved by %s; credited %d to %s",
        photo_id,
        actor_id,
        config.reward_amount,
        photo.owner_id,
    )
    return photo


def reject_photo(
    session: Session,
    photo_id: str,
    reason: Optional[str] = None,
    *,
    config: Optional[LedgerConfig] = None,
) -> PhotoRow:
    """Reject a pending photo. No ledger effect: rejected photos were never rewarded."""
    config = config or LedgerConfig.from_env()
    photo = _get_photo(session, photo_id)
    if photo.approval_status == ApprovalStatus.REJECTED.value:
        raise ConflictError("Photo is already rejected")
    if photo.approval_status != ApprovalStatus.PENDING.value:
        raise ConflictError(f"Photo is {photo.approval_status} and cannot be rejected")

    try:
        _claim_pending(
            session,
            photo_id,
            approval_status=ApprovalStatus.REJECTED.value,
            rejection_reason=(reason or "").strip() or config.default_rejection_reason,
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(photo)
    logger.info("Photo %s rejected: %s", photo_id, photo.rejection_reason)
    return photo


def _recorded_reward(session: Session, photo_id: str) -> int:
    return session.scalar(
        select(func.coalesce(func.sum(TransactionRow.amount), 0)).where(
            TransactionRow.photo_id == photo_id,
            TransactionRow.type == TransactionType.REWARD.value,
            TransactionRow.status == TransactionStatus.COMPLETED.value,
        )
    )


def delete_photo(
    session: Session,
    photo_id: str,
    actor_id: str,
    *,
    store: MediaStore,
) -> Optional[TransactionRow]:
    """
    Delete a photo (owner or admin only): media first, then the record.

    A rewarded photo is refunded in the same transaction as the record delete, for the
    amount actually credited. The refund entry keeps the photo id after the photo is gone.
    Returns the refund entry, if any.
    """
    photo = _get_photo(session, photo_id)
    actor = _get_user(session, actor_id)
    if photo.owner_id != actor.id and actor.role not in ADMIN_ROLES:
        raise PermissionDeniedError("You are not authorized to delete this photo")

    try:
        removed = store.delete(photo.id)
    except DependencyError:
        raise
    except Exception as exc:
        raise DependencyError(f"Failed to delete photo media: {exc}") from exc
    if not removed:
        logger.warning("Media for photo %s was already gone", photo_id)

    owner_id = photo.owner_id
    place_id = photo.place_id
    was_approved = photo.approval_status == ApprovalStatus.APPROVED.value
    refund: Optional[TransactionRow] = None
    try:
        if photo.reward_given:
            credited = _recorded_reward(session, photo_id)
            if credited:
                refund = _post_entry(
                    session,
                    user_id=owner_id,
                    amount=-credited,
                    kind=TransactionType.REFUND,
                    photo_id=photo_id,
                    description="Photo deleted - reward reversed",
                )
            else:
                logger.warning("Photo %s marked rewarded but has no reward entry", photo_id)
        if was_approved and place_id is not None:
            adjust_photo_count(session, place_id, -1)
        session.delete(photo)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Photo %s deleted by %s%s",
        photo_id,
        actor_id,
        f"; refunded {-refund.amount}" if refund is not None else "",
    )
    return refund


def redeem(
    session: Session,
    user_id: str,
    amount: int,
    *,
    reference: Optional[str] = None,
    description: Optional[str] = None,
) -> TransactionRow:
    """Debit the wallet for a redemption; refuses to take the balance below zero."""
    if amount <= 0:
        raise ValidationError("Redemption amount must be positive")
    _get_user(session, user_id)
    try:
        debited = session.execute(
            update(UserRow)
            .where(UserRow.id == user_id, UserRow.wallet_balance >= amount)
            .values(wallet_balance=UserRow.wallet_balance - amount)
        ).rowcount
        if debited != 1:
            raise ConflictError("Insufficient wallet balance")
        entry = TransactionRow(
            user_id=user_id,
            amount=-amount,
            type=TransactionType.REDEMPTION.value,
            status=TransactionStatus.COMPLETED.value,
            description=description or "Wallet redemption",
            reference=reference,
        )
        session.add(entry)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("User %s redeemed %d (ref=%s)", user_id, amount, reference or "-")
    return entry


def ledger_total(session: Session, user_id: str) -> int:
    """Sum of the user's completed ledger entries; always equals wallet_balance."""
    return session.scalar(
        select(func.coalesce(func.sum(TransactionRow.amount), 0)).where(
            TransactionRow.user_id == user_id,
            TransactionRow.status == TransactionStatus.COMPLETED.value,
        )
    )
