from __future__ import annotations
"""Folder engine: folder lifecycle and the status derived from child purchases.

Folder transitions::

    DRAFT --submit--> UNDER_REVIEW --derived--> VALIDATED
                           |  ^
                           |  +----resubmit----+
                           +--derived/manual--> REJECTED

The derived status is recomputed after every purchase review inside the same
transaction that wrote the purchase. Derivation only moves an UNDER_REVIEW
folder into a terminal state, so replaying it is harmless.
"""
import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select, update, delete

from reimburse import get_db, get_dms
from reimburse.errors import NotFound, StateError, ValidationFailed
from reimburse.models.folder import Folder
from reimburse.models.purchase import Purchase
from reimburse.models.status import (
    STATUS_DRAFT, STATUS_UNDER_REVIEW, STATUS_VALIDATED, STATUS_REJECTED, ALL_STATUSES,
)
from reimburse.utils.fsm import TransitionValidator
from reimburse.utils.validation import require_text, validate_date_range, validate_choice

log = logging.getLogger(__name__)

FOLDER_FSM = TransitionValidator({
    STATUS_DRAFT: {STATUS_UNDER_REVIEW},
    STATUS_UNDER_REVIEW: {STATUS_VALIDATED, STATUS_REJECTED},
    STATUS_REJECTED: {STATUS_UNDER_REVIEW},
    STATUS_VALIDATED: set(),
}, entity='folder')


def derive_folder_status(child_statuses: Iterable[str]) -> Optional[str]:
    """Return the terminal status implied by the children, or None to stay put."""
    statuses = list(child_statuses)
    if not statuses:
        return None
    if all(s == STATUS_VALIDATED for s in statuses):
        return STATUS_VALIDATED
    if all(s == STATUS_REJECTED for s in statuses):
        return STATUS_REJECTED
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _lock(session, folder_id: int) -> Folder:
    folder = session.execute(
        select(Folder).where(Folder.id == folder_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if folder is None:
        raise NotFound(f"Folder not found: {folder_id}")
    return folder


def _transition(session, folder: Folder, target: str, **values):
    """Compare-and-set the status; losing a race surfaces as StateError."""
    current = folder.status
    FOLDER_FSM.assert_can_transition(current, target)
    changes = {Folder.status: target}
    changes.update({getattr(Folder, k): v for k, v in values.items()})
    result = session.execute(
        update(Folder).where(Folder.id == folder.id, Folder.status == current).values(changes)
    )
    if result.rowcount != 1:
        raise StateError(f"Folder {folder.id} changed concurrently; status is no longer {current}")
    log.info('Folder %s: %s -> %s', folder.id, current, target)


# ---------- queries ---------- #

def get_folder(folder_id: int) -> Folder:
    folder = get_db().get(Folder, folder_id)
    if folder is None:
        raise NotFound(f"Folder not found: {folder_id}")
    return folder


def list_by_owner(user_id: int) -> List[Folder]:
    return list(get_db().execute(select(Folder).where(Folder.user_id == user_id).order_by(Folder.id)).scalars())


def list_by_status(status: str) -> List[Folder]:
    validate_choice(status, ALL_STATUSES, 'validationStatus')
    return list(get_db().execute(select(Folder).where(Folder.status == status).order_by(Folder.id)).scalars())


def list_by_owner_and_status(user_id: int, status: str) -> List[Folder]:
    validate_choice(status, ALL_STATUSES, 'validationStatus')
    q = select(Folder).where(Folder.user_id == user_id, Folder.status == status).order_by(Folder.id)
    return list(get_db().execute(q).scalars())


def list_under_review(user_id: Optional[int] = None) -> List[Folder]:
    if user_id is None:
        return list_by_status(STATUS_UNDER_REVIEW)
    return list_by_owner_and_status(user_id, STATUS_UNDER_REVIEW)


# ---------- owner operations ---------- #

def create_folder(user_id: int, folder_name: str, description: Optional[str] = None,
                  start_date: Optional[date] = None, end_date: Optional[date] = None) -> Folder:
    if user_id is None:
        raise ValidationFailed('userId required')
    name = require_text(folder_name, 'folderName')
    validate_date_range(start_date, end_date)
    session = get_db()
    folder = Folder(
        user_id=user_id,
        folder_name=name,
        description=description,
        start_date=start_date,
        end_date=end_date,
        status=STATUS_DRAFT,
    )
    session.add(folder)
    session.commit()
    log.info('Folder %s created for user %s', folder.id, user_id)
    return folder


def update_folder(folder_id: int, folder_name: str, description: Optional[str] = None,
                  start_date: Optional[date] = None, end_date: Optional[date] = None) -> Folder:
    session = get_db()
    folder = _lock(session, folder_id)
    if not folder.can_edit():
        raise StateError(f"Cannot edit folder in {folder.status} status")
    name = require_text(folder_name, 'folderName')
    validate_date_range(start_date, end_date)
    folder.folder_name = name
    folder.description = description
    folder.start_date = start_date
    folder.end_date = end_date
    session.commit()
    return folder


def delete_folder(folder_id: int):
    """Delete a DRAFT folder with its purchases; their blobs are removed best-effort."""
    session = get_db()
    folder = _lock(session, folder_id)
    if not folder.can_edit():
        raise StateError(f"Cannot delete folder in {folder.status} status")
    children = list(session.execute(select(Purchase).where(Purchase.folder_id == folder_id)).scalars())
    blocked = [p.id for p in children if not p.can_delete()]
    if blocked:
        raise StateError(f"Folder contains purchases that cannot be deleted: {blocked}")
    paths = [p.img_url for p in children if p.img_url]
    session.execute(delete(Purchase).where(Purchase.folder_id == folder_id))
    session.delete(folder)
    session.commit()
    log.info('Folder %s deleted with %d purchases', folder_id, len(children))
    dms = get_dms()
    for path in paths:
        dms.delete_quietly(path)


def submit_folder(folder_id: int) -> int:
    """Move every DRAFT child to UNDER_REVIEW and the folder with them.

    Works for first submission (DRAFT) and resubmission (REJECTED, which also
    clears the previous review). Returns the number of purchases submitted.
    """
    session = get_db()
    folder = _lock(session, folder_id)
    FOLDER_FSM.assert_can_transition(folder.status, STATUS_UNDER_REVIEW)
    total = len(session.execute(select(Purchase.id).where(Purchase.folder_id == folder_id)).all())
    if total == 0:
        raise ValidationFailed(f"No purchases found in folder: {folder_id}")
    result = session.execute(
        update(Purchase)
        .where(Purchase.folder_id == folder_id, Purchase.status == STATUS_DRAFT)
        .values({Purchase.status: STATUS_UNDER_REVIEW})
    )
    submitted = result.rowcount
    if submitted == 0:
        raise StateError('No DRAFT purchases found to submit in folder')
    _transition(session, folder, STATUS_UNDER_REVIEW, validated_at=None, validated_by=None, validation_notes=None)
    session.commit()
    log.info('Folder %s submitted with %d purchases', folder_id, submitted)
    return submitted


# ---------- review ---------- #

def reject_folder(folder_id: int, reviewer_id: int, notes: Optional[str] = None) -> Folder:
    """Manual override: reject an UNDER_REVIEW folder without touching its purchases."""
    session = get_db()
    folder = _lock(session, folder_id)
    if folder.status != STATUS_UNDER_REVIEW:
        raise StateError(f"Can only reject folders with UNDER_REVIEW status. Current status: {folder.status}")
    _transition(session, folder, STATUS_REJECTED, validated_by=reviewer_id, validated_at=_now(), validation_notes=notes)
    session.commit()
    return folder


def reevaluate_folder(folder_id: int, reviewer_id: int) -> Optional[str]:
    """Apply the derived status to an UNDER_REVIEW folder; does not commit.

    Returns the new status, or None when the folder stays as it is.
    """
    session = get_db()
    folder = _lock(session, folder_id)
    if folder.status != STATUS_UNDER_REVIEW:
        return None
    statuses = session.execute(select(Purchase.status).where(Purchase.folder_id == folder_id)).scalars().all()
    target = derive_folder_status(statuses)
    if target is None:
        return None
    _transition(session, folder, target, validated_by=reviewer_id, validated_at=_now(), validation_notes=None)
    return target
