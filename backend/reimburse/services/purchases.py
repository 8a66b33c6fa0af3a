from __future__ import annotations
"""Purchase engine: purchase lifecycle and receipt attachment.

State machine (per purchase)::

    DRAFT --submit--> UNDER_REVIEW --approve--> VALIDATED
                           |
                           +------reject-----> REJECTED --delete--> (gone)

Data fields and the receipt pointer (``img_url``) are editable only in DRAFT.
The database row is authoritative for the receipt; the DMS follows it:

* create with file: insert + commit, upload, then write ``img_url`` in a new
  transaction (an upload failure leaves the row with no document);
* delete: the row is deleted and committed first, the blob best-effort;
* replace: old blob deleted best-effort, new one uploaded, pointer updated.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update

from reimburse import get_db, get_dms
from reimburse.errors import DocumentStateError, DomainError, Forbidden, NotFound, StateError, ValidationFailed
from reimburse.models.folder import Folder
from reimburse.models.purchase import Purchase
from reimburse.models.status import (
    STATUS_DRAFT, STATUS_UNDER_REVIEW, STATUS_VALIDATED, STATUS_REJECTED,
)
from reimburse.services import folders as folder_engine
from reimburse.services.dms import filename_from_path
from reimburse.utils.fsm import TransitionValidator
from reimburse.utils.validation import parse_amount

log = logging.getLogger(__name__)

PURCHASE_FSM = TransitionValidator({
    STATUS_DRAFT: {STATUS_UNDER_REVIEW},
    STATUS_UNDER_REVIEW: {STATUS_VALIDATED, STATUS_REJECTED},
    STATUS_VALIDATED: set(),
    STATUS_REJECTED: set(),
}, entity='purchase')

EDITABLE_FIELDS = (
    'category_id', 'payment_method_id', 'cost_center_id', 'total_amount',
    'description', 'guest_name', 'purchase_date',
)
# Folder states that still accept new receipts (first submission or resubmission)
OPEN_FOLDER_STATUSES = (STATUS_DRAFT, STATUS_REJECTED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _lock(session, purchase_id: int) -> Purchase:
    purchase = session.execute(
        select(Purchase).where(Purchase.id == purchase_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if purchase is None:
        raise NotFound(f"Purchase not found with ID: {purchase_id}")
    return purchase


def _transition(session, purchase: Purchase, target: str, **values):
    """Compare-and-set the status; the loser of a race gets StateError."""
    current = purchase.status
    PURCHASE_FSM.assert_can_transition(current, target)
    changes = {Purchase.status: target}
    changes.update({getattr(Purchase, k): v for k, v in values.items()})
    result = session.execute(
        update(Purchase).where(Purchase.id == purchase.id, Purchase.status == current).values(changes)
    )
    if result.rowcount != 1:
        raise StateError(f"Purchase {purchase.id} changed concurrently; status is no longer {current}")
    log.info('Purchase %s: %s -> %s', purchase.id, current, target)


def _document_date(purchase: Purchase) -> date:
    if purchase.purchase_date is not None:
        return purchase.purchase_date
    if purchase.created_at is not None:
        return purchase.created_at.date()
    return date.today()


# ---------- queries ---------- #

def get_purchase(purchase_id: int) -> Purchase:
    purchase = get_db().get(Purchase, purchase_id)
    if purchase is None:
        raise NotFound(f"Purchase not found with ID: {purchase_id}")
    return purchase


def list_by_user(user_id: int) -> List[Purchase]:
    if user_id is None:
        raise ValidationFailed('User ID cannot be null')
    q = select(Purchase).where(Purchase.user_id == user_id).order_by(Purchase.id)
    return list(get_db().execute(q).scalars())


def list_by_folder(folder_id: int) -> List[Purchase]:
    if folder_id is None:
        raise ValidationFailed('Folder ID cannot be null')
    q = select(Purchase).where(Purchase.folder_id == folder_id).order_by(Purchase.id)
    return list(get_db().execute(q).scalars())


# ---------- create / edit / delete ---------- #

def create_purchase(user_id: Optional[int], folder_id: Optional[int], total_amount: Any,
                    purchase_date: Optional[date] = None, category_id: Optional[int] = None,
                    payment_method_id: Optional[int] = None, cost_center_id: Optional[int] = None,
                    description: Optional[str] = None, guest_name: Optional[str] = None) -> Purchase:
    if user_id is None:
        raise ValidationFailed('User ID is required')
    if folder_id is None:
        raise ValidationFailed('Folder ID is required')
    amount = parse_amount(total_amount)
    session = get_db()
    folder = session.get(Folder, folder_id)
    if folder is None:
        raise NotFound(f"Folder not found: {folder_id}")
    if folder.user_id != user_id:
        raise Forbidden('Folder does not belong to this user')
    if folder.status not in OPEN_FOLDER_STATUSES:
        raise StateError(f"Cannot add purchases to folder in {folder.status} status")
    purchase = Purchase(
        user_id=user_id,
        folder_id=folder_id,
        category_id=category_id,
        payment_method_id=payment_method_id,
        cost_center_id=cost_center_id,
        total_amount=amount,
        description=description,
        guest_name=guest_name,
        purchase_date=purchase_date,
        status=STATUS_DRAFT,
        created_at=_now(),
    )
    session.add(purchase)
    session.commit()
    log.info('Purchase %s created in folder %s', purchase.id, folder_id)
    return purchase


def create_purchase_with_document(fields: Dict[str, Any], filename: str, content: bytes,
                                  mimetype: str) -> Tuple[Purchase, str]:
    """Insert the row, upload the receipt, then point the row at it.

    The insert is committed before the upload so an unreachable DMS leaves a
    purchase without document that can receive the file later.
    """
    purchase = create_purchase(**fields)
    try:
        path = get_dms().upload(purchase.id, _document_date(purchase), filename, content, mimetype)
    except DomainError:
        log.warning('Purchase %s stored without document: upload failed', purchase.id)
        raise
    attach_document(purchase.id, path)
    return purchase, path


def update_purchase(purchase_id: int, changes: Dict[str, Any]) -> Purchase:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Fields not editable: {sorted(unknown)}")
    session = get_db()
    purchase = _lock(session, purchase_id)
    if not purchase.can_edit():
        raise StateError(f"Cannot edit purchase with status: {purchase.status}")
    if 'total_amount' in changes:
        changes = {**changes, 'total_amount': parse_amount(changes['total_amount'])}
    for key, value in changes.items():
        setattr(purchase, key, value)
    session.commit()
    return purchase


def delete_purchase(purchase_id: int):
    session = get_db()
    purchase = _lock(session, purchase_id)
    if not purchase.can_delete():
        raise StateError(f"Cannot delete purchase with status: {purchase.status}")
    path = purchase.img_url
    session.delete(purchase)
    session.commit()
    log.info('Purchase %s deleted', purchase_id)
    get_dms().delete_quietly(path)


# ---------- document pointer ---------- #

def _set_document(purchase_id: int, path: Optional[str], action: str) -> Purchase:
    session = get_db()
    purchase = _lock(session, purchase_id)
    if not purchase.can_edit():
        raise DocumentStateError(f"Cannot {action} document on non-DRAFT purchase")
    # Guarded on DRAFT so a concurrent submit cannot slip in between
    result = session.execute(
        update(Purchase)
        .where(Purchase.id == purchase_id, Purchase.status == STATUS_DRAFT)
        .values({Purchase.img_url: path})
    )
    if result.rowcount != 1:
        raise DocumentStateError(f"Cannot {action} document on non-DRAFT purchase")
    session.commit()
    return purchase


def attach_document(purchase_id: int, path: str) -> Purchase:
    """Point the purchase at ``path``; the caller removes any superseded blob."""
    if not path:
        raise ValidationFailed('document path required')
    return _set_document(purchase_id, path, 'attach')


def detach_document(purchase_id: int) -> Purchase:
    return _set_document(purchase_id, None, 'remove')


def replace_document(purchase_id: int, filename: str, content: bytes, mimetype: str) -> Tuple[Purchase, str]:
    """Swap the receipt of a DRAFT purchase.

    The DMS calls run outside any transaction; the DRAFT guard in
    ``attach_document`` decides whether the new blob is adopted.
    """
    session = get_db()
    purchase = session.get(Purchase, purchase_id, populate_existing=True)
    if purchase is None:
        raise NotFound(f"Purchase not found with ID: {purchase_id}")
    if not purchase.can_edit():
        raise DocumentStateError(f"Cannot upload document for purchase with status: {purchase.status}")
    old_path, doc_date = purchase.img_url, _document_date(purchase)
    session.commit()
    dms = get_dms()
    path = dms.replace(old_path, purchase_id, doc_date, filename, content, mimetype)
    try:
        return attach_document(purchase_id, path), path
    except DocumentStateError:
        # Submitted while the upload ran: the new blob has no owner
        dms.delete_quietly(path)
        raise


def download_document(purchase_id: int) -> Tuple[bytes, str]:
    purchase = get_purchase(purchase_id)
    if not purchase.has_document():
        raise NotFound('No document attached to this purchase')
    # A pointer to a vanished blob is an inconsistency, surfaced as upstream failure
    content = get_dms().download(purchase.img_url)
    return content, filename_from_path(purchase.img_url)


# ---------- lifecycle ---------- #

def submit_purchase(purchase_id: int) -> Purchase:
    session = get_db()
    purchase = _lock(session, purchase_id)
    _transition(session, purchase, STATUS_UNDER_REVIEW)
    session.commit()
    return purchase


def _review(purchase_id: int, target: str, reviewer_id: int, notes: Optional[str]) -> Purchase:
    session = get_db()
    purchase = _lock(session, purchase_id)
    if purchase.status != STATUS_UNDER_REVIEW:
        verb = 'approve' if target == STATUS_VALIDATED else 'reject'
        raise StateError(f"Can only {verb} purchases with UNDER_REVIEW status. Current status: {purchase.status}")
    _transition(session, purchase, target, validated_by=reviewer_id, validated_at=_now(), validation_notes=notes)
    try:
        folder_engine.reevaluate_folder(purchase.folder_id, reviewer_id)
    except DomainError as e:
        # The purchase decision stands; a later review replays the derivation
        log.warning('Folder %s not re-evaluated after purchase %s: %s', purchase.folder_id, purchase.id, e.description)
    session.commit()
    return purchase


def approve_purchase(purchase_id: int, reviewer_id: int, notes: Optional[str] = None) -> Purchase:
    return _review(purchase_id, STATUS_VALIDATED, reviewer_id, notes)


def reject_purchase(purchase_id: int, reviewer_id: int, notes: Optional[str] = None) -> Purchase:
    return _review(purchase_id, STATUS_REJECTED, reviewer_id, notes)
