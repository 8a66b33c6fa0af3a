"""JSON shapes returned by the HTTP edge (camelCase, dates as YYYY-MM-DD)."""
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from reimburse.models.user import User
from reimburse.models.folder import Folder
from reimburse.models.purchase import Purchase


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _amount(value: Optional[Decimal]) -> Optional[str]:
    return f"{value:.2f}" if value is not None else None


def user_json(u: User):
    return {
        'id': u.id,
        'firstName': u.first_name,
        'lastName': u.last_name,
        'nickname': u.nickname,
        'email': u.email,
        'idpSubject': u.idp_subject,
    }


def folder_json(f: Folder):
    return {
        'id': f.id,
        'userId': f.user_id,
        'folderName': f.folder_name,
        'description': f.description,
        'startDate': _iso(f.start_date),
        'endDate': _iso(f.end_date),
        'validationStatus': f.status,
        'validatedAt': _iso(f.validated_at),
        'validatedBy': f.validated_by,
        'validationNotes': f.validation_notes,
        'canEdit': f.can_edit(),
    }


def purchase_json(p: Purchase):
    return {
        'id': p.id,
        'userId': p.user_id,
        'folderId': p.folder_id,
        'categoryId': p.category_id,
        'paymentMethodId': p.payment_method_id,
        'costCenterId': p.cost_center_id,
        'totalAmount': _amount(p.total_amount),
        'description': p.description,
        'guestName': p.guest_name,
        'purchaseDate': _iso(p.purchase_date),
        'imgUrl': p.img_url,
        'validationStatus': p.status,
        'validatedAt': _iso(p.validated_at),
        'validatedBy': p.validated_by,
        'validationNotes': p.validation_notes,
        'createdAt': _iso(p.created_at),
        'hasDocument': p.has_document(),
        'canEdit': p.can_edit(),
    }


def document_json(purchase_id: int, filename: str, mimetype: str, size: int, path: str, message: str):
    return {
        'purchaseId': purchase_id,
        'fileName': filename,
        'mimeType': mimetype,
        'fileSize': size,
        'documentPath': path,
        'uploadDate': datetime.now().isoformat(timespec='seconds'),
        'message': message,
    }
