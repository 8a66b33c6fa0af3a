from __future__ import annotations
import mimetypes

from flask import Blueprint, Response, request

from reimburse.config.uploads import ALLOWED_MIME_TYPES, MAX_UPLOAD_BYTES
from reimburse.constants.roles import OWNERS, READERS, REVIEWERS
from reimburse.decorators.auth import require_roles
from reimburse.errors import DocumentStateError, Forbidden, ValidationFailed
from reimburse.services import purchases as purchase_engine
from reimburse.services.dms import filename_from_path
from reimburse.services.policy import assert_can_read_owned, assert_owner, current_user
from reimburse.utils.serialization import document_json, purchase_json
from reimburse.utils.validation import parse_date, parse_optional_int, require_fields

purchases_bp = Blueprint('purchases', __name__)

# JSON keys accepted on purchase create/update, mapped to model attributes
_FIELD_MAP = {
    'categoryId': 'category_id',
    'paymentMethodId': 'payment_method_id',
    'costCenterId': 'cost_center_id',
    'totalAmount': 'total_amount',
    'description': 'description',
    'guestName': 'guest_name',
    'purchaseDate': 'purchase_date',
}
_INT_FIELDS = ('categoryId', 'paymentMethodId', 'costCenterId')
# Form names used by existing upload clients
_LEGACY_NAMES = {
    'idUser': 'userId',
    'idFolder': 'folderId',
    'idPType': 'categoryId',
    'idPaymentMethod': 'paymentMethodId',
    'idCostCenter': 'costCenterId',
}


def _read_upload():
    """Return ``(filename, content, mimetype)`` of the multipart ``file`` part."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationFailed('File is required')
    content = upload.read()
    if not content:
        raise ValidationFailed('File is empty')
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationFailed('File size exceeds 10MB limit')
    mimetype = (upload.mimetype or '').lower()
    if mimetype not in ALLOWED_MIME_TYPES:
        raise ValidationFailed(f"Invalid file type. Allowed: {', '.join(ALLOWED_MIME_TYPES)}")
    return upload.filename, content, mimetype


def _canonical(data):
    """Fold legacy ``id*`` names into the camelCase keys; camelCase wins."""
    fields = {k: v for k, v in data.items() if k not in _LEGACY_NAMES}
    for legacy, key in _LEGACY_NAMES.items():
        if fields.get(key) in (None, '') and data.get(legacy) not in (None, ''):
            fields[key] = data[legacy]
    return fields


def _coerce(data, keys):
    fields = {}
    for key in keys:
        if key not in data:
            continue
        value = data.get(key)
        if key in _INT_FIELDS:
            value = parse_optional_int(value, key)
        elif key == 'purchaseDate':
            value = parse_date(value, key, required=True)
        elif key in ('description', 'guestName') and value == '':
            value = None
        fields[_FIELD_MAP[key]] = value
    return fields


def _draft_fields(data):
    data = _canonical(data)
    require_fields(data, ['folderId', 'totalAmount', 'purchaseDate'])
    caller = current_user()
    requested = parse_optional_int(data.get('userId'), 'userId')
    if requested is not None and requested != caller.id:
        raise Forbidden('Purchases can only be created for the authenticated user')
    fields = _coerce(data, _FIELD_MAP)
    fields['user_id'] = caller.id
    fields['folder_id'] = parse_optional_int(data.get('folderId'), 'folderId')
    return fields


def _owned_purchase(purchase_id: int):
    purchase = purchase_engine.get_purchase(purchase_id)
    assert_owner(purchase.user_id)
    return purchase


@purchases_bp.get('')
@require_roles(*READERS)
def list_purchases():
    user_id = parse_optional_int(request.args.get('userId'), 'userId')
    if user_id is None:
        user_id = current_user().id
    assert_can_read_owned(user_id)
    return [purchase_json(p) for p in purchase_engine.list_by_user(user_id)]


@purchases_bp.post('')
@require_roles(*OWNERS)
def create_purchase():
    data = request.get_json(silent=True) or {}
    purchase = purchase_engine.create_purchase(**_draft_fields(data))
    return purchase_json(purchase), 201


@purchases_bp.get('/<int:purchase_id>')
@require_roles(*READERS)
def get_purchase(purchase_id: int):
    purchase = purchase_engine.get_purchase(purchase_id)
    assert_can_read_owned(purchase.user_id)
    return purchase_json(purchase)


@purchases_bp.put('/<int:purchase_id>')
@require_roles(*OWNERS)
def update_purchase(purchase_id: int):
    _owned_purchase(purchase_id)
    data = request.get_json(silent=True) or {}
    purchase = purchase_engine.update_purchase(purchase_id, _coerce(_canonical(data), _FIELD_MAP))
    return purchase_json(purchase)


@purchases_bp.post('/document')
@require_roles(*OWNERS)
def create_purchase_with_document():
    fields = _draft_fields(request.form.to_dict())
    filename, content, mimetype = _read_upload()
    purchase, path = purchase_engine.create_purchase_with_document(fields, filename, content, mimetype)
    body = document_json(purchase.id, filename_from_path(path), mimetype, len(content), path,
                         'Purchase created and document uploaded successfully')
    return body, 201


@purchases_bp.post('/<int:purchase_id>/document')
@require_roles(*OWNERS)
def upload_document(purchase_id: int):
    _owned_purchase(purchase_id)
    filename, content, mimetype = _read_upload()
    purchase, path = purchase_engine.replace_document(purchase_id, filename, content, mimetype)
    body = document_json(purchase.id, filename_from_path(path), mimetype, len(content), path,
                         'Document uploaded successfully')
    return body, 201


@purchases_bp.put('/<int:purchase_id>/update')
@require_roles(*OWNERS)
def update_purchase_with_document(purchase_id: int):
    """Multipart edit: changed fields plus an optional replacement receipt."""
    purchase = _owned_purchase(purchase_id)
    if not purchase.can_edit():
        raise DocumentStateError(f"Cannot edit purchase with status: {purchase.status}")
    upload = request.files.get('file')
    # Validate the file before any field change is committed
    received = _read_upload() if upload is not None and upload.filename else None
    form = {k: v for k, v in request.form.items() if v != ''}
    changes = _coerce(_canonical(form), _FIELD_MAP)
    if changes:
        purchase = purchase_engine.update_purchase(purchase_id, changes)
    if received is None:
        return {'message': 'Purchase updated successfully', 'purchase': purchase_json(purchase)}
    filename, content, mimetype = received
    purchase, path = purchase_engine.replace_document(purchase_id, filename, content, mimetype)
    return document_json(purchase.id, filename_from_path(path), mimetype, len(content), path,
                         'Purchase and document updated successfully')


@purchases_bp.get('/<int:purchase_id>/document')
@require_roles(*READERS)
def download_document(purchase_id: int):
    purchase = purchase_engine.get_purchase(purchase_id)
    assert_can_read_owned(purchase.user_id)
    content, filename = purchase_engine.download_document(purchase_id)
    mimetype = mimetypes.guess_type(filename)[0] or 'application/octet-stream'
    return Response(
        content,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@purchases_bp.delete('/<int:purchase_id>/document')
@require_roles(*OWNERS)
def delete_purchase_and_document(purchase_id: int):
    _owned_purchase(purchase_id)
    purchase_engine.delete_purchase(purchase_id)
    return {'message': 'Purchase and document deleted successfully'}


@purchases_bp.post('/<int:purchase_id>/approve')
@require_roles(*REVIEWERS)
def approve_purchase(purchase_id: int):
    data = request.get_json(silent=True) or {}
    purchase = purchase_engine.approve_purchase(purchase_id, current_user().id, data.get('notes'))
    return purchase_json(purchase)


@purchases_bp.post('/<int:purchase_id>/reject')
@require_roles(*REVIEWERS)
def reject_purchase(purchase_id: int):
    data = request.get_json(silent=True) or {}
    purchase = purchase_engine.reject_purchase(purchase_id, current_user().id, data.get('notes'))
    return purchase_json(purchase)
