from __future__ import annotations
from flask import Blueprint, request

from reimburse.constants.roles import OWNERS
from reimburse.decorators.auth import require_roles
from reimburse.errors import NotFound
from reimburse.services import folders as folder_engine
from reimburse.services.policy import assert_owner
from reimburse.utils.serialization import folder_json
from reimburse.utils.validation import parse_date

folders_bp = Blueprint('folders', __name__)


def _owned_folder(user_id: int, folder_id: int):
    assert_owner(user_id)
    folder = folder_engine.get_folder(folder_id)
    if folder.user_id != user_id:
        raise NotFound(f"Folder not found: {folder_id}")
    return folder


def _folder_fields(data):
    return {
        'folder_name': data.get('folderName'),
        'description': data.get('description'),
        'start_date': parse_date(data.get('startDate'), 'startDate'),
        'end_date': parse_date(data.get('endDate'), 'endDate'),
    }


@folders_bp.get('/<int:user_id>/folders')
@require_roles(*OWNERS)
def list_folders(user_id: int):
    assert_owner(user_id)
    status = request.args.get('validationStatus')
    if status:
        rows = folder_engine.list_by_owner_and_status(user_id, status)
    else:
        rows = folder_engine.list_by_owner(user_id)
    return [folder_json(f) for f in rows]


@folders_bp.post('/<int:user_id>/folders')
@require_roles(*OWNERS)
def create_folder(user_id: int):
    assert_owner(user_id)
    data = request.get_json(silent=True) or {}
    folder = folder_engine.create_folder(user_id, **_folder_fields(data))
    return folder_json(folder), 201


@folders_bp.get('/<int:user_id>/folders/<int:folder_id>')
@require_roles(*OWNERS)
def get_folder(user_id: int, folder_id: int):
    return folder_json(_owned_folder(user_id, folder_id))


@folders_bp.put('/<int:user_id>/folders/<int:folder_id>')
@require_roles(*OWNERS)
def update_folder(user_id: int, folder_id: int):
    _owned_folder(user_id, folder_id)
    data = request.get_json(silent=True) or {}
    folder = folder_engine.update_folder(folder_id, **_folder_fields(data))
    return folder_json(folder)


@folders_bp.delete('/<int:user_id>/folders/<int:folder_id>')
@require_roles(*OWNERS)
def delete_folder(user_id: int, folder_id: int):
    _owned_folder(user_id, folder_id)
    folder_engine.delete_folder(folder_id)
    return '', 204


@folders_bp.post('/<int:user_id>/folders/<int:folder_id>/submit')
@require_roles(*OWNERS)
def submit_folder(user_id: int, folder_id: int):
    _owned_folder(user_id, folder_id)
    submitted = folder_engine.submit_folder(folder_id)
    return {'submitted': submitted, 'folder': folder_json(folder_engine.get_folder(folder_id))}
