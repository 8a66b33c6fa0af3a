from __future__ import annotations
from flask import Blueprint, request

from reimburse.constants.roles import READERS, REVIEWERS
from reimburse.decorators.auth import require_roles
from reimburse.services import folders as folder_engine
from reimburse.services import purchases as purchase_engine
from reimburse.services.policy import assert_can_read_owned, current_user
from reimburse.utils.serialization import folder_json, purchase_json
from reimburse.utils.validation import parse_optional_int

review_bp = Blueprint('review', __name__)


@review_bp.get('/review')
@require_roles(*REVIEWERS)
def folders_under_review():
    user_id = parse_optional_int(request.args.get('userId'), 'userId')
    return [folder_json(f) for f in folder_engine.list_under_review(user_id)]


@review_bp.get('/<int:folder_id>/purchases')
@require_roles(*READERS)
def folder_purchases(folder_id: int):
    folder = folder_engine.get_folder(folder_id)
    assert_can_read_owned(folder.user_id)
    return [purchase_json(p) for p in purchase_engine.list_by_folder(folder_id)]


@review_bp.post('/<int:folder_id>/reject')
@require_roles(*REVIEWERS)
def reject_folder(folder_id: int):
    data = request.get_json(silent=True) or {}
    reviewer = current_user()
    folder = folder_engine.reject_folder(folder_id, reviewer.id, data.get('notes'))
    return folder_json(folder)
