from __future__ import annotations
from flask import Blueprint, request

from reimburse.constants.roles import ADMINS
from reimburse.decorators.auth import require_roles
from reimburse.services import identity
from reimburse.utils.serialization import user_json

users_bp = Blueprint('users', __name__)


@users_bp.get('')
@require_roles(*ADMINS)
def list_users():
    return [user_json(u) for u in identity.list_users()]


@users_bp.get('/<int:user_id>')
@require_roles(*ADMINS)
def get_user(user_id: int):
    return user_json(identity.get_user(user_id))


@users_bp.get('/nickname/<string:nickname>')
@require_roles(*ADMINS)
def get_user_by_nickname(nickname: str):
    return user_json(identity.get_user_by_nickname(nickname))


@users_bp.post('')
@require_roles(*ADMINS)
def create_user():
    data = request.get_json(silent=True) or {}
    user, password = identity.onboard_user(
        data.get('firstName'),
        data.get('lastName'),
        data.get('nickname'),
        data.get('email'),
        role=data.get('role'),
    )
    return {
        'user': user_json(user),
        'temporaryPassword': password,
        'message': 'User created. Share the temporary password; it must be changed at first login.',
    }, 201


@users_bp.put('/<int:user_id>')
@require_roles(*ADMINS)
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    user = identity.update_user(user_id, data.get('firstName'), data.get('lastName'), data.get('nickname'), data.get('email'))
    return user_json(user)


@users_bp.delete('/<int:user_id>')
@require_roles(*ADMINS)
def delete_user(user_id: int):
    identity.delete_user(user_id)
    return '', 204
