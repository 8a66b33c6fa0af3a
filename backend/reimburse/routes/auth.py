from __future__ import annotations
from flask import Blueprint, request
from flask_jwt_extended import get_jwt

from reimburse import get_idp
from reimburse.decorators.auth import require_roles
from reimburse.errors import InvalidCredentials
from reimburse.services import identity
from reimburse.services.idp import IdpGateway
from reimburse.services.policy import current_subject, find_current_user
from reimburse.utils.serialization import user_json
from reimburse.utils.validation import require_fields

auth_bp = Blueprint('auth', __name__)


@auth_bp.post('/login')
def login():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['username', 'password'])
    idp = get_idp()
    try:
        tokens = idp.password_grant(data['username'], data['password'])
    except InvalidCredentials as e:
        return {'success': False, 'message': e.description}, 401
    claims = idp.decode_access_token(tokens['access_token'])
    return {
        'success': True,
        'accessToken': tokens['access_token'],
        'refreshToken': tokens.get('refresh_token'),
        'tokenType': tokens.get('token_type', 'Bearer'),
        'expiresIn': tokens.get('expires_in'),
        'user': IdpGateway.user_info(claims),
    }


@auth_bp.post('/change-password')
@require_roles()
def change_password():
    data = request.get_json(silent=True) or {}
    identity.change_password(current_subject(), data.get('newPassword'))
    return {'success': True, 'message': 'Password changed successfully'}


@auth_bp.get('/me')
@require_roles()
def me():
    profile = find_current_user()
    payload = IdpGateway.user_info(get_jwt())
    payload['profile'] = user_json(profile) if profile else None
    payload.update(identity.account_status(current_subject()))
    return payload
