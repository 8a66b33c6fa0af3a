from __future__ import annotations
"""Identity service: employee onboarding and local profiles.

Onboarding creates the account in the identity provider first and the local
row second. There is no distributed transaction: if the local insert fails
after the provider accepted the account, the account is left behind and the
subject is logged so it can be cleaned up by hand. The temporary password is
returned to the caller once and is never stored or logged.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from reimburse import get_db, get_idp
from reimburse.constants.roles import ALL_ROLES, DEFAULT_ONBOARDING_ROLE
from reimburse.errors import DomainError, IdpError, NotFound, StateError, UpstreamError, ValidationFailed
from reimburse.models.folder import Folder
from reimburse.models.user import User
from reimburse.services.idp import TEMPORARY_PASSWORD_ATTRIBUTE
from reimburse.utils.validation import require_text, validate_choice, validate_email

log = logging.getLogger(__name__)


def temporary_password(first_name: str, year: Optional[int] = None) -> str:
    return f"{first_name}@Datum{year or date.today().year}"


def _nickname_taken(session, nickname: str, exclude_id: Optional[int] = None) -> bool:
    q = select(User.id).where(User.nickname == nickname)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return session.execute(q).first() is not None


def _profile_fields(first_name: Any, last_name: Any, nickname: Any, email: Any) -> Dict[str, str]:
    return {
        'first_name': require_text(first_name, 'firstName'),
        'last_name': require_text(last_name, 'lastName'),
        'nickname': require_text(nickname, 'nickname'),
        'email': validate_email(email),
    }


# ---------- queries ---------- #

def list_users() -> List[User]:
    return list(get_db().execute(select(User).order_by(User.id)).scalars())


def get_user(user_id: int) -> User:
    user = get_db().get(User, user_id)
    if user is None:
        raise NotFound(f"User not found with id: {user_id}")
    return user


def get_user_by_nickname(nickname: str) -> User:
    user = get_db().execute(select(User).where(User.nickname == nickname)).scalar_one_or_none()
    if user is None:
        raise NotFound(f"User not found with nickname: {nickname}")
    return user


def find_by_subject(subject: str) -> Optional[User]:
    return get_db().execute(select(User).where(User.idp_subject == subject)).scalar_one_or_none()


# ---------- onboarding ---------- #

def onboard_user(first_name: Any, last_name: Any, nickname: Any, email: Any,
                 role: Optional[str] = None) -> Tuple[User, str]:
    """Create the account in the identity provider, then the local profile.

    Returns ``(user, temporary_password)``.
    """
    fields = _profile_fields(first_name, last_name, nickname, email)
    role_name = validate_choice(role or DEFAULT_ONBOARDING_ROLE, ALL_ROLES, 'role')
    session = get_db()
    if _nickname_taken(session, fields['nickname']):
        raise ValidationFailed(f"Nickname already exists: {fields['nickname']}")

    password = temporary_password(fields['first_name'])
    idp = get_idp()
    admin_token = idp.admin_token()
    subject = idp.create_user(admin_token, fields['email'], fields['first_name'], fields['last_name'], password)
    try:
        idp.assign_realm_role(admin_token, subject, idp.get_role(admin_token, role_name))
        user = User(idp_subject=subject, **fields)
        session.add(user)
        session.commit()
    except DomainError:
        session.rollback()
        log.error('Onboarding of %s failed after the identity provider created account %s; account leaked',
                  fields['nickname'], subject)
        raise
    except SQLAlchemyError as e:
        session.rollback()
        log.error('Local profile for %s not stored; identity provider account %s leaked: %s',
                  fields['nickname'], subject, e.__class__.__name__)
        raise UpstreamError('User was created in the identity provider but could not be stored locally') from e
    log.info('Onboarded user %s (%s) with role %s', user.id, fields['nickname'], role_name)
    return user, password


def link_existing_account(subject: str, first_name: str, last_name: str, nickname: str, email: str,
                          commit: bool = True) -> User:
    """Attach a local profile to an account that already exists in the identity provider.

    Idempotent on ``subject``: an existing profile is returned unchanged.
    """
    fields = _profile_fields(first_name, last_name, nickname, email)
    subject = require_text(subject, 'subject')
    session = get_db()
    existing = find_by_subject(subject)
    if existing is not None:
        return existing
    if _nickname_taken(session, fields['nickname']):
        raise ValidationFailed(f"Nickname already exists: {fields['nickname']}")
    user = User(idp_subject=subject, **fields)
    session.add(user)
    if commit:
        session.commit()
    else:
        session.flush()
    return user


# ---------- profile maintenance (local only) ---------- #

def update_user(user_id: int, first_name: Any, last_name: Any, nickname: Any, email: Any) -> User:
    fields = _profile_fields(first_name, last_name, nickname, email)
    session = get_db()
    user = get_user(user_id)
    if _nickname_taken(session, fields['nickname'], exclude_id=user.id):
        raise ValidationFailed(f"Nickname already exists: {fields['nickname']}")
    for key, value in fields.items():
        setattr(user, key, value)
    session.commit()
    return user


def delete_user(user_id: int):
    session = get_db()
    user = get_user(user_id)
    if session.execute(select(Folder.id).where(Folder.user_id == user.id)).first() is not None:
        raise StateError('User owns folders and cannot be deleted')
    session.delete(user)
    session.commit()
    log.info('User %s deleted', user_id)


# ---------- credentials ---------- #

def change_password(subject: str, new_password: Any):
    password = require_text(new_password, 'newPassword')
    idp = get_idp()
    admin_token = idp.admin_token()
    idp.reset_password(admin_token, subject, password, temporary=False)
    try:
        idp.set_attributes(admin_token, subject, {TEMPORARY_PASSWORD_ATTRIBUTE: ['false']})
    except IdpError as e:
        log.warning('Password changed for %s but temporary flag not cleared: %s', subject, e.description)


def account_status(subject: str) -> Dict[str, Any]:
    idp = get_idp()
    admin_token = idp.admin_token()
    representation = idp.get_user(admin_token, subject)
    flag = (representation.get('attributes') or {}).get(TEMPORARY_PASSWORD_ATTRIBUTE) or ['false']
    return {
        'requiredActions': list(representation.get('requiredActions') or []),
        'temporaryPassword': str(flag[0]).lower() == 'true',
    }
