from __future__ import annotations
from typing import Optional, Set
from flask import g
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select
from reimburse.models.user import User
from reimburse.constants.roles import ROLE_FINANCE, ROLE_ADMINISTRATOR
from reimburse.errors import Forbidden
from reimburse import get_db


def current_roles() -> Set[str]:
    claims = get_jwt()
    return set((claims.get('realm_access') or {}).get('roles') or [])


def has_any_role(*roles: str) -> bool:
    granted = current_roles()
    return any(r in granted for r in roles)


def current_subject() -> str:
    return get_jwt_identity()


def find_current_user() -> Optional[User]:
    """Resolve the caller's local profile by token subject, once per request."""
    subject = current_subject()
    # Keyed by subject: an app context can outlive a single request
    profiles = g.setdefault('profiles', {})
    if profiles.get(subject) is None:
        profiles[subject] = get_db().execute(
            select(User).where(User.idp_subject == subject)
        ).scalar_one_or_none()
    return profiles[subject]


def current_user() -> User:
    user = find_current_user()
    if user is None:
        raise Forbidden('No local profile is linked to this account')
    return user


def assert_owner(owner_user_id: int):
    if current_user().id != owner_user_id:
        raise Forbidden('Resource does not belong to this user')


def can_review() -> bool:
    return has_any_role(ROLE_FINANCE, ROLE_ADMINISTRATOR)


def assert_can_read_owned(owner_user_id: int):
    """Reviewers read anything; everyone else only their own records."""
    if can_review():
        return
    assert_owner(owner_user_id)
