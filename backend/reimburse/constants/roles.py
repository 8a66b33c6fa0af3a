"""Realm roles carried in the access token (``realm_access.roles``).

Role names mirror the IdP realm configuration; renaming one here without the
realm breaks authorization silently.
"""
from __future__ import annotations
from typing import Tuple

ROLE_EMPLOYEE = 'employee'
ROLE_FINANCE = 'finance'
ROLE_ADMINISTRATOR = 'administrator'
ALL_ROLES: Tuple[str, ...] = (ROLE_EMPLOYEE, ROLE_FINANCE, ROLE_ADMINISTRATOR)
DEFAULT_ONBOARDING_ROLE = ROLE_EMPLOYEE

# Path family -> roles allowed
OWNERS = (ROLE_EMPLOYEE, ROLE_ADMINISTRATOR)
REVIEWERS = (ROLE_FINANCE, ROLE_ADMINISTRATOR)
READERS = (ROLE_EMPLOYEE, ROLE_FINANCE, ROLE_ADMINISTRATOR)
ADMINS = (ROLE_ADMINISTRATOR,)
