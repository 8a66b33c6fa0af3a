from __future__ import annotations
"""Gateway to the identity provider (Keycloak admin + token endpoints).

All admin endpoints are addressed relative to ``/admin/realms/<realm>/users``
(plus the realm role lookup). The admin bearer is obtained per operation with
a password grant on the ``admin-cli`` client and is never cached.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import PyJWTError

from reimburse.errors import IdpConflictError, IdpError, InvalidCredentials

log = logging.getLogger(__name__)

TEMPORARY_PASSWORD_ATTRIBUTE = 'temporary_password'


class IdpGateway:
    def __init__(self, base_url: str, realm: str, client_id: str, admin_client_id: str,
                 admin_username: str, admin_password: str, timeout: float = 30.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self.realm = realm
        self.client_id = client_id
        self.admin_client_id = admin_client_id
        self.admin_username = admin_username
        self.admin_password = admin_password
        self.timeout = httpx.Timeout(timeout)
        self.transport = transport

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'IdpGateway':
        return cls(
            config['KEYCLOAK_URL'],
            config['KEYCLOAK_REALM'],
            config['KEYCLOAK_CLIENT_ID'],
            config['KEYCLOAK_ADMIN_CLIENT_ID'],
            config['KEYCLOAK_ADMIN_USERNAME'],
            config['KEYCLOAK_ADMIN_PASSWORD'],
            timeout=config.get('HTTP_TIMEOUT_SECONDS', 30.0),
            transport=config.get('IDP_TRANSPORT'),
        )

    # ---------- plumbing ---------- #

    @property
    def token_url(self) -> str:
        return f"/realms/{self.realm}/protocol/openid-connect/token"

    @property
    def users_url(self) -> str:
        return f"/admin/realms/{self.realm}/users"

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                return client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise IdpError(f"Identity provider timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise IdpError(f"Identity provider unreachable: {e}") from e

    @staticmethod
    def _bearer(token: str) -> Dict[str, str]:
        return {'Authorization': f"Bearer {token}"}

    # ---------- token endpoint ---------- #

    def password_grant(self, username: str, password: str, client_id: Optional[str] = None) -> Dict[str, Any]:
        resp = self._send('POST', self.token_url, data={
            'grant_type': 'password',
            'client_id': client_id or self.client_id,
            'username': username,
            'password': password,
        })
        if resp.status_code in (400, 401):
            raise InvalidCredentials('Invalid credentials or user does not exist')
        if resp.status_code != 200:
            raise IdpError(f"Token request failed. Status: {resp.status_code}")
        return resp.json()

    def admin_token(self) -> str:
        try:
            tokens = self.password_grant(self.admin_username, self.admin_password, client_id=self.admin_client_id)
        except InvalidCredentials as e:
            raise IdpError('Identity provider rejected the admin credentials') from e
        return tokens['access_token']

    # ---------- users ---------- #

    def create_user(self, admin_token: str, email: str, first_name: str, last_name: str, password: str) -> str:
        """Create an enabled user and return its subject (last segment of ``Location``)."""
        body = {
            'username': email,
            'email': email,
            'firstName': first_name,
            'lastName': last_name,
            'enabled': True,
            'credentials': [{'type': 'password', 'value': password, 'temporary': False}],
            # Protocol-level credential is permanent; the UI forces a change off this flag
            'attributes': {TEMPORARY_PASSWORD_ATTRIBUTE: ['true']},
        }
        resp = self._send('POST', self.users_url, json=body, headers=self._bearer(admin_token))
        if resp.status_code == 409:
            raise IdpConflictError(f"User already exists in identity provider: {email}")
        if resp.status_code != 201:
            raise IdpError(f"Failed to create user in identity provider. Status: {resp.status_code}")
        location = resp.headers.get('Location')
        if not location:
            raise IdpError('Identity provider did not return the new user location')
        subject = location.rstrip('/').rsplit('/', 1)[-1]
        log.info('User created in identity provider with subject %s', subject)
        return subject

    def get_user(self, admin_token: str, subject: str) -> Dict[str, Any]:
        resp = self._send('GET', f"{self.users_url}/{subject}", headers=self._bearer(admin_token))
        if resp.status_code != 200:
            raise IdpError(f"Failed to read user {subject} from identity provider. Status: {resp.status_code}")
        return resp.json()

    def required_actions(self, admin_token: str, subject: str) -> List[str]:
        return list(self.get_user(admin_token, subject).get('requiredActions') or [])

    def set_attributes(self, admin_token: str, subject: str, attributes: Dict[str, List[str]]):
        # Keycloak replaces the whole attribute map on PUT, so merge first
        current = self.get_user(admin_token, subject).get('attributes') or {}
        merged = {**current, **attributes}
        resp = self._send('PUT', f"{self.users_url}/{subject}", json={'attributes': merged}, headers=self._bearer(admin_token))
        if not resp.is_success:
            raise IdpError(f"Failed to update attributes of {subject}. Status: {resp.status_code}")

    def reset_password(self, admin_token: str, subject: str, password: str, temporary: bool = False):
        resp = self._send(
            'PUT', f"{self.users_url}/{subject}/reset-password",
            json={'type': 'password', 'value': password, 'temporary': temporary},
            headers=self._bearer(admin_token),
        )
        if resp.status_code == 404:
            raise IdpError(f"User {subject} not found in identity provider")
        if not resp.is_success:
            raise IdpError(f"Failed to reset password. Status: {resp.status_code}")

    # ---------- realm roles ---------- #

    def get_role(self, admin_token: str, role_name: str) -> Dict[str, Any]:
        resp = self._send('GET', f"/admin/realms/{self.realm}/roles/{role_name}", headers=self._bearer(admin_token))
        if resp.status_code != 200:
            raise IdpError(f"Realm role {role_name} could not be resolved. Status: {resp.status_code}")
        role = resp.json()
        return {'id': role['id'], 'name': role['name']}

    def assign_realm_role(self, admin_token: str, subject: str, role: Dict[str, Any]):
        resp = self._send(
            'POST', f"{self.users_url}/{subject}/role-mappings/realm",
            json=[role], headers=self._bearer(admin_token),
        )
        if not resp.is_success:
            raise IdpError(f"Failed to assign role {role.get('name')} to {subject}. Status: {resp.status_code}")
        log.info('Assigned realm role %s to %s', role.get('name'), subject)

    # ---------- tokens ---------- #

    @staticmethod
    def decode_access_token(token: str) -> Dict[str, Any]:
        """Verify and decode an access token with the app's JWT settings."""
        try:
            return decode_token(token)
        except (PyJWTError, JWTExtendedException) as e:
            raise IdpError(f"Identity provider issued a token that does not verify: {e.__class__.__name__}") from e

    @staticmethod
    def user_info(claims: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            'id': claims.get('sub'),
            'username': claims.get('preferred_username'),
            'email': claims.get('email'),
            'roles': list((claims.get('realm_access') or {}).get('roles') or []),
        }
