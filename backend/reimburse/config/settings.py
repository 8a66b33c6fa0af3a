"""Environment-backed settings.

Values are read once per ``create_app`` call; callers (tests, scripts) can
override any key through the ``config`` mapping passed to the factory.
"""
from __future__ import annotations
import os
import textwrap
from typing import Any, Dict


def _pem(raw: str | None) -> str | None:
    # Keycloak exposes the realm key as bare base64; PyJWT wants PEM framing
    if not raw:
        return None
    raw = raw.strip()
    if raw.startswith('-----BEGIN'):
        return raw
    body = '\n'.join(textwrap.wrap(''.join(raw.split()), 64))
    return f"-----BEGIN PUBLIC KEY-----\n{body}\n-----END PUBLIC KEY-----"


def load_settings() -> Dict[str, Any]:
    timeout = float(os.getenv('HTTP_TIMEOUT_SECONDS', '30'))
    return {
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
        'PORT': int(os.getenv('PORT', '8080')),
        'CORS_ORIGIN': os.getenv('CORS_ORIGIN', 'http://localhost:5173'),
        # Identity provider
        'KEYCLOAK_URL': os.getenv('KEYCLOAK_URL', 'http://localhost:8080'),
        'KEYCLOAK_REALM': os.getenv('KEYCLOAK_REALM', 'datum'),
        'KEYCLOAK_CLIENT_ID': os.getenv('KEYCLOAK_CLIENT_ID', 'datum-react-app'),
        'KEYCLOAK_ADMIN_CLIENT_ID': os.getenv('KEYCLOAK_ADMIN_CLIENT_ID', 'admin-cli'),
        'KEYCLOAK_ADMIN_USERNAME': os.getenv('KEYCLOAK_ADMIN_USERNAME', 'admin'),
        'KEYCLOAK_ADMIN_PASSWORD': os.getenv('KEYCLOAK_ADMIN_PASSWORD', 'admin'),
        # Access token verification (flask-jwt-extended)
        'JWT_ALGORITHM': os.getenv('JWT_ALGORITHM', 'RS256'),
        'JWT_PUBLIC_KEY': _pem(os.getenv('KEYCLOAK_PUBLIC_KEY')),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'JWT_DECODE_AUDIENCE': os.getenv('KEYCLOAK_AUDIENCE', 'account') or None,
        'JWT_DECODE_ISSUER': os.getenv('KEYCLOAK_ISSUER') or None,
        'JWT_TOKEN_LOCATION': ['headers'],
        # Document management system
        'OPENKM_URL': os.getenv('OPENKM_URL', 'http://localhost:8180/OpenKM'),
        'OPENKM_USERNAME': os.getenv('OPENKM_USERNAME', 'okmAdmin'),
        'OPENKM_PASSWORD': os.getenv('OPENKM_PASSWORD', 'admin'),
        'OPENKM_BASE_PATH': os.getenv('OPENKM_BASE_PATH', '/okm:root/datum/employee/purchase'),
        'HTTP_TIMEOUT_SECONDS': timeout,
        # Optional httpx transports (tests inject MockTransport here)
        'DMS_TRANSPORT': None,
        'IDP_TRANSPORT': None,
    }
