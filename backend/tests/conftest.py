import os, sys, pytest
# Ensure the backend directory is on path so 'reimburse' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
import httpx
from sqlalchemy import delete
from reimburse import create_app, get_db
from reimburse.models.user import Base, User
from reimburse.models.folder import Folder
from reimburse.models.purchase import Purchase
from tests.test_utils_fakes import (
    openkm, keycloak, JWT_TEST_SECRET, DMS_URL, IDP_URL, REALM, LOGIN_CLIENT, ADMIN_CLIENT,
)

TEST_CONFIG = {
    'TESTING': True,
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'LOG_LEVEL': 'DEBUG',
    'JWT_ALGORITHM': 'HS256',
    'JWT_SECRET_KEY': JWT_TEST_SECRET,
    'JWT_DECODE_AUDIENCE': None,
    'JWT_DECODE_ISSUER': None,
    'KEYCLOAK_URL': IDP_URL,
    'KEYCLOAK_REALM': REALM,
    'KEYCLOAK_CLIENT_ID': LOGIN_CLIENT,
    'KEYCLOAK_ADMIN_CLIENT_ID': ADMIN_CLIENT,
    'KEYCLOAK_ADMIN_USERNAME': 'admin',
    'KEYCLOAK_ADMIN_PASSWORD': 'admin',
    'OPENKM_URL': DMS_URL,
    'OPENKM_USERNAME': 'okmAdmin',
    'OPENKM_PASSWORD': 'admin',
    'OPENKM_BASE_PATH': '/okm:root/datum/employee/purchase',
    'CORS_ORIGIN': 'http://localhost:5173',
    'HTTP_TIMEOUT_SECONDS': 5.0,
    'DMS_TRANSPORT': httpx.MockTransport(openkm.handler),
    'IDP_TRANSPORT': httpx.MockTransport(keycloak.handler),
}


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(dict(TEST_CONFIG))
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def clean_state(app_instance):
    openkm.reset()
    keycloak.reset()
    with app_instance.app_context():
        session = get_db()
        session.execute(delete(Purchase))
        session.execute(delete(Folder))
        session.execute(delete(User))
        session.commit()
    yield


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def dms():
    return openkm


@pytest.fixture()
def idp():
    return keycloak
