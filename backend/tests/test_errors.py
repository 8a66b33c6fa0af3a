from reimburse.config.uploads import MAX_REQUEST_BYTES
from tests.test_lifecycle_helpers import jwt_headers, assert_error


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    body = assert_error(resp, 404, 'NOT_FOUND')
    assert 'detail' in body['error']
    assert body['error']['title'] == 'Not Found'


def test_missing_token_is_unauth(client):
    resp = client.get('/api/users')
    assert_error(resp, 401, 'UNAUTH')


def test_garbage_token_is_unauth(client):
    resp = client.get('/api/users', headers={'Authorization': 'Bearer not.a.jwt'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['kind'] == 'UNAUTH'


def test_missing_role_is_authz(app_context):
    client = app_context.test_client()
    resp = client.get('/api/users', headers=jwt_headers('someone', ['employee']))
    body = assert_error(resp, 403, 'AUTHZ')
    assert body['error']['detail'] == 'Missing role'


def test_internal_error_shape(app_context, monkeypatch):
    from reimburse.services import identity

    def boom():
        raise RuntimeError('explode')
    monkeypatch.setattr(identity, 'list_users', boom)
    client = app_context.test_client()
    resp = client.get('/api/users', headers=jwt_headers('admin-subject', ['administrator']))
    body = assert_error(resp, 500, 'INTERNAL')
    assert body['error']['title'] == 'Internal Server Error'
    assert 'explode' not in body['error']['detail']


def test_oversized_request_is_reported_as_validation(app_context):
    client = app_context.test_client()
    payload = b'x' * (MAX_REQUEST_BYTES + 1)
    resp = client.post(
        '/api/purchases/document',
        data=payload,
        headers={**jwt_headers('someone', ['employee']), 'Content-Type': 'multipart/form-data; boundary=xyz'},
    )
    body = assert_error(resp, 400, 'VALIDATION')
    assert body['error']['detail'] == 'File size exceeds 10MB limit'


def test_healthz_is_public(client):
    resp = client.get('/healthz')
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'ok'}
