from datetime import date
from tests.test_utils_seed import ensure_user, create_folder
from tests.test_utils_fakes import keycloak
from tests.test_lifecycle_helpers import headers_for, jwt_headers, assert_error


def admin_headers():
    admin = ensure_user('root', roles=['administrator'])
    return headers_for(admin, 'administrator')


def test_create_user_returns_temporary_password_once(app_context):
    client = app_context.test_client()
    resp = client.post('/api/users', json={
        'firstName': 'Ana', 'lastName': 'Lopez', 'nickname': 'ana', 'email': 'ana@example.com',
    }, headers=admin_headers())
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['temporaryPassword'] == f'Ana@Datum{date.today().year}'
    assert body['user']['nickname'] == 'ana'
    assert body['message']
    assert keycloak.users[body['user']['idpSubject']]['roles'] == ['employee']
    # never readable again
    again = client.get(f"/api/users/{body['user']['id']}", headers=admin_headers()).get_json()
    assert 'temporaryPassword' not in again


def test_create_user_duplicate_nickname(app_context):
    client = app_context.test_client()
    ensure_user('ana')
    resp = client.post('/api/users', json={
        'firstName': 'Ana', 'lastName': 'Lopez', 'nickname': 'ana', 'email': 'ana2@example.com',
    }, headers=admin_headers())
    assert_error(resp, 400, 'VALIDATION')


def test_create_user_idp_down_is_upstream(app_context):
    client = app_context.test_client()
    headers = admin_headers()
    keycloak.down = True
    resp = client.post('/api/users', json={
        'firstName': 'Ana', 'lastName': 'Lopez', 'nickname': 'ana', 'email': 'ana@example.com',
    }, headers=headers)
    assert_error(resp, 500, 'UPSTREAM')


def test_user_admin_requires_administrator(app_context):
    client = app_context.test_client()
    emp = ensure_user('ana')
    for method, url in [('get', '/api/users'), ('post', '/api/users'), ('delete', f'/api/users/{emp.id}')]:
        resp = getattr(client, method)(url, headers=headers_for(emp, 'employee', 'finance'))
        assert_error(resp, 403, 'AUTHZ')


def test_list_get_and_lookup(app_context):
    client = app_context.test_client()
    headers = admin_headers()
    ana = ensure_user('ana')
    listing = client.get('/api/users', headers=headers).get_json()
    assert {u['nickname'] for u in listing} == {'root', 'ana'}
    assert client.get(f'/api/users/{ana.id}', headers=headers).get_json()['email'] == 'ana@example.com'
    assert client.get('/api/users/nickname/ana', headers=headers).get_json()['id'] == ana.id
    assert_error(client.get('/api/users/nickname/ghost', headers=headers), 404, 'NOT_FOUND')
    assert_error(client.get('/api/users/999999', headers=headers), 404, 'NOT_FOUND')


def test_update_user(app_context):
    client = app_context.test_client()
    headers = admin_headers()
    ana = ensure_user('ana')
    resp = client.put(f'/api/users/{ana.id}', json={
        'firstName': 'Ana', 'lastName': 'Lopez', 'nickname': 'ana.l', 'email': 'ana.l@example.com',
    }, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['nickname'] == 'ana.l'
    resp = client.put(f'/api/users/{ana.id}', json={
        'firstName': 'Ana', 'lastName': 'Lopez', 'nickname': 'root', 'email': 'ana.l@example.com',
    }, headers=headers)
    assert_error(resp, 400, 'VALIDATION')


def test_delete_user(app_context):
    client = app_context.test_client()
    headers = admin_headers()
    ana = ensure_user('ana')
    bob = ensure_user('bob')
    create_folder(ana)
    assert_error(client.delete(f'/api/users/{ana.id}', headers=headers), 400, 'STATE')
    resp = client.delete(f'/api/users/{bob.id}', headers=headers)
    assert resp.status_code == 204
    assert_error(client.get(f'/api/users/{bob.id}', headers=headers), 404, 'NOT_FOUND')


def test_admin_role_without_profile_can_still_manage_users(app_context):
    client = app_context.test_client()
    resp = client.get('/api/users', headers=jwt_headers('bootstrap-admin', ['administrator']))
    assert resp.status_code == 200
