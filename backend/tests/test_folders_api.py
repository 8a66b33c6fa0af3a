from tests.test_utils_seed import ensure_user, create_folder, create_purchase
from tests.test_lifecycle_helpers import (
    headers_for, assert_error, create_folder_and_assert, submit_folder_and_assert,
)


def test_folder_crud_for_owner(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    h = headers_for(ana)
    folder = create_folder_and_assert(client, ana, h)
    assert folder['userId'] == ana.id
    assert folder['startDate'] == '2025-10-01'
    assert folder['canEdit'] is True

    listing = client.get(f'/api/users/{ana.id}/folders', headers=h).get_json()
    assert [f['id'] for f in listing] == [folder['id']]

    resp = client.put(f"/api/users/{ana.id}/folders/{folder['id']}", json={
        'folderName': 'Renamed', 'startDate': '2025-10-02', 'endDate': '2025-10-30',
    }, headers=h)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['folderName'] == 'Renamed'

    resp = client.delete(f"/api/users/{ana.id}/folders/{folder['id']}", headers=h)
    assert resp.status_code == 204
    assert_error(client.get(f"/api/users/{ana.id}/folders/{folder['id']}", headers=h), 404, 'NOT_FOUND')


def test_folder_dates_validated(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    h = headers_for(ana)
    resp = client.post(f'/api/users/{ana.id}/folders', json={
        'folderName': 'Bad', 'startDate': '2025-10-31', 'endDate': '2025-10-01',
    }, headers=h)
    assert_error(resp, 400, 'VALIDATION')
    resp = client.post(f'/api/users/{ana.id}/folders', json={
        'folderName': 'Bad', 'startDate': '31/10/2025',
    }, headers=h)
    body = assert_error(resp, 400, 'VALIDATION')
    assert body['error']['detail'] == 'Invalid startDate format. Use format: 2025-10-30'


def test_folders_are_owner_scoped(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    bob = ensure_user('bob')
    f = create_folder(ana)
    h = headers_for(bob)
    assert_error(client.get(f'/api/users/{ana.id}/folders', headers=h), 403, 'AUTHZ')
    assert_error(client.post(f'/api/users/{ana.id}/folders', json={'folderName': 'x'}, headers=h), 403, 'AUTHZ')
    assert_error(client.get(f'/api/users/{ana.id}/folders/{f.id}', headers=h), 403, 'AUTHZ')
    # bob's own path cannot reach ana's folder either
    assert_error(client.get(f'/api/users/{bob.id}/folders/{f.id}', headers=h), 404, 'NOT_FOUND')
    assert_error(client.delete(f'/api/users/{bob.id}/folders/{f.id}', headers=h), 404, 'NOT_FOUND')


def test_finance_cannot_manage_folders(app_context):
    client = app_context.test_client()
    fin = ensure_user('fin', roles=['finance'])
    resp = client.post(f'/api/users/{fin.id}/folders', json={'folderName': 'x'}, headers=headers_for(fin, 'finance'))
    assert_error(resp, 403, 'AUTHZ')


def test_caller_without_profile_is_forbidden(app_context):
    from tests.test_lifecycle_helpers import jwt_headers
    client = app_context.test_client()
    ana = ensure_user('ana')
    resp = client.get(f'/api/users/{ana.id}/folders', headers=jwt_headers('unlinked-subject', ['employee']))
    body = assert_error(resp, 403, 'AUTHZ')
    assert 'local profile' in body['error']['detail']


def test_edit_and_delete_refused_after_submit(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    h = headers_for(ana)
    f = create_folder(ana)
    create_purchase(f)
    submit_folder_and_assert(client, ana, h, f.id, 1)
    resp = client.put(f'/api/users/{ana.id}/folders/{f.id}', json={'folderName': 'x'}, headers=h)
    assert_error(resp, 400, 'STATE')
    assert_error(client.delete(f'/api/users/{ana.id}/folders/{f.id}', headers=h), 400, 'STATE')


def test_submit_errors(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    h = headers_for(ana)
    empty = create_folder(ana)
    assert_error(client.post(f'/api/users/{ana.id}/folders/{empty.id}/submit', headers=h), 400, 'VALIDATION')
    reviewed = create_folder(ana, status='VALIDATED')
    create_purchase(reviewed, status='VALIDATED')
    assert_error(client.post(f'/api/users/{ana.id}/folders/{reviewed.id}/submit', headers=h), 400, 'STATE')


def test_list_filtered_by_status(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    h = headers_for(ana)
    create_folder(ana)
    review = create_folder(ana, status='UNDER_REVIEW')
    rows = client.get(f'/api/users/{ana.id}/folders?validationStatus=UNDER_REVIEW', headers=h).get_json()
    assert [r['id'] for r in rows] == [review.id]
    assert_error(client.get(f'/api/users/{ana.id}/folders?validationStatus=BOGUS', headers=h), 400, 'VALIDATION')
