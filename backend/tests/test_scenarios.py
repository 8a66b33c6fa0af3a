"""End-to-end reimbursement scenarios driven through the HTTP API."""
from datetime import date
import pytest
from sqlalchemy import text
from reimburse import get_db
from reimburse.errors import StateError
from reimburse.models.user import User
from reimburse.services import purchases as purchase_engine
from tests.test_utils_seed import ensure_user, create_folder, create_purchase
from tests.test_utils_fakes import openkm
from tests.test_lifecycle_helpers import (
    headers_for, assert_error, create_folder_and_assert, create_purchase_with_receipt,
    submit_folder_and_assert, review, folder_status,
)


def onboard(client, admin_headers, first_name='Ana', nickname='ana'):
    resp = client.post('/api/users', json={
        'firstName': first_name, 'lastName': 'Lopez', 'nickname': nickname, 'email': f'{nickname}@example.com',
    }, headers=admin_headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def submitted_folder(client):
    """Onboard an employee, create a folder with two receipts and submit it."""
    admin = ensure_user('root', roles=['administrator'])
    created = onboard(client, headers_for(admin, 'administrator'))
    assert created['temporaryPassword'] == f'Ana@Datum{date.today().year}'
    employee = get_db().get(User, created['user']['id'])
    h = headers_for(employee)
    folder = create_folder_and_assert(client, employee, h, start='2025-10-01', end='2025-10-31')
    p1 = create_purchase_with_receipt(client, h, folder['id'], '12.50').get_json()['purchaseId']
    p2 = create_purchase_with_receipt(client, h, folder['id'], '8.00').get_json()['purchaseId']
    submit_folder_and_assert(client, employee, h, folder['id'], 2)
    for pid in (p1, p2):
        assert client.get(f'/api/purchases/{pid}', headers=h).get_json()['validationStatus'] == 'UNDER_REVIEW'
    return employee, h, folder['id'], p1, p2


def test_happy_path_approval(app_context):
    client = app_context.test_client()
    employee, h, folder_id, p1, p2 = submitted_folder(client)
    fin = ensure_user('fin', roles=['finance'])
    fh = headers_for(fin, 'finance')

    assert review(client, fh, p1, 'approve').status_code == 200
    assert folder_status(client, employee, h, folder_id) == 'UNDER_REVIEW'
    resp = review(client, fh, p2, 'approve')
    assert resp.status_code == 200
    assert resp.get_json()['validatedBy'] == fin.id

    folder = client.get(f'/api/users/{employee.id}/folders/{folder_id}', headers=h).get_json()
    assert folder['validationStatus'] == 'VALIDATED'
    assert folder['validatedBy'] == fin.id
    assert folder['canEdit'] is False


def test_partial_rejection_then_manual_folder_reject(app_context):
    client = app_context.test_client()
    employee, h, folder_id, p1, p2 = submitted_folder(client)
    fin = ensure_user('fin', roles=['finance'])
    fh = headers_for(fin, 'finance')
    admin = get_db().query(User).filter_by(nickname='root').one()

    resp = review(client, fh, p1, 'reject', notes='illegible')
    assert resp.status_code == 200
    assert resp.get_json()['validationNotes'] == 'illegible'
    assert folder_status(client, employee, h, folder_id) == 'UNDER_REVIEW'
    assert review(client, fh, p2, 'approve').status_code == 200
    assert folder_status(client, employee, h, folder_id) == 'UNDER_REVIEW'

    resp = client.post(f'/api/folders/{folder_id}/reject', json={'notes': 'mixed outcome'},
                       headers=headers_for(admin, 'administrator'))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['validationStatus'] == 'REJECTED'


def test_edit_while_rejected_is_refused_and_resubmission_works(app_context):
    client = app_context.test_client()
    employee, h, folder_id, p1, p2 = submitted_folder(client)
    fh = headers_for(ensure_user('fin', roles=['finance']), 'finance')
    review(client, fh, p1, 'reject', notes='illegible')
    review(client, fh, p2, 'reject', notes='duplicate')
    assert folder_status(client, employee, h, folder_id) == 'REJECTED'

    # Rejected purchases are read-only
    resp = client.put(f'/api/purchases/{p1}', json={'totalAmount': '15.00'}, headers=h)
    assert_error(resp, 400, 'STATE')
    assert client.get(f'/api/purchases/{p1}', headers=h).get_json()['totalAmount'] == '12.50'

    # Replace the rejected receipt with a corrected one and resubmit the folder
    assert client.delete(f'/api/purchases/{p1}/document', headers=h).status_code == 200
    p3 = create_purchase_with_receipt(client, h, folder_id, '15.00').get_json()['purchaseId']
    body = submit_folder_and_assert(client, employee, h, folder_id, 1)
    assert body['folder']['validatedBy'] is None
    assert client.get(f'/api/purchases/{p3}', headers=h).get_json()['validationStatus'] == 'UNDER_REVIEW'


def test_dms_failure_after_insert_then_retry(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    f = create_folder(ana)
    h = headers_for(ana)
    openkm.down = True
    resp = create_purchase_with_receipt(client, h, f.id, '9.99')
    assert_error(resp, 500, 'UPSTREAM')
    rows = client.get(f'/api/folders/{f.id}/purchases', headers=h).get_json()
    assert len(rows) == 1
    assert rows[0]['imgUrl'] is None
    assert rows[0]['hasDocument'] is False

    openkm.down = False
    from tests.test_lifecycle_helpers import receipt
    resp = client.post(f"/api/purchases/{rows[0]['id']}/document", data={'file': receipt()}, headers=h,
                       content_type='multipart/form-data')
    assert resp.status_code == 201, resp.get_json()
    again = client.get(f"/api/purchases/{rows[0]['id']}", headers=h).get_json()
    assert again['imgUrl'] == resp.get_json()['documentPath']


def test_repeated_approve_is_refused_as_state(app_context):
    client = app_context.test_client()
    fin = ensure_user('fin', roles=['finance'])
    fh = headers_for(fin, 'finance')
    f = create_folder(ensure_user('ana'), status='UNDER_REVIEW')
    p = create_purchase(f, status='UNDER_REVIEW')
    create_purchase(f, status='UNDER_REVIEW')
    results = [review(client, fh, p.id, 'approve') for _ in range(2)]
    assert sorted(r.status_code for r in results) == [200, 400]
    loser = [r for r in results if r.status_code == 400][0]
    assert loser.get_json()['error']['kind'] == 'STATE'


def test_stale_transition_loses_compare_and_set(app_context):
    f = create_folder(ensure_user('ana'), status='UNDER_REVIEW')
    p = create_purchase(f, status='UNDER_REVIEW')
    session = get_db()
    # Another transaction approved it behind this session's back
    session.execute(text("UPDATE purchases SET validation_status='VALIDATED' WHERE id=:id"), {'id': p.id})
    assert p.status == 'UNDER_REVIEW'
    with pytest.raises(StateError):
        purchase_engine._transition(session, p, 'REJECTED')
    session.rollback()


def test_download_of_deleted_blob_is_upstream(app_context):
    client = app_context.test_client()
    ana = ensure_user('ana')
    f = create_folder(ana)
    h = headers_for(ana)
    body = create_purchase_with_receipt(client, h, f.id, '3.00').get_json()
    openkm.documents.pop(body['documentPath'])
    resp = client.get(f"/api/purchases/{body['purchaseId']}/document", headers=h)
    assert_error(resp, 500, 'UPSTREAM')
