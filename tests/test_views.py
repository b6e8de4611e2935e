import io
import os

from database import db, ArchivedRequest, ScholarshipRequest, RequestStatus
from tests.conftest import make_request, pdf_upload, valid_form_data


def post_step(client, **extra):
    data = valid_form_data()
    data.update(extra)
    return client.post('/request', data=data, content_type='multipart/form-data')


def complete_wizard(client, **documents):
    for _ in range(3):
        assert post_step(client, action='next').status_code == 302
    assert post_step(client, action='next', **documents).status_code == 302
    return post_step(client, action='submit')


def test_invalid_step_re_renders_with_errors(client):
    response = client.post('/request', data={'action': 'next', 'full_name': 'Al', 'email': 'x', 'phone': '1'})

    assert response.status_code == 400
    assert b'Full name must be at least 3 characters' in response.data
    assert b'Step 1 of 5' in client.get('/request').data


def test_full_submission_flow(client, app, sent_emails):
    response = complete_wizard(
        client,
        admission_letter=pdf_upload(name='admission.pdf'),
        fee_invoice=pdf_upload(name='invoice.jpg'),
    )

    assert response.status_code == 302
    assert '/submitted?id=' in response.headers['Location']

    with app.app_context():
        saved = ScholarshipRequest.query.one()
        assert saved.full_name == 'Ada Okafor'
        assert saved.admission_letter_url.startswith('admission-letter-')
        assert saved.fee_invoice_url.startswith('fee-invoice-')
        assert saved.fee_invoice_url.endswith('.jpg')
        assert saved.id in response.headers['Location']

    # Wizard starts over after a successful submission
    assert b'Step 1 of 5' in client.get('/request').data
    assert len(sent_emails) == 2


def test_duplicate_submission_shows_message(client, app, sent_emails):
    with app.app_context():
        make_request(email='ada.okafor@gmail.com')

    response = complete_wizard(client)

    assert response.status_code == 400
    assert b'already being processed' in response.data
    with app.app_context():
        assert ScholarshipRequest.query.count() == 1


def test_oversized_document_rejected_before_upload(client, app, storage):
    for _ in range(3):
        post_step(client, action='next')

    too_big = io.BytesIO(b'0' * (app.config['MAX_DOCUMENT_SIZE'] + 1)), 'invoice.pdf'
    response = post_step(client, action='next', fee_invoice=too_big)

    assert response.status_code == 400
    assert b'File is too large (max 5MB)' in response.data
    assert b'Step 4 of 5' in response.data
    assert os.listdir(storage.staging_folder) == []
    assert os.listdir(storage.documents_folder) == []


def test_check_status(client, app):
    with app.app_context():
        request_id = make_request(status=RequestStatus.APPROVED, admin_notes='Paying next week')

    response = client.post('/check-status', data={'email': 'tunde.bello@gmail.com', 'request_id': request_id})
    assert b'Approved' in response.data
    assert b'Paying next week' in response.data

    response = client.post('/check-status', data={'email': 'wrong@gmail.com', 'request_id': request_id})
    assert b'No request found with this email and ID combination' in response.data


def test_status_update_persists_across_reload(admin_client, app, sent_emails):
    with app.app_context():
        request_id = make_request(full_name='Ngozi Nwosu')

    response = admin_client.post(f'/admin/requests/{request_id}/status',
                                 json={'status': 'approved', 'notes': 'All documents verified'})
    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'message': 'Status updated'}

    page = admin_client.get(f'/admin/requests/{request_id}')
    assert b'badge-approved' in page.data
    assert b'All documents verified' in page.data

    with app.app_context():
        assert db.session.get(ScholarshipRequest, request_id).status == RequestStatus.APPROVED
    assert sent_emails[-1]['json']['to'] == ['tunde.bello@gmail.com']


def test_status_update_errors(admin_client, app):
    with app.app_context():
        request_id = make_request()

    response = admin_client.post(f'/admin/requests/{request_id}/status', json={'status': 'paid'})
    assert response.status_code == 400
    assert 'Cannot change status' in response.get_json()['error']

    response = admin_client.post('/admin/requests/missing/status', json={'status': 'approved'})
    assert response.status_code == 404


def test_archive_moves_request_off_dashboard(admin_client, app, sent_emails):
    with app.app_context():
        request_id = make_request(full_name='Emeka Obi')

    admin_client.post(f'/admin/requests/{request_id}/status', json={'status': 'rejected'})
    response = admin_client.post(f'/admin/requests/{request_id}/archive', json={})
    assert response.status_code == 200
    assert response.get_json()['success'] is True

    assert b'Emeka Obi' not in admin_client.get('/admin/dashboard').data
    archive_page = admin_client.get('/admin/archived?reason=rejected')
    assert b'Emeka Obi' in archive_page.data
    assert b'reason-rejected' in archive_page.data
    assert b'Emeka Obi' not in admin_client.get('/admin/archived?reason=paid').data

    with app.app_context():
        assert ArchivedRequest.query.one().archived_by_email == 'admin@hopecatalyst.org'


def test_archive_pending_request_is_refused(admin_client, app):
    with app.app_context():
        request_id = make_request()

    response = admin_client.post(f'/admin/requests/{request_id}/archive')

    assert response.status_code == 302
    with app.app_context():
        assert ScholarshipRequest.query.count() == 1


def test_dashboard_filters_and_api(admin_client, app):
    with app.app_context():
        make_request(full_name='Chioma Eze', email='chioma@gmail.com')
        make_request(full_name='Musa Ali', email='musa@gmail.com', status=RequestStatus.APPROVED)

    page = admin_client.get('/admin/dashboard?status=approved').data
    assert b'Musa Ali' in page and b'Chioma Eze' not in page

    page = admin_client.get('/admin/dashboard?q=chioma').data
    assert b'Chioma Eze' in page and b'Musa Ali' not in page

    stats = admin_client.get('/admin/api/stats').get_json()
    assert stats['total'] == 2 and stats['approved'] == 1

    listed = admin_client.get('/admin/api/requests?status=pending').get_json()
    assert [item['full_name'] for item in listed] == ['Chioma Eze']


def test_document_download_and_summary_pdf(admin_client, app, sent_emails):
    complete_wizard(admin_client, admission_letter=pdf_upload(size=10, name='admission.pdf'))
    with app.app_context():
        saved = ScholarshipRequest.query.one()
        request_id = saved.id

    response = admin_client.get(f'/admin/requests/{request_id}/documents/admission_letter')
    assert response.status_code == 200
    assert response.data.startswith(b'%PDF-1.4')

    assert admin_client.get(f'/admin/requests/{request_id}/documents/fee_invoice').status_code == 404
    assert admin_client.get(f'/admin/requests/{request_id}/documents/passport').status_code == 404

    response = admin_client.get(f'/admin/requests/{request_id}/summary.pdf')
    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data.startswith(b'%PDF')


def test_unknown_page_is_404(client):
    assert client.get('/no-such-page').status_code == 404


def test_remove_button_stays_on_documents_step(client, storage):
    for _ in range(3):
        post_step(client, action='next')
    post_step(client, action='next', admission_letter=pdf_upload(name='admission.pdf'))
    client.post('/request', data={'action': 'back'})
    assert b'Step 4 of 5' in client.get('/request').data
    assert len(os.listdir(storage.staging_folder)) == 1

    response = client.post('/request', data={'clear_admission_letter': '1'})

    assert response.status_code == 302
    page = client.get('/request').data
    assert b'Step 4 of 5' in page
    assert b'admission.pdf' not in page
    assert os.listdir(storage.staging_folder) == []


def test_non_text_notes_are_stored_as_text(admin_client, app, sent_emails):
    with app.app_context():
        request_id = make_request()

    response = admin_client.post(f'/admin/requests/{request_id}/status',
                                 json={'status': 'approved', 'notes': 5})

    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(ScholarshipRequest, request_id).admin_notes == '5'
