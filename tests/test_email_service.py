import requests

import email_service
from database import db, ScholarshipRequest
from tests.conftest import FakeResponse, make_request


def request_data(app, **overrides):
    with app.app_context():
        request_id = make_request(**overrides)
        return db.session.get(ScholarshipRequest, request_id).to_dict()


def test_confirmation_payload(app, sent_emails):
    data = request_data(app)
    with app.app_context():
        result = email_service.send_email('confirmation', data['email'], data)

    assert result.success
    assert result.message_id == 'msg_123'
    call = sent_emails[0]
    assert call['url'] == 'https://email.test/emails'
    assert call['headers']['Authorization'] == 'Bearer test-api-key'
    assert call['timeout'] == 30
    assert call['json']['to'] == ['tunde.bello@gmail.com']
    assert call['json']['from'] == app.config['MAIL_DEFAULT_SENDER']
    assert data['id'] in call['json']['html']
    assert 'NGN 250,000' in call['json']['html']


def test_status_update_mentions_status_and_notes(app, sent_emails):
    data = request_data(app, status='approved', admin_notes='Payment scheduled for Friday')
    with app.app_context():
        assert email_service.send_email('status_update', data['email'], data)

    html = sent_emails[0]['json']['html']
    assert 'APPROVED' in html
    assert 'Payment scheduled for Friday' in html
    assert sent_emails[0]['json']['subject'].startswith('✅')


def test_unknown_type_and_missing_recipient(app, sent_emails):
    data = request_data(app)
    with app.app_context():
        assert email_service.send_email('newsletter', data['email'], data).error == 'Unknown email type: newsletter'
        assert not email_service.send_email('confirmation', '', data)
    assert sent_emails == []


def test_missing_api_key_fails_without_request(app, sent_emails):
    data = request_data(app)
    app.config['RESEND_API_KEY'] = ''
    with app.app_context():
        result = email_service.send_email('admin_alert', 'admin@hopecatalyst.org', data)

    assert result.error == 'Email API key not configured'
    assert sent_emails == []


def test_api_error_and_timeout_are_failures(app, monkeypatch):
    data = request_data(app)

    monkeypatch.setattr(email_service.requests, 'post',
                        lambda *args, **kwargs: FakeResponse(422, {'message': 'invalid from'}))
    with app.app_context():
        assert email_service.send_email('confirmation', data['email'], data).error == 'Email API returned 422'

    def timeout(*args, **kwargs):
        raise requests.exceptions.Timeout()

    monkeypatch.setattr(email_service.requests, 'post', timeout)
    with app.app_context():
        assert email_service.send_email('confirmation', data['email'], data).error == 'Email API timeout'


def test_dispatch_never_raises(app, monkeypatch):
    data = request_data(app)

    def explode(*args, **kwargs):
        raise RuntimeError('boom')

    monkeypatch.setattr(email_service.requests, 'post', explode)
    with app.app_context():
        assert email_service.dispatch('confirmation', data['email'], data) is None
        assert email_service.dispatch('unknown', data['email'], data) is None


def test_dispatch_in_background_thread(app, sent_emails, monkeypatch):
    data = request_data(app)
    app.config['EMAIL_ASYNC'] = True
    started = []

    class RecordingThread(email_service.threading.Thread):
        def start(self):
            started.append(self)
            super().start()

    monkeypatch.setattr(email_service.threading, 'Thread', RecordingThread)
    with app.app_context():
        email_service.dispatch('confirmation', data['email'], data)

    started[0].join(timeout=5)
    assert started[0].daemon
    assert sent_emails[0]['json']['to'] == ['tunde.bello@gmail.com']
