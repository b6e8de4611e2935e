"""
Test configuration and fixtures
"""
import io
from decimal import Decimal

import pytest

import email_service
from admin_auth import create_admin
from app import create_app
from config import Config
from database import db, ScholarshipRequest, RequestStatus

ADMIN_EMAIL = 'admin@hopecatalyst.org'
ADMIN_PASSWORD = 'correct-horse-battery'


def valid_form_data(**overrides):
    data = {
        'full_name': 'Ada Okafor',
        'email': 'ada.okafor@gmail.com',
        'phone': '08031234567',
        'school_name': 'University of Lagos',
        'program': 'Computer Science',
        'study_semester': '2025/2026 First Semester',
        'amount': '150000',
        'currency': 'NGN',
        'school_account_name': 'UNILAG Fees Account',
        'school_account_number': '0123456789',
        'school_sort_code': '',
        'school_bank_name': 'First Bank',
        'additional_notes': 'Final year tuition',
    }
    data.update(overrides)
    return data


def make_request(**overrides):
    """Insert an active request directly; call inside an app context."""
    fields = {
        'full_name': 'Tunde Bello',
        'email': 'tunde.bello@gmail.com',
        'phone': '08098765432',
        'school_name': 'Covenant University',
        'program': 'Mechanical Engineering',
        'study_semester': 'Year 3',
        'amount': Decimal('250000.00'),
        'currency': 'NGN',
        'school_account_name': 'Covenant University',
        'school_account_number': '9876543210',
        'school_bank_name': 'Access Bank',
        'status': RequestStatus.PENDING,
    }
    fields.update(overrides)
    student_request = ScholarshipRequest(**fields)
    db.session.add(student_request)
    db.session.commit()
    return student_request.id


def pdf_upload(size=1024, name='letter.pdf'):
    return io.BytesIO(b'%PDF-1.4\n' + b'0' * size), name


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {'id': 'msg_123'}
        self.text = str(self._payload)

    def json(self):
        return self._payload


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = 'test-secret-key-for-testing-only'
        SQLALCHEMY_DATABASE_URI = 'sqlite://'
        SQLALCHEMY_ENGINE_OPTIONS = {}
        DOCUMENTS_FOLDER = str(tmp_path / 'documents')
        STAGING_FOLDER = str(tmp_path / 'staging')
        RESEND_API_KEY = 'test-api-key'
        EMAIL_API_URL = 'https://email.test/emails'
        ADMIN_ALERT_EMAIL = ADMIN_EMAIL
        EMAIL_ASYNC = False
        SESSION_COOKIE_SECURE = False

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    return app.extensions['document_storage']


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture calls to the email API instead of hitting the network."""
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
        return FakeResponse()

    monkeypatch.setattr(email_service.requests, 'post', fake_post)
    return calls


@pytest.fixture
def admin_user(app):
    with app.app_context():
        create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)
    return ADMIN_EMAIL, ADMIN_PASSWORD


@pytest.fixture
def admin_client(client, admin_user):
    response = client.post('/admin/login', data={'email': ADMIN_EMAIL, 'password': ADMIN_PASSWORD})
    assert response.status_code == 302
    return client
