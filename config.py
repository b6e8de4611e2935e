import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def normalize_database_url(url):
    # Render and Heroku hand out postgres:// URLs, SQLAlchemy wants postgresql://
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Relational store
    SQLALCHEMY_DATABASE_URI = normalize_database_url(os.environ.get('DATABASE_URL'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    # Private document bucket
    DOCUMENTS_FOLDER = os.environ.get('DOCUMENTS_FOLDER', os.path.join(basedir, 'instance', 'documents'))
    STAGING_FOLDER = os.environ.get('STAGING_FOLDER', os.path.join(basedir, 'instance', 'staging'))
    ALLOWED_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg'}
    MAX_DOCUMENT_SIZE = 5 * 1024 * 1024  # 5MB per document
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB per request body

    # Email relay (Resend compatible)
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY', '')
    EMAIL_API_URL = os.environ.get('EMAIL_API_URL', 'https://api.resend.com/emails')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'Hope Catalyst <onboarding@resend.dev>')
    ADMIN_ALERT_EMAIL = os.environ.get('ADMIN_ALERT_EMAIL', '')
    EMAIL_ASYNC = os.environ.get('EMAIL_ASYNC', 'true').lower() != 'false'
    PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', 'http://localhost:5000')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Session
    PERMANENT_SESSION_LIFETIME = timedelta(minutes=30)

    # Production settings
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() != 'false'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


REQUIRED_SETTINGS = {
    'SQLALCHEMY_DATABASE_URI': 'DATABASE_URL',
    'SECRET_KEY': 'SECRET_KEY',
}


def validate_config(config):
    """Fail fast when the store location or the session key is missing."""
    for key, env_name in REQUIRED_SETTINGS.items():
        if not config.get(key):
            raise RuntimeError(f'{env_name} is not defined. Check your .env file.')

    database_url = config['SQLALCHEMY_DATABASE_URI']
    if '://' not in database_url:
        raise RuntimeError(f'Invalid DATABASE_URL: "{database_url}". Must include a scheme such as sqlite:// or postgresql://')
