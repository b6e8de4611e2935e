import logging
import threading

import requests
from flask import current_app, render_template

from utils import format_amount

logger = logging.getLogger(__name__)

CONFIRMATION = 'confirmation'
STATUS_UPDATE = 'status_update'
ADMIN_ALERT = 'admin_alert'

MESSAGE_TYPES = (CONFIRMATION, STATUS_UPDATE, ADMIN_ALERT)

STATUS_EMOJI = {
    'approved': '✅',
    'rejected': '❌',
    'paid': '💵',
}


class EmailResult:
    def __init__(self, success, error=None, message_id=None):
        self.success = success
        self.error = error
        self.message_id = message_id

    def __bool__(self):
        return self.success

    def __repr__(self):
        return f'<EmailResult success={self.success} error={self.error!r}>'


def build_subject(message_type, request_data):
    if message_type == CONFIRMATION:
        return '✅ Scholarship Request Received - Hope Catalyst'
    if message_type == STATUS_UPDATE:
        emoji = STATUS_EMOJI.get(request_data.get('status'), '📋')
        return f'{emoji} Request Status Update - Hope Catalyst'
    return '🔔 New Scholarship Request - Action Required'


def render_message(message_type, request_data):
    """Render subject and HTML body; must run inside an app context."""
    subject = build_subject(message_type, request_data)
    html = render_template(
        f'emails/{message_type}.html',
        request=request_data,
        amount=format_amount(request_data.get('amount'), request_data.get('currency')),
        base_url=current_app.config['PUBLIC_BASE_URL'].rstrip('/'),
    )
    return subject, html


def relay(config, to_email, subject, html):
    """POST one message to the transactional email API."""
    api_key = config.get('RESEND_API_KEY')
    if not api_key:
        logger.warning('✗ Email API key not configured, %s not sent', subject)
        return EmailResult(False, 'Email API key not configured')

    headers = {
        'Authorization': f'Bearer {api_key}',
        'Content-Type': 'application/json',
    }
    data = {
        'from': config['MAIL_DEFAULT_SENDER'],
        'to': [to_email],
        'subject': subject,
        'html': html,
    }

    try:
        response = requests.post(config['EMAIL_API_URL'], headers=headers, json=data, timeout=30)
    except requests.exceptions.Timeout:
        logger.error('✗ Email API timeout for %s', to_email)
        return EmailResult(False, 'Email API timeout')
    except requests.exceptions.RequestException as e:
        logger.error('✗ Email API error for %s: %s', to_email, e)
        return EmailResult(False, str(e))

    if response.status_code in (200, 201, 202):
        try:
            message_id = response.json().get('id')
        except ValueError:
            message_id = None
        logger.info('✓ Email sent to %s (%s)', to_email, message_id)
        return EmailResult(True, message_id=message_id)

    logger.error('✗ Email API error (%s): %s', response.status_code, response.text[:200])
    return EmailResult(False, f'Email API returned {response.status_code}')


def send_email(message_type, to_email, request_data):
    if message_type not in MESSAGE_TYPES:
        return EmailResult(False, f'Unknown email type: {message_type}')
    if not to_email:
        return EmailResult(False, 'Recipient address is required')

    logger.info('Sending %s email to %s', message_type, to_email)
    subject, html = render_message(message_type, request_data)
    return relay(current_app.config, to_email, subject, html)


def send_confirmation_email(student_request):
    return send_email(CONFIRMATION, student_request.email, student_request.to_dict())


def send_status_update_email(student_request):
    return send_email(STATUS_UPDATE, student_request.email, student_request.to_dict())


def send_admin_alert(student_request, admin_email):
    return send_email(ADMIN_ALERT, admin_email, student_request.to_dict())


def _relay_quietly(config, to_email, subject, html):
    try:
        relay(config, to_email, subject, html)
    except Exception as e:
        logger.error('Error in background email relay: %s', e, exc_info=True)


def dispatch(message_type, to_email, request_data):
    """Fire-and-forget notification; failures are logged, never raised."""
    try:
        if message_type not in MESSAGE_TYPES or not to_email:
            logger.warning('✗ Email %s to %r skipped', message_type, to_email)
            return

        subject, html = render_message(message_type, request_data)
        config = dict(current_app.config)

        if not config.get('EMAIL_ASYNC', True):
            _relay_quietly(config, to_email, subject, html)
            return

        thread = threading.Thread(
            target=_relay_quietly,
            args=(config, to_email, subject, html),
        )
        thread.daemon = True
        thread.start()
        logger.info('✓ %s email scheduled for %s', message_type, to_email)
    except Exception as e:
        logger.error('✗ Could not schedule %s email: %s', message_type, e, exc_info=True)
