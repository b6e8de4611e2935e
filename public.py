import logging

from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for

import request_service
from request_form import DOCUMENT_KINDS, STEP_TITLES, TOTAL_STEPS, RequestWizard
from storage import DocumentRejected

logger = logging.getLogger(__name__)

public_bp = Blueprint('public', __name__)

WIZARD_KEY = 'request_wizard'


def load_wizard():
    return RequestWizard(session.get(WIZARD_KEY))


def save_wizard(wizard):
    session[WIZARD_KEY] = wizard.state
    session.modified = True


def storage():
    return current_app.extensions['document_storage']


def render_wizard(wizard, errors=None, status=200):
    return render_template(
        'form.html',
        wizard=wizard,
        step_titles=STEP_TITLES,
        total_steps=TOTAL_STEPS,
        errors=errors or {},
        review=wizard.review() if wizard.is_last_step else None,
    ), status


def handle_documents(wizard):
    """Stage uploaded documents and apply clear requests; returns field errors."""
    errors = {}
    for kind in DOCUMENT_KINDS:
        if request.form.get(f'clear_{kind}'):
            previous = wizard.detach(kind)
            if previous:
                storage().discard(previous['token'])

        file = request.files.get(kind)
        if not file or not file.filename:
            continue
        try:
            descriptor = storage().stage(file, kind)
        except DocumentRejected as e:
            errors[kind] = str(e)
            continue
        previous = wizard.attach(kind, descriptor)
        if previous:
            storage().discard(previous['token'])
    return errors


def submit(wizard):
    wizard.advance(request.form)
    full_request, errors = wizard.validate_all()
    if errors:
        wizard.state['current_step'] = wizard.first_invalid_step(errors)
        save_wizard(wizard)
        flash('Please check all fields and try again.', 'error')
        return render_wizard(wizard, errors, 400)

    result = request_service.submit_request(full_request, wizard.attachments, storage())
    if not result.success:
        save_wizard(wizard)
        flash(f'Submission failed: {result.error or "Unknown error"}', 'error')
        return render_wizard(wizard, status=400)

    wizard.reset()
    save_wizard(wizard)
    return redirect(url_for('public.submitted', id=result.id))


@public_bp.route('/')
def index():
    return render_template('index.html')


@public_bp.route('/request', methods=['GET', 'POST'])
def request_form():
    wizard = load_wizard()
    if request.method == 'GET':
        return render_wizard(wizard)

    action = request.form.get('action', 'next')

    if action == 'back':
        wizard.back()
        save_wizard(wizard)
        return redirect(url_for('public.request_form'))

    if action == 'reset':
        for descriptor in wizard.attachments.values():
            storage().discard(descriptor['token'])
        wizard.reset()
        save_wizard(wizard)
        return redirect(url_for('public.request_form'))

    if wizard.current_step == 4:
        errors = handle_documents(wizard)
        if errors:
            save_wizard(wizard)
            return render_wizard(wizard, errors, 400)
        # Remove buttons swap files on this step without moving on
        if any(request.form.get(f'clear_{kind}') for kind in DOCUMENT_KINDS):
            save_wizard(wizard)
            return redirect(url_for('public.request_form'))

    if action == 'submit' and wizard.is_last_step:
        return submit(wizard)

    errors = wizard.advance(request.form)
    save_wizard(wizard)
    if errors:
        return render_wizard(wizard, errors, 400)
    return redirect(url_for('public.request_form'))


@public_bp.route('/submitted')
def submitted():
    return render_template('submitted.html', request_id=request.args.get('id'))


@public_bp.route('/check-status', methods=['GET', 'POST'])
def check_status():
    found = None
    error = None
    if request.method == 'POST':
        email = request.form.get('email', '')
        request_id = request.form.get('request_id', '')
        try:
            found = request_service.get_request_by_email_and_id(email, request_id)
        except Exception as e:
            logger.error('Status lookup failed: %s', e, exc_info=True)
            error = 'An error occurred. Please try again.'
        else:
            if found is None:
                error = ('No request found with this email and ID combination. '
                         'Please check your details and try again.')
    return render_template('check_status.html', found=found, error=error)
