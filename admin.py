import io
import logging

from flask import (Blueprint, abort, current_app, flash, jsonify, redirect, render_template,
                   request, send_file, url_for)

import admin_auth
import request_service
from admin_auth import login_required
from database import RequestStatus
from pdf_export import render_request_summary

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

DOCUMENT_FIELDS = {
    'admission_letter': 'admission_letter_url',
    'fee_invoice': 'fee_invoice_url',
}


def get_request_or_404(request_id):
    student_request = request_service.get_request_by_id(request_id)
    if student_request is None:
        abort(404)
    return student_request


@admin_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        result = admin_auth.sign_in(request.form.get('email', ''), request.form.get('password', ''))
        if result.success:
            flash('Signed in successfully', 'success')
            next_url = request.args.get('next', '')
            if next_url.startswith('/admin/'):
                return redirect(next_url)
            return redirect(url_for('admin.dashboard'))
        flash(result.error, 'error')
        return render_template('admin_login.html'), 401

    if admin_auth.get_session() is not None:
        return redirect(url_for('admin.dashboard'))
    return render_template('admin_login.html')


@admin_bp.route('/logout')
def logout():
    admin_auth.sign_out()
    flash('Signed out', 'success')
    return redirect(url_for('admin.login'))


@admin_bp.route('/dashboard')
@login_required
def dashboard():
    search = request.args.get('q', '')
    status = request.args.get('status', 'all')
    try:
        requests = request_service.get_all_requests(search=search, status=status)
        stats = request_service.get_stats()
    except Exception as e:
        logger.error('Dashboard error: %s', e, exc_info=True)
        flash('Error loading the dashboard', 'error')
        requests, stats = [], None

    return render_template(
        'admin_dashboard.html',
        requests=requests,
        stats=stats,
        search=search,
        status=status,
        statuses=RequestStatus.ALL,
    )


@admin_bp.route('/requests/<request_id>')
@login_required
def request_detail(request_id):
    student_request = get_request_or_404(request_id)
    return render_template(
        'request_detail.html',
        request=student_request,
        transitions=sorted(request_service.ALLOWED_TRANSITIONS.get(student_request.status, ())),
        archivable=student_request.status in RequestStatus.ARCHIVABLE,
    )


@admin_bp.route('/requests/<request_id>/status', methods=['POST'])
@login_required
def update_status(request_id):
    data = request.get_json(silent=True)
    if data is None:
        data = request.form
    if not data:
        return jsonify({'success': False, 'error': 'JSON body required'}), 400

    if request_service.get_request_by_id(request_id) is None:
        return jsonify({'success': False, 'error': 'Request not found'}), 404

    result = request_service.update_request_status(request_id, data.get('status'), data.get('notes'))
    if not request.is_json:
        flash('Status updated' if result.success else result.error, 'success' if result.success else 'error')
        return redirect(url_for('admin.request_detail', request_id=request_id))

    if not result.success:
        return jsonify({'success': False, 'error': result.error}), 400
    return jsonify({'success': True, 'message': 'Status updated'})


@admin_bp.route('/requests/<request_id>/archive', methods=['POST'])
@login_required
def archive(request_id):
    data = request.get_json(silent=True) or request.form
    admin = admin_auth.get_session()

    if request_service.get_request_by_id(request_id) is None:
        if request.is_json:
            return jsonify({'success': False, 'error': 'Request not found'}), 404
        abort(404)

    result = request_service.archive_request(request_id, admin.email, data.get('reason') or None)

    if request.is_json:
        if not result.success:
            return jsonify({'success': False, 'error': result.error}), 400
        return jsonify({'success': True, 'id': result.id})

    if not result.success:
        flash(result.error, 'error')
        return redirect(url_for('admin.request_detail', request_id=request_id))
    flash('Request archived', 'success')
    return redirect(url_for('admin.dashboard'))


@admin_bp.route('/requests/<request_id>/documents/<kind>')
@login_required
def download_document(request_id, kind):
    if kind not in DOCUMENT_FIELDS:
        abort(404)
    student_request = get_request_or_404(request_id)
    storage = current_app.extensions['document_storage']
    path = storage.path_for(getattr(student_request, DOCUMENT_FIELDS[kind]))
    if path is None:
        abort(404)
    return send_file(path, as_attachment=True)


@admin_bp.route('/requests/<request_id>/summary.pdf')
@login_required
def summary_pdf(request_id):
    student_request = get_request_or_404(request_id)
    pdf = render_request_summary(student_request)
    return send_file(
        io.BytesIO(pdf),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f'request-{student_request.id}.pdf',
    )


@admin_bp.route('/archived')
@login_required
def archived():
    reason = request.args.get('reason', 'all')
    if reason not in request_service.ARCHIVE_REASONS:
        reason = 'all'
    return render_template(
        'archived_requests.html',
        archives=request_service.get_archived_requests(reason),
        counts=request_service.get_archive_stats(),
        reason=reason,
    )


@admin_bp.route('/api/requests')
@login_required
def api_requests():
    requests = request_service.get_all_requests(
        search=request.args.get('q'),
        status=request.args.get('status'),
    )
    return jsonify([item.to_dict() for item in requests])


@admin_bp.route('/api/stats')
@login_required
def api_stats():
    return jsonify(request_service.get_stats())
