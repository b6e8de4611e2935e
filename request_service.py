import logging
from datetime import datetime
from typing import NamedTuple, Optional

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

import email_service
from database import db, ScholarshipRequest, ArchivedRequest, RequestStatus
from storage import DOCUMENT_PREFIXES

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = (
    'A request with this email address is already being processed. '
    'Please check its status instead of submitting a new one.'
)
GENERIC_ERROR = 'An unexpected error occurred'

UPLOAD_ERRORS = {
    'admission_letter': 'Failed to upload admission letter',
    'fee_invoice': 'Failed to upload fee invoice',
}

ALLOWED_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
    RequestStatus.APPROVED: {RequestStatus.PAID, RequestStatus.REJECTED, RequestStatus.PENDING},
    RequestStatus.REJECTED: {RequestStatus.PENDING},
    RequestStatus.PAID: set(),
}

ARCHIVE_REASONS = ('all',) + RequestStatus.ARCHIVABLE


class ServiceResult(NamedTuple):
    success: bool
    error: Optional[str] = None
    id: Optional[str] = None


def has_active_request(email):
    email = (email or '').strip().lower()
    return db.session.query(
        ScholarshipRequest.query.filter(func.lower(ScholarshipRequest.email) == email).exists()
    ).scalar()


def upload_document(storage, descriptor, prefix):
    try:
        return ServiceResult(True, id=storage.upload_staged(descriptor['token'], prefix))
    except (OSError, KeyError) as e:
        logger.error('✗ Upload error for %s: %s', prefix, e)
        return ServiceResult(False, str(e))


def remove_uploaded(storage, references):
    for reference in references.values():
        try:
            storage.delete(reference)
        except OSError as e:
            logger.warning('Could not remove uploaded document %s: %s', reference, e)


def submit_request(full_request, attachments, storage):
    """Store a new request: duplicate check, uploads, insert, then emails.

    Staged attachments survive a failed submission so the student can retry;
    documents already copied into the bucket for that attempt are removed.
    """
    references = {}
    try:
        if has_active_request(full_request.email):
            logger.info('Duplicate request rejected for %s', full_request.email)
            return ServiceResult(False, DUPLICATE_MESSAGE)

        for kind in ('admission_letter', 'fee_invoice'):
            descriptor = attachments.get(kind)
            if not descriptor:
                continue
            result = upload_document(storage, descriptor, DOCUMENT_PREFIXES[kind])
            if not result.success:
                remove_uploaded(storage, references)
                return ServiceResult(False, UPLOAD_ERRORS[kind])
            references[kind] = result.id

        new_request = ScholarshipRequest(
            full_name=full_request.full_name,
            email=full_request.email.lower(),
            phone=full_request.phone,
            school_name=full_request.school_name,
            program=full_request.program,
            study_semester=full_request.study_semester,
            amount=full_request.amount_value,
            currency=full_request.currency,
            school_account_name=full_request.school_account_name,
            school_account_number=full_request.school_account_number,
            school_sort_code=full_request.school_sort_code,
            school_bank_name=full_request.school_bank_name,
            admission_letter_url=references.get('admission_letter'),
            fee_invoice_url=references.get('fee_invoice'),
            additional_notes=full_request.additional_notes,
            status=RequestStatus.PENDING,
        )
        db.session.add(new_request)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Database insert error: %s', e, exc_info=True)
        remove_uploaded(storage, references)
        return ServiceResult(False, GENERIC_ERROR)

    logger.info('✓ Request %s submitted by %s', new_request.id, new_request.email)
    for descriptor in attachments.values():
        if descriptor:
            storage.discard(descriptor['token'])

    # Notifications must never fail the submission
    email_service.dispatch(email_service.CONFIRMATION, new_request.email, new_request.to_dict())
    admin_email = current_app.config.get('ADMIN_ALERT_EMAIL')
    if admin_email:
        email_service.dispatch(email_service.ADMIN_ALERT, admin_email, new_request.to_dict())

    return ServiceResult(True, id=new_request.id)


def get_all_requests(search=None, status=None):
    query = ScholarshipRequest.query

    if status and status != 'all':
        if status not in RequestStatus.ALL:
            return []
        query = query.filter(ScholarshipRequest.status == status)

    search = (search or '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            ScholarshipRequest.full_name.ilike(pattern),
            ScholarshipRequest.email.ilike(pattern),
            ScholarshipRequest.school_name.ilike(pattern),
            ScholarshipRequest.id.ilike(pattern),
        ))

    return query.order_by(ScholarshipRequest.created_at.desc()).all()


def get_request_by_id(request_id):
    return db.session.get(ScholarshipRequest, request_id)


def get_request_by_email_and_id(email, request_id):
    """Public status lookup; archived requests are still found by their old id."""
    email = (email or '').strip().lower()
    request_id = (request_id or '').strip()
    if not email or not request_id:
        return None

    student_request = ScholarshipRequest.query.filter(
        ScholarshipRequest.id == request_id,
        func.lower(ScholarshipRequest.email) == email,
    ).first()
    if student_request:
        return student_request

    return ArchivedRequest.query.filter(
        ArchivedRequest.original_request_id == request_id,
        func.lower(ArchivedRequest.email) == email,
    ).first()


def can_transition(old_status, new_status):
    return old_status == new_status or new_status in ALLOWED_TRANSITIONS.get(old_status, set())


def update_request_status(request_id, status, admin_notes=None):
    if status not in RequestStatus.ALL:
        return ServiceResult(False, 'Invalid status')

    student_request = get_request_by_id(request_id)
    if student_request is None:
        return ServiceResult(False, 'Request not found')

    old_status = student_request.status
    if not can_transition(old_status, status):
        return ServiceResult(False, f'Cannot change status from {old_status} to {status}')

    try:
        now = datetime.utcnow()
        student_request.status = status
        notes = '' if admin_notes is None else str(admin_notes)
        student_request.admin_notes = notes.strip() or None
        student_request.updated_at = now
        if old_status != status:
            student_request.date_processed = now
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error updating status: %s', e, exc_info=True)
        return ServiceResult(False, GENERIC_ERROR)

    logger.info('Request %s: %s -> %s', request_id, old_status, status)
    if old_status != status:
        email_service.dispatch(email_service.STATUS_UPDATE, student_request.email, student_request.to_dict())

    return ServiceResult(True, id=student_request.id)


def archive_request(request_id, actor_email, reason=None):
    student_request = get_request_by_id(request_id)
    if student_request is None:
        return ServiceResult(False, 'Request not found')

    if student_request.status not in RequestStatus.ARCHIVABLE:
        return ServiceResult(False, 'Only rejected or paid requests can be archived')

    reason = reason or student_request.status
    if reason != student_request.status:
        return ServiceResult(False, f'Archive reason must match the request status ({student_request.status})')

    try:
        archived = ArchivedRequest.from_request(student_request, reason, actor_email)
        db.session.add(archived)
        db.session.delete(student_request)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error archiving request %s: %s', request_id, e, exc_info=True)
        return ServiceResult(False, GENERIC_ERROR)

    logger.info('Request %s archived as %s by %s', request_id, reason, actor_email)
    return ServiceResult(True, id=archived.id)


def get_archived_requests(reason=None):
    query = ArchivedRequest.query
    if reason and reason != 'all':
        if reason not in RequestStatus.ARCHIVABLE:
            return []
        query = query.filter(ArchivedRequest.archived_reason == reason)
    return query.order_by(ArchivedRequest.archived_at.desc()).all()


def percentage(part, total):
    return round(part / total * 100) if total else None


def get_stats():
    counts = dict(
        db.session.query(ScholarshipRequest.status, func.count(ScholarshipRequest.id))
        .group_by(ScholarshipRequest.status)
        .all()
    )
    stats = {status: counts.get(status, 0) for status in RequestStatus.ALL}
    stats['total'] = sum(stats.values())
    stats['approved_rate'] = percentage(stats[RequestStatus.APPROVED], stats['total'])
    stats['rejected_rate'] = percentage(stats[RequestStatus.REJECTED], stats['total'])
    return stats


def get_archive_stats():
    counts = dict(
        db.session.query(ArchivedRequest.archived_reason, func.count(ArchivedRequest.id))
        .group_by(ArchivedRequest.archived_reason)
        .all()
    )
    stats = {reason: counts.get(reason, 0) for reason in RequestStatus.ARCHIVABLE}
    stats['all'] = sum(stats.values())
    return stats
