import uuid
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class RequestStatus:
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PAID = 'paid'

    ALL = (PENDING, APPROVED, REJECTED, PAID)
    # Only terminal requests may leave the active table
    ARCHIVABLE = (REJECTED, PAID)


CURRENCIES = ('NGN', 'USD')


def generate_id():
    return str(uuid.uuid4())


class RequestFieldsMixin:
    """Columns shared by active and archived requests."""

    # Personal information
    full_name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(120), nullable=False, index=True)
    phone = db.Column(db.String(30), nullable=False)

    # School information
    school_name = db.Column(db.String(200), nullable=False)
    program = db.Column(db.String(200), nullable=False)
    study_semester = db.Column(db.String(50), nullable=False)

    # Payment details
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='NGN')
    school_account_name = db.Column(db.String(200), nullable=False)
    school_account_number = db.Column(db.String(50), nullable=False)
    school_sort_code = db.Column(db.String(50))
    school_bank_name = db.Column(db.String(120), nullable=False)

    # Storage references for uploaded documents
    admission_letter_url = db.Column(db.String(300))
    fee_invoice_url = db.Column(db.String(300))

    additional_notes = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING)
    admin_notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    date_processed = db.Column(db.DateTime)

    COPY_FIELDS = (
        'full_name', 'email', 'phone',
        'school_name', 'program', 'study_semester',
        'amount', 'currency', 'school_account_name', 'school_account_number',
        'school_sort_code', 'school_bank_name',
        'admission_letter_url', 'fee_invoice_url',
        'additional_notes', 'status', 'admin_notes',
        'created_at', 'updated_at', 'date_processed',
    )

    def to_dict(self):
        data = {'id': self.id}
        for field in self.COPY_FIELDS:
            value = getattr(self, field)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif field == 'amount' and value is not None:
                value = str(value)
            data[field] = value
        return data


class ScholarshipRequest(RequestFieldsMixin, db.Model):
    __tablename__ = 'requests'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)

    def __repr__(self):
        return f'<ScholarshipRequest {self.id} {self.full_name} {self.status}>'


class ArchivedRequest(RequestFieldsMixin, db.Model):
    __tablename__ = 'archived_requests'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    original_request_id = db.Column(db.String(36), nullable=False, index=True)
    archived_reason = db.Column(db.String(20), nullable=False)
    archived_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    archived_by_email = db.Column(db.String(120), nullable=False)

    @classmethod
    def from_request(cls, student_request, reason, actor_email):
        archived = cls(
            original_request_id=student_request.id,
            archived_reason=reason,
            archived_by_email=actor_email,
        )
        for field in cls.COPY_FIELDS:
            setattr(archived, field, getattr(student_request, field))
        return archived

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'original_request_id': self.original_request_id,
            'archived_reason': self.archived_reason,
            'archived_at': self.archived_at.isoformat() if self.archived_at else None,
            'archived_by_email': self.archived_by_email,
        })
        return data

    def __repr__(self):
        return f'<ArchivedRequest {self.original_request_id} {self.archived_reason}>'


class AdminUser(db.Model):
    __tablename__ = 'admin_users'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {'id': self.id, 'email': self.email}

    def __repr__(self):
        return f'<AdminUser {self.email}>'
