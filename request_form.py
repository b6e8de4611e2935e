"""Multi-step request wizard.

The wizard keeps its state in a plain dict (stored in the Flask session by
the public views) so that it can be rebuilt on every HTTP request:

    {'current_step': 1, 'data': {...}, 'attachments': {kind: descriptor}}
"""
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.networks import validate_email

from database import CURRENCIES

TOTAL_STEPS = 5

STEP_TITLES = {
    1: 'Personal',
    2: 'School',
    3: 'Payment',
    4: 'Documents',
    5: 'Review',
}

DOCUMENT_KINDS = ('admission_letter', 'fee_invoice')


def require_length(value, length, message):
    value = (value or '').strip()
    if len(value) < length:
        raise ValueError(message)
    return value


def optional_text(value):
    value = (value or '').strip()
    return value or None


class StepSchema(BaseModel):
    model_config = ConfigDict(validate_default=True, str_strip_whitespace=True)


class PersonalStep(StepSchema):
    full_name: str = ''
    email: str = ''
    phone: str = ''

    @field_validator('full_name', mode='before')
    @classmethod
    def check_full_name(cls, value):
        return require_length(value, 3, 'Full name must be at least 3 characters')

    @field_validator('email', mode='before')
    @classmethod
    def check_email(cls, value):
        value = (value or '').strip()
        try:
            validate_email(value)
        except ValueError:
            raise ValueError('Invalid email address')
        return value.lower()

    @field_validator('phone', mode='before')
    @classmethod
    def check_phone(cls, value):
        return require_length(value, 10, 'Phone number must be at least 10 digits')


class SchoolStep(StepSchema):
    school_name: str = ''
    program: str = ''
    study_semester: str = ''

    @field_validator('school_name', mode='before')
    @classmethod
    def check_school_name(cls, value):
        return require_length(value, 3, 'School name is required')

    @field_validator('program', mode='before')
    @classmethod
    def check_program(cls, value):
        return require_length(value, 3, 'Program/course is required')

    @field_validator('study_semester', mode='before')
    @classmethod
    def check_study_semester(cls, value):
        return require_length(value, 1, 'Study semester is required')


class PaymentStep(StepSchema):
    amount: str = ''
    currency: str = 'NGN'
    school_account_name: str = ''
    school_account_number: str = ''
    school_sort_code: Optional[str] = None
    school_bank_name: str = ''

    @field_validator('amount', mode='before')
    @classmethod
    def check_amount(cls, value):
        raw = require_length(str(value or ''), 1, 'Amount is required').replace(',', '')
        try:
            amount = Decimal(raw)
        except InvalidOperation:
            raise ValueError('Amount must be a number')
        if not amount.is_finite() or amount <= 0:
            raise ValueError('Amount must be greater than zero')
        return str(amount.quantize(Decimal('0.01')))

    @field_validator('currency', mode='before')
    @classmethod
    def check_currency(cls, value):
        value = (value or 'NGN').strip().upper()
        if value not in CURRENCIES:
            raise ValueError('Currency must be NGN or USD')
        return value

    @field_validator('school_account_name', mode='before')
    @classmethod
    def check_account_name(cls, value):
        return require_length(value, 3, 'School account name is required')

    @field_validator('school_account_number', mode='before')
    @classmethod
    def check_account_number(cls, value):
        return require_length(value, 5, 'Account number is required')

    @field_validator('school_sort_code', mode='before')
    @classmethod
    def check_sort_code(cls, value):
        return optional_text(value)

    @field_validator('school_bank_name', mode='before')
    @classmethod
    def check_bank_name(cls, value):
        return require_length(value, 2, 'Bank name is required')


class DocumentsStep(StepSchema):
    # Both documents are optional; attachments live outside the form data
    pass


class NotesStep(StepSchema):
    additional_notes: Optional[str] = None

    @field_validator('additional_notes', mode='before')
    @classmethod
    def check_notes(cls, value):
        return optional_text(value)


class FullRequest(PersonalStep, SchoolStep, PaymentStep, NotesStep):
    """Every step merged, validated once more right before submission."""

    @property
    def amount_value(self):
        return Decimal(self.amount)


STEP_SCHEMAS = {
    1: PersonalStep,
    2: SchoolStep,
    3: PaymentStep,
    4: DocumentsStep,
    5: NotesStep,
}


def collect_errors(exc: ValidationError):
    errors = {}
    for error in exc.errors():
        field = error['loc'][0] if error['loc'] else '__all__'
        message = error['msg']
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        errors.setdefault(str(field), message)
    return errors


def new_state():
    return {'current_step': 1, 'data': {'currency': 'NGN'}, 'attachments': {}}


class RequestWizard:
    def __init__(self, state=None):
        self.state = state if state is not None else {}
        for key, value in new_state().items():
            self.state.setdefault(key, value)

    @property
    def current_step(self):
        return self.state['current_step']

    @property
    def data(self):
        return self.state['data']

    @property
    def attachments(self):
        return self.state['attachments']

    @property
    def progress(self):
        return round(self.current_step / TOTAL_STEPS * 100)

    @property
    def is_last_step(self):
        return self.current_step == TOTAL_STEPS

    def validate_step(self, step, form):
        schema = STEP_SCHEMAS[step]
        values = {name: form.get(name) for name in schema.model_fields if name in form}
        try:
            return schema(**values), {}
        except ValidationError as exc:
            return None, collect_errors(exc)

    def advance(self, form):
        """Validate the current step; move forward only when it is valid."""
        step_data, errors = self.validate_step(self.current_step, form)
        if errors:
            return errors

        self.data.update(step_data.model_dump())
        if self.current_step < TOTAL_STEPS:
            self.state['current_step'] = self.current_step + 1
        return {}

    def back(self):
        if self.current_step > 1:
            self.state['current_step'] = self.current_step - 1

    def attach(self, kind, descriptor):
        if kind not in DOCUMENT_KINDS:
            raise ValueError(f'Unknown document kind: {kind}')
        previous = self.attachments.get(kind)
        self.attachments[kind] = descriptor
        return previous

    def detach(self, kind):
        return self.attachments.pop(kind, None)

    def review(self):
        summary = dict(self.data)
        summary['attachments'] = {kind: item['filename'] for kind, item in self.attachments.items()}
        return summary

    def validate_all(self):
        try:
            return FullRequest(**self.data), {}
        except ValidationError as exc:
            return None, collect_errors(exc)

    def first_invalid_step(self, errors):
        for step, schema in STEP_SCHEMAS.items():
            if any(field in errors for field in schema.model_fields):
                return step
        return self.current_step

    def reset(self):
        self.state.clear()
        self.state.update(new_state())
