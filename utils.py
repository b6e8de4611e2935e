from datetime import datetime
from decimal import Decimal, InvalidOperation

CURRENCY_SYMBOLS = {
    'NGN': '₦',
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
}

RELATIVE_INTERVALS = (
    ('year', 31536000),
    ('month', 2592000),
    ('week', 604800),
    ('day', 86400),
    ('hour', 3600),
    ('minute', 60),
    ('second', 1),
)


def _to_decimal(amount):
    try:
        return Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        return None


def _group(amount):
    # Up to two decimals, trailing zeros dropped: 1500 -> "1,500", 1500.5 -> "1,500.5"
    text = f'{amount:,.2f}'.rstrip('0').rstrip('.')
    return text


def format_currency(amount, currency='NGN'):
    value = _to_decimal(amount)
    if value is None:
        return str(amount)
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f'{symbol}{_group(value)}'


def format_amount(amount, currency='NGN'):
    """Currency code followed by the grouped amount, as used in emails."""
    value = _to_decimal(amount)
    if value is None:
        return f'{currency} {amount}'
    return f'{currency} {_group(value)}'


def _parse(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def format_date(value):
    if not value:
        return ''
    date = _parse(value)
    return f'{date.strftime("%b")} {date.day}, {date.year}'


def format_relative_time(value, now=None):
    date = _parse(value)
    now = now or datetime.utcnow()
    seconds = int((now - date).total_seconds())

    for unit, unit_seconds in RELATIVE_INTERVALS:
        interval = seconds // unit_seconds
        if interval >= 1:
            return f'{interval} {unit}{"" if interval == 1 else "s"} ago'
    return 'Just now'


def truncate(text, max_length):
    if text is None or len(text) <= max_length:
        return text
    return text[:max_length] + '...'


def get_initials(name):
    return ''.join(word[0] for word in (name or '').split()).upper()[:2]


def register_template_filters(app):
    app.jinja_env.filters['currency'] = format_currency
    app.jinja_env.filters['date'] = format_date
    app.jinja_env.filters['relative_time'] = format_relative_time
    app.jinja_env.filters['truncate_text'] = truncate
    app.jinja_env.filters['initials'] = get_initials
