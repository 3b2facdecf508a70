import re
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from flask import make_response, jsonify

from .exceptions import ValidationError

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]


# CONVERT RESPONSE TO JSON
def jsonifyFormat(responsedata, status_code):
    # Ensure the response data is JSON serializable
    if isinstance(responsedata, dict):
        responsedata = jsonify(responsedata)  # Convert dictionary to JSON response

    # Create the response with the desired HTTP status code
    response = make_response(responsedata)
    response.status_code = status_code  # Set the status code

    # Set the Content-Type header to application/json
    response.headers['Content-Type'] = 'application/json'

    return response


def error_response(message, status_code):
    return jsonifyFormat({'status': status_code, 'error': message}, status_code)


def missing_fields(data, required_fields):
    """Names from `required_fields` that are absent or falsy in `data`."""
    return [field for field in required_fields if field not in data or not data[field]]


# Function for validating an email
def check_email(email):
    # Regular expression for validating email format
    email_regex = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(email_regex, email))


def parse_date(value, field='date'):
    """Parse a YYYY-MM-DD string (a trailing time part is ignored) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field}, expected YYYY-MM-DD')


def parse_datetime(value, field='date'):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        return datetime.combine(parse_date(value, field), datetime.min.time())


def to_decimal(value):
    """Coerce request values (numbers, numeric strings, None) to Decimal."""
    if value in (None, ''):
        return Decimal('0')
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f'Invalid numeric value: {value}')
    if not result.is_finite():
        raise ValidationError(f'Invalid numeric value: {value}')
    return result


def money(value):
    return Decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def as_float(value):
    return float(value) if value is not None else 0.0


def iso(value):
    return value.isoformat() if value else None


def month_name(month):
    if not month or month < 1 or month > 12:
        return ''
    return MONTH_NAMES[month - 1]


def next_sequence_number(prefix, last_number=None, today=None):
    """Build `{prefix}{YY}{MM}-{seq:04d}` from the previously issued number.

    The counter continues from the last number's suffix; only the YYMM part
    follows the issue date, so the sequence never restarts at a month boundary.
    """
    today = today or date.today()
    stamp = f"{prefix}{today.strftime('%y')}{today.month:02d}"

    if not last_number:
        return f"{stamp}-0001"

    parts = last_number.split('-')
    try:
        last_seq = int(parts[-1]) if len(parts) > 1 else 0
    except ValueError:
        last_seq = 0

    return f"{stamp}-{last_seq + 1:04d}"


def hours_between(clock_in, clock_out):
    """Hours from an HH:MM clock-in to an HH:MM clock-out on the same day."""
    if not clock_in or not clock_out:
        return 0.0
    try:
        start = datetime.strptime(clock_in, '%H:%M')
        end = datetime.strptime(clock_out, '%H:%M')
    except (TypeError, ValueError):
        raise ValidationError('Clock times must be in HH:MM format')
    return round((end - start).total_seconds() / 3600, 2)


def paginate_args(page, limit, default_limit=50, max_limit=200):
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or default_limit), 1), max_limit)
    return page, limit
