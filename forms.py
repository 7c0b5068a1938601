# Input validation helpers
import re
from datetime import date, datetime

from errors import ValidationError

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$')
GENDERS = ('male', 'female', 'other')
MINIMUM_AGE = 18


def validate_email(email):
    return bool(email) and EMAIL_RE.match(email) is not None


def validate_password(password):
    """At least 8 characters with a lowercase, an uppercase, a digit and a symbol."""
    if not password or len(password) < 8:
        return False
    return (
        re.search(r'[a-z]', password) is not None
        and re.search(r'[A-Z]', password) is not None
        and re.search(r'\d', password) is not None
        and re.search(r'[^A-Za-z0-9]', password) is not None
    )


def parse_birth_date(value):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError("Invalid date format. Use yyyy-mm-dd")


def age_on(birth_date, today=None):
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def require_string(value, message):
    if not isinstance(value, str):
        raise ValidationError(message)
    return value.strip()


def require_fields(data, fields, message="All required fields must be provided"):
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    if not all(data.get(key) not in (None, '') for key in fields):
        raise ValidationError(message)


def validate_bio(bio):
    if bio is None:
        return None
    bio = require_string(bio, "Bio must be text")
    if not 4 <= len(bio) <= 200:
        raise ValidationError("Bio must be between 4 and 200 characters")
    return bio


def validate_name(value, field):
    value = require_string(value or '', f"{field} must be text")
    if not 2 <= len(value) <= 15:
        raise ValidationError(f"{field} must be between 2 and 15 characters")
    return value
