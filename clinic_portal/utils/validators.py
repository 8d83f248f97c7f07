import re
from datetime import date

# Country code 61, then one of 2/3/4/7/8, then eight ASCII digits.
AU_PHONE_PATTERN = re.compile(r'^\+61[2-478][0-9]{8}$')


def is_valid_au_phone(phone) -> bool:
    return isinstance(phone, str) and AU_PHONE_PATTERN.fullmatch(phone) is not None


def is_iso_date(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def missing_fields(data, required):
    """Returns the required keys that are absent or blank in data."""
    data = data or {}
    return [field for field in required if not data.get(field)]
