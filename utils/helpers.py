from datetime import datetime, timezone

import bleach
from flask import current_app, request

from classes.errors import ValidationError


def utcnow():
    """Naive UTC timestamp, matching what the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_datetime(datetime_obj):
    """Format datetime to a readable string."""
    if not datetime_obj:
        return None
    return datetime_obj.strftime('%Y-%m-%d %H:%M:%S')


def sanitize_html(text):
    """Strip tags outside the configured allow-list from rich text input."""
    if text is None:
        return None
    allowed_tags = current_app.config.get("ALLOWED_HTML_TAGS", [])
    return bleach.clean(text, tags=allowed_tags, strip=True)


def get_json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Invalid request data")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_int(value, field_name):
    """Whole numbers only: ints or digit strings. Floats are never truncated."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer")


def parse_positive_int(value, field_name, allow_none=False):
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field_name} is required")
    number = parse_int(value, field_name)
    if number < 1:
        raise ValidationError(f"{field_name} must be a positive integer")
    return number
