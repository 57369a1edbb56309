import hashlib
import re
from datetime import date, datetime, timezone
from urllib.parse import urlencode

DATE_FORMATS = ('%Y-%m-%d', '%d-%m-%Y', '%d/%m/%Y', '%Y/%m/%d')

AVATAR_SERVICE = 'https://ui-avatars.com/api/'


def utcnow():
    return datetime.now(timezone.utc)


def today_utc():
    """Calendar date used for every expiry comparison."""
    return utcnow().date()


def parse_date(value):
    """Parse a calendar date in any of the accepted input formats.

    Returns a ``date`` or ``None`` when the value is empty or malformed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    # Tolerate ISO timestamps such as 2025-12-31T00:00:00.000Z
    if re.match(r'^\d{4}-\d{2}-\d{2}T', text):
        text = text[:10]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _from_epoch_ms(value):
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Out of the platform's datetime range, or NaN
        return None


def parse_timestamp(value):
    """Read a stored creation/update timestamp.

    Accepts datetimes, ISO 8601 strings and epoch milliseconds (older local
    documents store ``Date.now()`` values).
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    text = str(value).strip()
    if text.isdigit():
        return _from_epoch_ms(int(text))
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def placeholder_avatar(name, size=200):
    """Deterministic placeholder photo URL derived from a display name."""
    name = (name or 'Unknown').strip() or 'Unknown'
    background = hashlib.md5(name.lower().encode('utf-8')).hexdigest()[:6]
    query = urlencode({'name': name, 'background': background, 'color': 'fff', 'size': size})
    return f'{AVATAR_SERVICE}?{query}'
