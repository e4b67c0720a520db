"""Utility functions for ids, emails and dates."""

import re
import uuid
from datetime import date, datetime

from .errors import InvalidInput

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def new_id() -> str:
    return uuid.uuid4().hex


def normalize_id(ref) -> str | None:
    """Normalize a person reference to a bare id string, or None if empty."""
    if ref is None:
        return None
    if hasattr(ref, "id"):
        return ref.id
    if not isinstance(ref, str):
        raise InvalidInput(f"Malformed id: {ref!r}")
    stripped = ref.strip()
    return stripped or None


def unique_ids(refs) -> list[str]:
    """Normalize a list of references, dropping empties and duplicates in order.

    Raises:
        InvalidInput: refs is not a list, tuple or set (a bare id string included).
    """
    if refs is None:
        return []
    if not isinstance(refs, (list, tuple, set)):
        raise InvalidInput(f"Expected a list of ids, got {refs!r}")
    result = []
    for ref in refs:
        ref_id = normalize_id(ref)
        if ref_id and ref_id not in result:
            result.append(ref_id)
    return result


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    cleaned = email.strip().lower()
    return cleaned or None


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def parse_date(value) -> date:
    """Parse a date of birth from a date, datetime or ISO string.

    Strings may be a plain ISO date or a full ISO timestamp; anything else
    after the date is rejected.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text).date()
        except ValueError as e:
            raise InvalidInput(f"Invalid date: {value!r}") from e
    raise InvalidInput(f"Invalid date: {value!r}")


def years_ago(years: int, today: date | None = None) -> date:
    """The calendar date exactly ``years`` years before ``today``.

    29 February maps to 28 February in non-leap target years.
    """
    today = today or date.today()
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return today.replace(year=today.year - years, day=28)
