"""Phone text -> canonical chat identifier (`<digits>@c.us`)."""

from __future__ import annotations

import re
from typing import Optional

CHAT_ID_SUFFIX = "@c.us"
MIN_PHONE_DIGITS = 6

_NON_DIGIT = re.compile(r"\D")
_CHAT_ID = re.compile(r"^[0-9]+@c\.us$")


def normalize_phone(raw: str) -> str:
    """Strip every non-digit character. No country code is inferred here.

    A trailing ``@server`` part (``5511...@s.whatsapp.net``) is dropped first
    so already-formatted ids normalize to their digits.
    """

    if not raw:
        return ""
    return _NON_DIGIT.sub("", raw.split("@", 1)[0])


def to_chat_id(raw_phone: str, country_code: Optional[str] = None) -> str:
    digits = normalize_phone(raw_phone)
    if not digits:
        return ""
    if country_code and not digits.startswith(country_code):
        digits = country_code + digits
    return digits + CHAT_ID_SUFFIX


def is_valid_chat_id(value: str) -> bool:
    """True when ``value`` is ``<digits>@c.us`` with at least MIN_PHONE_DIGITS digits."""

    if not isinstance(value, str) or not _CHAT_ID.match(value):
        return False
    return len(value) - len(CHAT_ID_SUFFIX) >= MIN_PHONE_DIGITS
