"""
==============================================================================
Phone Extractor Module
==============================================================================

Pure mapping from decoded payload text to a normalized phone number.

Algorithm:
----------
1. Text that already is a normalized number (optional "+" and 10-15
   digits, nothing else) is shaped directly, so extraction is idempotent.
2. Matchers are tried in a fixed order (see PHONE_MATCHERS).
3. Within a matcher, every match is normalized in order and the first
   one that validates is returned.
4. A matcher whose matches all fail validation hands over to the next one.
5. When every matcher is exhausted, all digits of the whole text are
   taken as one candidate (switchable fallback).

Normalization:
--------------
- Strip a leading "tel:" / "phone:" prefix (case-insensitive) and whitespace
- Keep a leading "+", drop every other non-digit
- Valid numbers carry 10-15 digits (the "+" is not counted)
- "+" is kept when present, prepended for 11+ digits, absent for exactly 10

Digit runs are bounded: a match never begins or ends inside a longer run
of digits, so a bare digit string is judged as a whole.

==============================================================================
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple, Optional, Pattern, Tuple


# Module logger
logger = logging.getLogger(__name__)


MIN_DIGITS = 10
MAX_DIGITS = 15

# Optional "+country" lead, never starting inside a digit run
_LEAD = r"(?<!\d)(?:\+\d{1,3}[-.\s]?)?"

_FLAGS = re.ASCII
_NON_DIGIT = re.compile(r"\D", _FLAGS)
_URI_PREFIX = re.compile(r"^(?:tel:|phone:)", re.IGNORECASE)
# Text that already is a normalized number
_NORMALIZED = re.compile(r"\+?\d{10,15}", _FLAGS)


class PhoneMatcher(NamedTuple):
    """One entry of the ordered matcher table."""

    name: str
    pattern: Pattern[str]
    strips_prefix: bool = False


PHONE_MATCHERS: Tuple[PhoneMatcher, ...] = (
    PhoneMatcher(
        "formatted",
        re.compile(_LEAD + r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)", _FLAGS),
    ),
    PhoneMatcher(
        "international",
        re.compile(_LEAD + r"\d{10,15}(?!\d)", _FLAGS),
    ),
    PhoneMatcher(
        "grouped_4_3_3",
        re.compile(_LEAD + r"\d{4}[-.\s]?\d{3}[-.\s]?\d{3}(?!\d)", _FLAGS),
    ),
    PhoneMatcher(
        "grouped_3_4_4",
        re.compile(_LEAD + r"\d{3}[-.\s]?\d{4}[-.\s]?\d{4}(?!\d)", _FLAGS),
    ),
    PhoneMatcher(
        "tel_uri",
        re.compile(r"tel:\+?[0-9\-\s()]+", _FLAGS | re.IGNORECASE),
        strips_prefix=True,
    ),
    PhoneMatcher(
        "phone_prefix",
        re.compile(r"phone:\+?[0-9\-\s()]+", _FLAGS | re.IGNORECASE),
        strips_prefix=True,
    ),
)


def digit_count(candidate: str) -> int:
    """Number of ASCII digits in a candidate, ignoring a leading '+'."""
    return len(_NON_DIGIT.sub("", candidate))


class PhoneExtractor:
    """
    Ordered-pattern phone number extractor.

    Total: never raises; absence of a valid number is None.

    Attributes:
        matchers: Ordered matcher table
        allow_digit_fallback: Use all digits of the text as a last resort

    Example:
        >>> extractor = PhoneExtractor()
        >>> extractor.extract("tel:+1-202-555-0172")
        '+12025550172'
        >>> extractor.extract("phone: 555 123 4567")
        '5551234567'
        >>> extractor.extract("no digits here") is None
        True
    """

    def __init__(
        self,
        matchers: Tuple[PhoneMatcher, ...] = PHONE_MATCHERS,
        allow_digit_fallback: bool = True
    ) -> None:
        self.matchers = matchers
        self.allow_digit_fallback = allow_digit_fallback

    def extract(self, text: Optional[str]) -> Optional[str]:
        """
        Extract a normalized phone number from arbitrary text.

        Args:
            text: Decoded payload or typed input

        Returns:
            Normalized phone number, or None
        """
        if not text:
            return None

        stripped = text.strip()
        if _NORMALIZED.fullmatch(stripped):
            return self.normalize(stripped, strips_prefix=False)

        for matcher in self.matchers:
            for match in matcher.pattern.finditer(text):
                phone = self.normalize(match.group(0), matcher.strips_prefix)
                if phone:
                    logger.debug(f"Phone matched by '{matcher.name}': {phone}")
                    return phone

        if not self.allow_digit_fallback:
            return None

        # Unrelated digit runs (dates, ids) get joined here
        return self._shape(_NON_DIGIT.sub("", text), has_plus=False)

    @classmethod
    def normalize(cls, candidate: str, strips_prefix: bool = True) -> Optional[str]:
        """
        Normalize and validate a single matched candidate.

        Returns:
            Shaped phone number, or None when the digit count is out of range
        """
        phone = candidate.strip()
        if strips_prefix:
            phone = _URI_PREFIX.sub("", phone).strip()

        has_plus = phone.startswith("+")
        digits = _NON_DIGIT.sub("", phone[1:] if has_plus else phone)

        return cls._shape(digits, has_plus)

    @staticmethod
    def _shape(digits: str, has_plus: bool) -> Optional[str]:
        if not MIN_DIGITS <= len(digits) <= MAX_DIGITS:
            return None
        if has_plus or len(digits) >= 11:
            return "+" + digits
        return digits


_default_extractor = PhoneExtractor()


def extract_phone_number(text: Optional[str]) -> Optional[str]:
    """Extract with the default matcher table and fallback enabled."""
    return _default_extractor.extract(text)
