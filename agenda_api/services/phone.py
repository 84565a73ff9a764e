"""Contact number canonicalization.

Every store keys conversations on the canonical form: digits only, with the
country code present. The messaging provider and staff-entered numbers arrive
as "+55 (11) 99999-0000", "5511999990000" or "11999990000"; all three map to
"5511999990000".
"""

import re
from typing import Optional

from agenda_api.config import settings
from agenda_api.services.errors import ValidationError

_NON_DIGITS = re.compile(r"\D")

# Brazilian national numbers: 2-digit area code + 8 or 9 digit subscriber.
NATIONAL_NUMBER_LENGTHS = (10, 11)


def normalize(raw: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGITS.sub("", raw or "")


def has_country_code(digits: str, country_code: Optional[str] = None) -> bool:
    code = country_code or settings.default_country_code
    return digits.startswith(code) and len(digits) > max(NATIONAL_NUMBER_LENGTHS)


def with_country_code(digits: str, country_code: Optional[str] = None) -> str:
    code = country_code or settings.default_country_code
    if has_country_code(digits, code):
        return digits
    if len(digits) in NATIONAL_NUMBER_LENGTHS:
        return f"{code}{digits}"
    return digits


def without_country_code(digits: str, country_code: Optional[str] = None) -> str:
    code = country_code or settings.default_country_code
    if has_country_code(digits, code):
        return digits[len(code):]
    return digits


def canonical(raw: str, country_code: Optional[str] = None) -> str:
    """Canonical contact key used by all conversation stores."""
    digits = normalize(raw)
    if not digits:
        raise ValidationError(f"Invalid contact number: {raw!r}")
    return with_country_code(digits, country_code)


def lookup_candidates(raw: str, country_code: Optional[str] = None) -> list[str]:
    """Keys to try when reading rows written before numbers were canonicalized.

    New writes always use canonical(); the extra variants only match legacy rows.
    """
    digits = normalize(raw)
    candidates = [
        canonical(raw, country_code),
        digits,
        with_country_code(digits, country_code),
        without_country_code(digits, country_code),
        raw,
    ]
    seen = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.append(candidate)
    return seen
