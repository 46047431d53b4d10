"""
Phone numbers.

Rwandan numbers are stored in local form (``07XXXXXXXX``); ``+250`` and
``250`` prefixed input is folded onto it. Lookups go through
``phone_variants`` so a row stored in any of those spellings matches.
"""

import re
from typing import List, Optional

# MTN Rwanda mobile money: 078/079
MOMO_PHONE_PATTERN = re.compile(r"^07[89]\d{7}$")

_INTERNATIONAL_RW = re.compile(r"^\+?250(7\d{8})$")


def normalize_phone(phone: Optional[str]) -> str:
    digits = re.sub(r"[\s-]", "", phone or "")
    match = _INTERNATIONAL_RW.match(digits)
    if match:
        return "0" + match.group(1)
    return digits


def phone_variants(phone: Optional[str]) -> List[str]:
    """Every stored spelling that normalizes to the same number."""
    local = normalize_phone(phone)
    if not local:
        return []
    if local.startswith("07") and len(local) == 10:
        return [local, "250" + local[1:], "+250" + local[1:]]
    return [local]


def is_valid_momo_phone(phone: Optional[str]) -> bool:
    return bool(MOMO_PHONE_PATTERN.match(normalize_phone(phone)))
