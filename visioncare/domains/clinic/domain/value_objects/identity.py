"""Identity key normalization.

CPF is the strong identity key, phone is a weak key and the name is only
used to tell apart people who share a phone.
"""

import re
import unicodedata
from enum import Enum

CPF_LENGTH = 11

_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")


def digits_only(value: str | None) -> str:
    """Strip every non-digit character."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def normalize_cpf(value: str | None) -> str | None:
    """Normalize a CPF to its 11 digits.

    Returns:
        The digits, or None when the value does not carry exactly 11 digits.
    """
    digits = digits_only(value)
    if len(digits) != CPF_LENGTH:
        return None
    return digits


def normalize_phone(value: str | None) -> str | None:
    """Normalize a phone number to digits only (None when empty)."""
    digits = digits_only(value)
    return digits or None


def format_cpf(cpf: str) -> str:
    """Format normalized CPF digits as 000.000.000-00."""
    digits = digits_only(cpf)
    if len(digits) != CPF_LENGTH:
        return cpf
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def normalize_name(value: str | None) -> str:
    """Casefold, strip accents and collapse whitespace."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    without_accents = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _WHITESPACE.sub(" ", without_accents).strip().casefold()


class NameAgreement(str, Enum):
    """Result of comparing a queried name with a stored one."""

    EXACT = "exact"
    PARTIAL = "partial"  # One name is a leading part of the other ("Maria" / "Maria Silva")
    UNKNOWN = "unknown"  # One side has no name, nothing to compare
    DIFFERENT = "different"


def compare_names(queried: str | None, stored: str | None) -> NameAgreement:
    """Compare two person names for identity disambiguation."""
    left = normalize_name(queried)
    right = normalize_name(stored)
    if not left or not right:
        return NameAgreement.UNKNOWN
    if left == right:
        return NameAgreement.EXACT

    left_tokens = left.split(" ")
    right_tokens = right.split(" ")
    shorter, longer = sorted((left_tokens, right_tokens), key=len)
    if longer[: len(shorter)] == shorter:
        return NameAgreement.PARTIAL
    return NameAgreement.DIFFERENT
