"""Normalization of patient-typed identifiers."""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_national_id(value: str) -> str:
    """Strip all whitespace and upper-case the control letter of a DNI/NIE."""
    if not value:
        return ""
    return _WHITESPACE.sub("", value).upper()


def normalize_phone(value: str) -> str:
    """Remove whitespace, the same form the SMS provider receives."""
    if not value:
        return ""
    return _WHITESPACE.sub("", value)


def normalize_code(value: str) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub("", value)
