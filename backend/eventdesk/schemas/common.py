"""
Shared input sanitizers.

Values end up in spreadsheet cells, so free text is stripped of HTML tags and
anything a sheet would evaluate as a formula gets a leading apostrophe.
"""

import re
from typing import Annotated, Optional

from pydantic import AfterValidator, BeforeValidator, EmailStr

FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r", "\n")
SG_PHONE_RE = re.compile(r"^(\+65)?[689]\d{7}$")
_TAG_RE = re.compile(r"<[^>]*>")


def strip_html(value: str) -> str:
    return _TAG_RE.sub("", value) if value else value


def escape_formula(value: str) -> str:
    if not value:
        return value
    trimmed = value.strip()
    if trimmed.startswith(FORMULA_PREFIXES):
        return f"'{trimmed}"
    return trimmed


def sanitize(value: str) -> str:
    return escape_formula(strip_html(value))


def _none_to_empty(value: Optional[str]) -> str:
    return "" if value is None else value


def _clean_phone(value: str) -> str:
    return re.sub(r"\s", "", value or "")


def _check_sg_phone(value: str) -> str:
    if value and not SG_PHONE_RE.match(value):
        raise ValueError("Invalid Singapore phone number")
    return value


def _normalize_email(value: str) -> str:
    return value.strip().lower()


SafeText = Annotated[str, BeforeValidator(_none_to_empty), AfterValidator(sanitize)]
Phone = Annotated[str, BeforeValidator(_none_to_empty), AfterValidator(_clean_phone), AfterValidator(_check_sg_phone)]
LoosePhone = Annotated[str, BeforeValidator(_none_to_empty), AfterValidator(_clean_phone)]
Email = Annotated[EmailStr, AfterValidator(_normalize_email)]
