"""
Display formatters shared by the API, the narrative generator and the PDF.

The masks are total functions: partial input (a CPF being typed) is
formatted as far as it goes and never raises.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime

_NON_DIGITS = re.compile(r"\D")
_UNSAFE_FILENAME = re.compile(r"[^\w\s.-]")

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

NOT_SPECIFIED = "not specified"
NOT_INFORMED = "not informed"


def strip_digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def format_cpf(value: str | None) -> str:
    """000.000.000-00, applied progressively while the number is typed."""
    d = strip_digits(value)[:11]
    if len(d) <= 3:
        return d
    if len(d) <= 6:
        return f"{d[:3]}.{d[3:]}"
    if len(d) <= 9:
        return f"{d[:3]}.{d[3:6]}.{d[6:]}"
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"


def is_valid_cpf(value: str | None) -> bool:
    # Length check only; verification digits are not computed.
    return len(strip_digits(value)) == 11


def format_phone(value: str | None) -> str:
    """(00) 0000-0000 for landlines, (00) 00000-0000 for 11-digit mobiles."""
    d = strip_digits(value)[:11]
    if not d:
        return ""
    if len(d) <= 2:
        return f"({d}"
    if len(d) <= 6:
        return f"({d[:2]}) {d[2:]}"
    if len(d) <= 10:
        return f"({d[:2]}) {d[2:6]}-{d[6:]}"
    return f"({d[:2]}) {d[2:7]}-{d[7:]}"


def format_cep(value: str | None) -> str:
    d = strip_digits(value)[:8]
    if len(d) <= 5:
        return d
    return f"{d[:5]}-{d[5:]}"


def parse_date(value: date | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def compute_age(birth_date: date | str | None, today: date | None = None) -> int | None:
    """Full elapsed years; one less while this year's birthday is still ahead."""
    birth = parse_date(birth_date)
    if birth is None:
        return None
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def format_date_short(value: date | str | None) -> str:
    d = parse_date(value)
    return d.strftime("%d/%m/%Y") if d else ""


def format_date_long(value: date | str | None) -> str:
    d = parse_date(value)
    if d is None:
        return NOT_INFORMED
    return f"{d.day:02d} {MONTH_NAMES[d.month - 1]} {d.year}"


def format_time(value) -> str:
    if value is None or value == "":
        return NOT_INFORMED
    if hasattr(value, "strftime"):
        return value.strftime("%H:%M")
    return str(value)[:5]


def join_labels(items: list[str] | None, placeholder: str = NOT_SPECIFIED) -> str:
    """Join labels into a sentence fragment: "A", "A and B", "A, B and C"."""
    items = [i for i in (items or []) if i]
    if not items:
        return placeholder
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} and {items[-1]}"


def slugify_name(name: str | None) -> str:
    """ASCII file-name fragment; header values must stay latin-1 encodable."""
    folded = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    folded = _UNSAFE_FILENAME.sub("", folded)
    return re.sub(r"\s+", "_", folded.strip()) or "patient"
