from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional


class Unit(str, Enum):
    CURRENCY = "currency"
    VOLUME = "volume"
    PERCENTAGE = "percentage"
    RATE = "rate"
    COUNT = "count"


NO_DATA = "N/A"
CURRENCY_SYMBOL = "£"

MILLION = Decimal(1_000_000)
THOUSAND = Decimal(1_000)

# unit -> (decimals at >= 1M, decimals at >= 1k, decimals below); None = never abbreviated
_DECIMALS = {
    Unit.CURRENCY: (2, 1, 2),
    Unit.VOLUME: (2, 0, 0),
    Unit.COUNT: (2, 1, 0),
    Unit.PERCENTAGE: (None, None, 1),
    Unit.RATE: (None, None, 2),
}

_PARSE_RE = re.compile(r"^(-?\d+(?:\.\d+)?)(M|k|K)?(L|p|%)?$")


def round_half_up(value: Decimal, ndigits: int) -> Decimal:
    q = Decimal(10) ** -ndigits
    return value.quantize(q, rounding=ROUND_HALF_UP)


def _decorate(number: str, suffix: str, unit: Unit) -> str:
    if unit is Unit.CURRENCY:
        return f"{CURRENCY_SYMBOL}{number}{suffix}"
    if unit is Unit.VOLUME:
        return f"{number}{suffix} L"
    if unit is Unit.PERCENTAGE:
        return f"{number}%"
    if unit is Unit.RATE:
        return f"{number} p"
    return f"{number}{suffix}"


def format_value(value: Optional[float], unit: Unit) -> str:
    """Format a magnitude as a short display string, e.g. ``£1.23M`` or ``430k L``."""
    if value is None:
        return NO_DATA
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return NO_DATA
    if not amount.is_finite():
        return NO_DATA

    unit = Unit(unit)
    sign = "-" if amount < 0 else ""
    magnitude = abs(amount)
    dp_m, dp_k, dp_base = _DECIMALS[unit]

    if dp_m is not None:
        in_k = round_half_up(magnitude / THOUSAND, dp_k)
        if magnitude >= MILLION or in_k >= THOUSAND:
            number = round_half_up(magnitude / MILLION, dp_m)
            text = _decorate(f"{number:f}", "M", unit)
        elif magnitude >= THOUSAND or round_half_up(magnitude, dp_base) >= THOUSAND:
            text = _decorate(f"{in_k:f}", "k", unit)
        else:
            text = _decorate(f"{round_half_up(magnitude, dp_base):f}", "", unit)
    else:
        text = _decorate(f"{round_half_up(magnitude, dp_base):f}", "", unit)

    if sign and _is_zero_text(text):
        sign = ""
    return f"{sign}{text}"


def _is_zero_text(text: str) -> bool:
    digits = re.sub(r"[^\d]", "", text)
    return not digits.strip("0")


def infer_unit(formatted: Optional[str], hint: Optional[Unit] = None) -> Unit:
    """Pick the unit of a formatted string; an explicit hint always wins."""
    if hint is not None:
        return Unit(hint)
    text = (formatted or "").strip()
    if CURRENCY_SYMBOL in text or "$" in text:
        return Unit.CURRENCY
    if text.endswith("%"):
        return Unit.PERCENTAGE
    if text.endswith("p"):
        return Unit.RATE
    if text.endswith("L"):
        return Unit.VOLUME
    return Unit.COUNT


def reconstruct(formatted: Optional[str]) -> Optional[float]:
    """Recover the number behind a formatted string (``"£1.23M"`` -> ``1230000.0``).

    Exact for strings produced by :func:`format_value`; precision lost by the
    formatter's rounding is not recovered.
    """
    if formatted is None:
        return None
    cleaned = re.sub(r"[£$,\s]", "", str(formatted))
    if not cleaned or cleaned == NO_DATA:
        return None
    match = _PARSE_RE.match(cleaned)
    if not match:
        return None
    number = Decimal(match.group(1))
    suffix = match.group(2)
    if suffix == "M":
        number *= MILLION
    elif suffix in ("k", "K"):
        number *= THOUSAND
    return float(number)


__all__ = ["NO_DATA", "Unit", "format_value", "infer_unit", "reconstruct", "round_half_up"]
