"""Price and color normalization used by both collectors."""
from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Tuple

from storeparser.errors import MalformedFieldError

_CENT = Decimal("0.01")
_MINOR_UNITS = Decimal(100)

# Greedy prefix: stops after the last "digits [,.] digits" group of the text.
_DECIMAL_PREFIX_RE = re.compile(r"^.*\d[.,]\d+", re.S)
_DIGIT_PREFIX_RE = re.compile(r"^.*\d", re.S)
_FIRST_DIGIT_RE = re.compile(r"\d")
_NOT_AMOUNT_RE = re.compile(r"[^\d,]")
_COLOR_SEPARATOR_RE = re.compile(r"\s*/\s*")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, bool) or value is None:
        raise MalformedFieldError(f"not a price amount: {value!r}")
    else:
        try:
            # str() first so floats keep their shortest repr (1.005 stays 1.005)
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise MalformedFieldError(f"not a price amount: {value!r}") from None
    if not number.is_finite():
        raise MalformedFieldError(f"not a price amount: {value!r}")
    return number


def round_price(value: Any) -> Decimal:
    """Quantize to two fractional digits, rounding half-way points up.

    >>> round_price("33.335")
    Decimal('33.34')
    """
    return _to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def from_minor_units(value: Any) -> Decimal:
    """Convert an amount in cents (``12999``) into ``129.99``."""
    return round_price(_to_decimal(value) / _MINOR_UNITS)


def parse_price_text(text: str) -> Tuple[Decimal, str]:
    """Split a displayed price such as ``"1.234,56 €"`` into value and currency.

    The currency token is whatever follows the last decimal group (or the last
    digit when there is none); a prefix before the first digit is used when
    nothing trails the amount. Dots are thousands separators and the comma is
    the decimal separator.

    Returns
    -------
    tuple[Decimal, str]
        Rounded amount and the raw currency token (not validated as ISO code)
    """
    normalized = " ".join((text or "").split())
    first_digit = _FIRST_DIGIT_RE.search(normalized)
    if first_digit is None:
        raise MalformedFieldError(f"price text has no digits: {text!r}")

    prefix = _DECIMAL_PREFIX_RE.match(normalized) or _DIGIT_PREFIX_RE.match(normalized)
    currency = normalized[prefix.end():].strip()
    if not currency:
        currency = normalized[: first_digit.start()].strip()
    if not currency:
        raise MalformedFieldError(f"price text has no currency: {text!r}")

    amount = _NOT_AMOUNT_RE.sub("", normalized).replace(",", ".")
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise MalformedFieldError(f"cannot parse price amount from {text!r}") from None
    return round_price(value), currency


def split_color_names(text: str) -> List[str]:
    """``"Black / White"`` -> ``["Black", "White"]``."""
    normalized = " ".join((text or "").split())
    return [token for token in _COLOR_SEPARATOR_RE.split(normalized) if token]


def clean_color_names(names: Iterable[str]) -> List[str]:
    """Trim labels and drop empty or repeated ones, keeping first-seen order.

    Matching is literal: ``"Black"`` and ``"black"`` stay two colors.
    """
    seen: dict[str, None] = {}
    for name in names:
        if name is None:
            continue
        label = str(name).strip()
        if label:
            seen.setdefault(label, None)
    return list(seen)
