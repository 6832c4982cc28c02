"""
utils/validation_utils.py

Purpose: Input validation

- Price parsing (commas, rounding, positivity)
- Title / description / category normalization
- Done and skip keyword detection
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from app.core.exceptions import ValidationError
from utils.constants import (
    DONE_KEYWORDS,
    SKIP_KEYWORD,
    DEFAULT_CATEGORY,
    INVALID_PRICE_MESSAGE,
    EMPTY_TITLE_MESSAGE,
    MAX_PRICE,
)


def parse_price(text: Optional[str]) -> int:
    """
    Parses a price typed by the seller.

    Commas and surrounding whitespace are ignored; the value must be a finite
    number above zero and at most MAX_PRICE, and is rounded half-up to a whole number.

    Args:
        text: Raw message text (e.g. "1,500")

    Returns:
        Price as a positive integer

    Raises:
        ValidationError: If the text is not a positive number
    """
    if not text:
        raise ValidationError(INVALID_PRICE_MESSAGE)

    cleaned = text.replace(",", "").strip()
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise ValidationError(INVALID_PRICE_MESSAGE, details={"input": text})

    if not value.is_finite() or value <= 0 or value > MAX_PRICE:
        raise ValidationError(INVALID_PRICE_MESSAGE, details={"input": text})

    try:
        price = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(INVALID_PRICE_MESSAGE, details={"input": text})

    if price <= 0:
        raise ValidationError(INVALID_PRICE_MESSAGE, details={"input": text})

    return price


def normalize_title(text: Optional[str]) -> str:
    """
    Raises:
        ValidationError: If the title is empty or whitespace only
    """
    title = (text or "").strip()
    if not title:
        raise ValidationError(EMPTY_TITLE_MESSAGE)
    return title


def normalize_description(text: Optional[str]) -> str:
    """'skip' (any case) means no description."""
    description = (text or "").strip()
    if description.lower() == SKIP_KEYWORD:
        return ""
    return description


def normalize_category(text: Optional[str], categories: Iterable[str]) -> str:
    """
    Maps typed text onto a known category, case-insensitively.
    Unknown text is kept as free text; blank text becomes the default.
    """
    value = (text or "").strip()
    if not value:
        return DEFAULT_CATEGORY

    for category in categories:
        if category.lower() == value.lower():
            return category

    return value


def is_done_keyword(text: Optional[str]) -> bool:
    if not text:
        return False
    return text.strip().lower() in DONE_KEYWORDS
