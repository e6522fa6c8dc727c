"""Display helpers for daycare listings."""

import re
from typing import Any, Optional

#: Short labels for the provider types the directory knows about.
TYPE_LABELS = {
    "Nursery": "Nursery",
    "Regional (Durham) Early Learning and Child Care Centres": "Regional (Durham) ELC Centres",
    "Full Day, After-School, PA Day, Summer Camp": "Full Day / After-School / Camps",
    "Infant and Toddler Programs, Summer Camp, Preschool Room, Nursery School, "
    "School Age Program, Junior & Senior Kindergarten": "Infant to School Age Programs",
    "YMCA Childcare": "YMCA Childcare",
    "Umbrella Academy, Before and After School": "Umbrella Academy (B&A School)",
    "Afterschool program": "Afterschool Program",
    "BGC Durham, After-School program": "BGC Durham (After-School)",
    "YMCA Before & After School": "YMCA (B&A School)",
    "YMCA School Age": "YMCA (School Age)",
    "Montessori": "Montessori",
    "Camps": "Camps",
    "Home Childcare": "Home Childcare",
    "Compass ELC": "Compass ELC",
    "Child Care": "Child Care",
    "Before and After School Program": "Before & After School",
    "Christian": "Christian",
}

MAX_LABEL_LENGTH = 40

_MONTH_SUFFIX = re.compile(r"/month", re.IGNORECASE)
_NON_NUMERIC = re.compile(r"[^0-9.]")


def format_type_label(value: str) -> str:
    """Human label for a provider type, truncating unknown long names."""
    if value in TYPE_LABELS:
        return TYPE_LABELS[value]
    if len(value) > MAX_LABEL_LENGTH:
        return value[: MAX_LABEL_LENGTH - 3] + "..."
    return value


def type_options(values: list[str]) -> list[dict[str, str]]:
    return [{"value": value, "label": format_type_label(value)} for value in values]


def _format_number(value: float) -> str:
    if value == int(value):
        return f"{int(value):,}$"
    return f"{value:,}$"


def _format_text(text: str) -> str:
    if "$" in text and "-" in text:
        return text
    if "-" in text:
        parts = [part.replace("$", "").strip() for part in text.split("-")]
        if len(parts) == 2:
            return f"{parts[0]}$ - {parts[1]}$"
    try:
        number = float(_NON_NUMERIC.sub("", text))
    except ValueError:
        return text
    return _format_number(number) if number > 0 else text


def format_price(price: Any = None, price_string: Optional[str] = None) -> str:
    """Format a daycare's monthly price for display.

    ``price_string`` (e.g. ``"400-600"``) wins when present; a string
    ``price`` is treated the same way; a positive number is shown with
    thousands separators.

    Examples:
        >>> format_price(price_string="475-500")
        '475$ - 500$'
        >>> format_price(1500)
        '1,500$'
        >>> format_price()
        '0$'
    """
    if isinstance(price_string, str) and price_string.strip() and price_string.strip() != "NO":
        return _format_text(_MONTH_SUFFIX.sub("", price_string).strip())

    if isinstance(price, str):
        cleaned = _MONTH_SUFFIX.sub("", price).strip()
        if cleaned.startswith("$"):
            cleaned = cleaned[1:].strip()
        return _format_text(cleaned)

    if isinstance(price, (int, float)) and not isinstance(price, bool) and price > 0:
        return _format_number(float(price))

    return "0$"
