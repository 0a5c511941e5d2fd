"""
Parsing of free-form invoice identifiers into canonical (series, number) pairs.

Supported shapes, tried in this order:
- "PK202124601" -> series "PK2021", number "24601" (series embeds the issuance year)
- "PK24601"     -> series "PK", number "24601"
- "PKF-0001234" -> series "PKF", number "0001234" (dot, space or dash separator)
- "24601"       -> default series, number "24601"
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .config import DEFAULT_SERIES, logger
from .exceptions import ValidationError
from .schemas import InvoiceIdentifier


SplitFn = Callable[[str], Optional[tuple[str, str]]]

_SEPARATORS = re.compile(r"[.\s-]+")


@dataclass(frozen=True)
class IdentifierPattern:
    """A named identifier shape and the function splitting it."""
    name: str
    split: SplitFn


def _split_series_with_year(identifier: str) -> Optional[tuple[str, str]]:
    # Separators are ignored so "PK2021 24601" still keeps the year in the series
    compact = _SEPARATORS.sub("", identifier)
    match = re.match(r"^([A-Z]+)(\d{4})(\d{4,6})$", compact)
    if match:
        return match.group(1) + match.group(2), match.group(3)
    return None


def _split_letters_digits(identifier: str) -> Optional[tuple[str, str]]:
    match = re.match(r"^([A-Z]{2,5})(\d+)$", identifier)
    if match:
        return match.group(1), match.group(2)
    return None


def _split_on_separator(identifier: str) -> Optional[tuple[str, str]]:
    match = re.match(r"^([A-Z0-9]+)[.\s-]+(\d+)$", identifier)
    if match:
        return match.group(1), match.group(2)
    return None


def _split_digits_only(identifier: str) -> Optional[tuple[str, str]]:
    if re.match(r"^\d+$", identifier):
        return DEFAULT_SERIES, identifier
    return None


# Order matters: the year-bearing shape is a strict subset of the letters+digits shape
IDENTIFIER_PATTERNS: list[IdentifierPattern] = [
    IdentifierPattern(name="series_with_year", split=_split_series_with_year),
    IdentifierPattern(name="letters_digits", split=_split_letters_digits),
    IdentifierPattern(name="separated", split=_split_on_separator),
    IdentifierPattern(name="digits_only", split=_split_digits_only),
]


def normalize_identifier(raw: Optional[str]) -> Optional[InvoiceIdentifier]:
    """
    Parse an invoice identifier string.

    Args:
        raw: Identifier as typed by a user or stored in the checkpoint

    Returns:
        The canonical InvoiceIdentifier, or None if no known shape matches
    """
    if raw is None:
        return None

    identifier = raw.strip().upper()
    if not identifier:
        return None

    for pattern in IDENTIFIER_PATTERNS:
        parts = pattern.split(identifier)
        if parts:
            series, number = parts
            logger.debug(f"Identifier {identifier!r} parsed as {pattern.name}: series={series}, number={number}")
            return InvoiceIdentifier(series=series, number=number)

    logger.info(f"Unrecognized invoice identifier: {identifier!r}")
    return None


def require_identifier(raw: Optional[str]) -> InvoiceIdentifier:
    """Like normalize_identifier, but raises ValidationError for unparseable input."""
    identifier = normalize_identifier(raw)
    if identifier is None:
        raise ValidationError(
            f"Invalid invoice identifier: {raw!r}. Use SERIES+NUMBER, e.g. PK202124575"
        )
    return identifier


def digit_suffix(value: str, length: int) -> str:
    """Last `length` digits of a string, ignoring every non-digit character."""
    digits = re.sub(r"\D", "", value)
    return digits[-length:]
