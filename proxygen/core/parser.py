
import logging
import os
import re
from typing import Any, List, NamedTuple, Optional, Protocol, Union

from proxygen.core.errors import (
    CardNotFound,
    CatalogFailure,
    DecklistParseError,
    InvalidCardName,
    LookupFailure,
    MalformedMultiface,
    MulticardHasMalformedNames,
    ParseError,
    TooManyCards,
    UnhandledCatalogError,
)
from proxygen.core.normalize import normalize_name

logger = logging.getLogger(__name__)

# --- Configuration ---
# Maximum number of proxies (summed over all lines) a single decklist may request.
MAX_CARDS = int(os.environ.get("PROXYGEN_MAX_CARDS", 1000))

# Optional quantity (with an optional "x" right after it), then a name with no digits.
# Applied to a line that has already been stripped.
LINE_REGEX = re.compile(r"^(?:(\d+)x?)?\s*(\D*?)\s*$")

LOOKUP_FAILURES = (CardNotFound, MalformedMultiface, CatalogFailure)


class ParsedEntry(NamedTuple):
    quantity: int
    raw_name: str


class ResolvedEntry(NamedTuple):
    quantity: int
    # The card record is owned by the catalog; the parser never looks inside it.
    card: Any


class CardResolver(Protocol):
    """Anything that can turn a normalized card name into a card record."""

    def resolve(self, name: str) -> Union[Any, LookupFailure]:
        ...


def tokenize_line(line: str) -> Optional[ParsedEntry]:
    """
    Splits one stripped decklist line into a quantity and a raw card name.

    Accepts "4x Island", "4 Island", "4xIsland" and "Island" (quantity 1).
    Returns None when the line doesn't fit that shape: a digit inside the
    name, a quantity of zero, or a quantity with no name after it.
    """
    match = LINE_REGEX.match(line)
    if not match:
        return None

    digits, raw_name = match.groups()
    quantity = int(digits) if digits is not None else 1
    if quantity < 1 or not raw_name:
        return None
    return ParsedEntry(quantity, raw_name)


def accept_quantity(running_total: int, quantity: int, max_cards: int = MAX_CARDS) -> Optional[int]:
    """Returns the new running total, or None if it would go over max_cards."""
    new_total = running_total + quantity
    if new_total > max_cards:
        return None
    return new_total


def _lookup_error(failure: LookupFailure, name: str) -> ParseError:
    if isinstance(failure, CardNotFound):
        return InvalidCardName(name)
    if isinstance(failure, MalformedMultiface):
        return MulticardHasMalformedNames(name)
    return UnhandledCatalogError(failure.detail)


def parse_decklist(
    decklist: str,
    resolver: CardResolver,
    max_cards: int = MAX_CARDS,
) -> Union[List[ResolvedEntry], ParseError]:
    """
    Parses a multiline decklist into (quantity, card) pairs, in input order.

    Blank lines are skipped. The first problem found stops the parse and is
    returned in place of the list, so callers should check the result with
    isinstance(result, list) before using it. The quantity limit is checked
    before the catalog is asked about a line.

    Args:
        decklist: The raw text, one card entry per line.
        resolver: The card catalog used to look up normalized names.
        max_cards: Maximum total number of copies across the whole decklist.

    Returns:
        A list of ResolvedEntry, or one of the ParseError variants.
    """
    resolved: List[ResolvedEntry] = []
    total = 0

    for line_number, line in enumerate(decklist.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue

        entry = tokenize_line(line)
        if entry is None:
            logger.info(f"Decklist line {line_number} could not be parsed: '{line}'")
            return DecklistParseError(line, line_number)

        name = normalize_name(entry.raw_name)

        new_total = accept_quantity(total, entry.quantity, max_cards)
        if new_total is None:
            logger.info(f"Decklist exceeds {max_cards} cards at line {line_number}.")
            return TooManyCards(max_cards)
        total = new_total

        card = resolver.resolve(name)
        if isinstance(card, LOOKUP_FAILURES):
            error = _lookup_error(card, name)
            logger.info(f"Lookup failed at line {line_number} for '{name}': {type(error).__name__}")
            return error

        resolved.append(ResolvedEntry(entry.quantity, card))

    return resolved
