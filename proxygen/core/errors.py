
from dataclasses import dataclass
from typing import Union


# --- Catalog lookup outcomes ---
# Returned (not raised) by a CardResolver when a name can't be turned into a card.

@dataclass(frozen=True)
class CardNotFound:
    name: str


@dataclass(frozen=True)
class MalformedMultiface:
    """A split/flip/transform card with more than two faces."""
    name: str
    face_count: int


@dataclass(frozen=True)
class CatalogFailure:
    """Any other failure inside the catalog (database or API errors)."""
    detail: str


LookupFailure = Union[CardNotFound, MalformedMultiface, CatalogFailure]


# --- Decklist parse errors ---
# parse_decklist stops at the first of these and returns it instead of a result.

@dataclass(frozen=True)
class TooManyCards:
    limit: int


@dataclass(frozen=True)
class DecklistParseError:
    line: str
    line_number: int


@dataclass(frozen=True)
class InvalidCardName:
    name: str


@dataclass(frozen=True)
class MulticardHasMalformedNames:
    name: str


@dataclass(frozen=True)
class UnhandledCatalogError:
    detail: str


ParseError = Union[
    TooManyCards,
    DecklistParseError,
    InvalidCardName,
    MulticardHasMalformedNames,
    UnhandledCatalogError,
]
