
from typing import Tuple

# Fixed substitution table for accented characters found in card names.
# Names outside this table (e.g. unhinged/unglued cards) must be typed precisely.
ACCENT_SUBSTITUTIONS: Tuple[Tuple[str, str], ...] = (
    ("æ", "ae"),
    ("à", "a"),
    ("á", "a"),
    ("â", "a"),
    ("é", "e"),
    ("í", "i"),
    ("ö", "o"),
    ("ú", "u"),
    ("û", "u"),
)


def normalize_name(name: str) -> str:
    """
    Lowercases a card name and replaces the known accented characters
    with their ASCII equivalents. This is the lookup key for the catalog.
    """
    normalized = name.lower()
    for accented, plain in ACCENT_SUBSTITUTIONS:
        normalized = normalized.replace(accented, plain)
    return normalized
