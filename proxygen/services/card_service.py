
import json
import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from proxygen.core.errors import CardNotFound, CatalogFailure, LookupFailure, MalformedMultiface
from proxygen.core.normalize import normalize_name

# --- Configuration ---
DATABASE_PATH = Path(os.environ.get("PROXYGEN_DATABASE_PATH", "proxygen/data/cards.db"))
SCRYFALL_API_URL = "https://api.scryfall.com"
SCRYFALL_FALLBACK_ENABLED = os.environ.get("PROXYGEN_SCRYFALL_FALLBACK", "").lower() in ("1", "true", "yes")
# Split, flip and transform cards have two faces; anything more can't be resolved.
MAX_FACES = 2

# --- Logging ---
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CardFace:
    name: str
    mana_cost: str = ""
    type_line: str = ""
    oracle_text: str = ""
    power: Optional[str] = None
    toughness: Optional[str] = None
    loyalty: Optional[str] = None


@dataclass(frozen=True)
class Card:
    name: str
    layout: str
    faces: List[CardFace]

    @property
    def is_multiface(self) -> bool:
        return len(self.faces) > 1


CardLookup = Union[Card, LookupFailure]

_FACE_FIELDS = ("name", "mana_cost", "type_line", "oracle_text", "power", "toughness", "loyalty")


def faces_from_scryfall(card: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Extracts the printable faces of a Scryfall card object.
    Single-faced cards have their fields at the top level; multi-faced
    cards (split, flip, transform, adventure, modal) list them in `card_faces`.
    """
    raw_faces = card.get("card_faces") or [card]
    return [{field: face.get(field) for field in _FACE_FIELDS} for face in raw_faces]


def card_from_faces(name: str, layout: str, faces: List[Dict[str, Any]]) -> CardLookup:
    """Builds a Card, or MalformedMultiface if the card has too many faces."""
    if len(faces) > MAX_FACES:
        return MalformedMultiface(name, len(faces))
    return Card(
        name=name,
        layout=layout,
        faces=[
            CardFace(
                name=face["name"],
                mana_cost=face.get("mana_cost") or "",
                type_line=face.get("type_line") or "",
                oracle_text=face.get("oracle_text") or "",
                power=face.get("power"),
                toughness=face.get("toughness"),
                loyalty=face.get("loyalty"),
            )
            for face in faces
        ],
    )


def _dict_factory(cursor: sqlite3.Cursor, row: sqlite3.Row) -> Dict:
    """Factory to return sqlite results as dictionaries."""
    fields = [column[0] for column in cursor.description]
    return {key: value for key, value in zip(fields, row)}


def get_db_connection(path: Path = DATABASE_PATH) -> sqlite3.Connection:
    """Opens the card database read-only."""
    try:
        # The connection is only ever read from, so sharing it across
        # FastAPI's worker threads is safe.
        conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True, check_same_thread=False)
        conn.row_factory = _dict_factory
        return conn
    except sqlite3.OperationalError as e:
        logger.error(f"FATAL: Database not found at {path}. "
                     f"Ensure the database is built before running the app. Details: {e}")
        raise RuntimeError("Database not found") from e


class ScryfallFallback:
    """
    Looks up cards missing from the local database with the Scryfall API.
    Uses a synchronous client since decklist parsing runs in a worker thread.
    """

    def __init__(self, client: Optional[httpx.Client] = None):
        self.client = client or httpx.Client(
            base_url=SCRYFALL_API_URL,
            timeout=10.0,
            headers={"User-Agent": "Proxygen/1.0 (Python/httpx)"},
        )

    def resolve(self, name: str) -> CardLookup:
        try:
            response = self.client.get("/cards/named", params={"exact": name})
            response.raise_for_status()
            data = response.json()
            faces = faces_from_scryfall(data)
            logger.info(f"Resolved '{name}' via Scryfall API as '{data['name']}'.")
            return card_from_faces(data["name"], data.get("layout", "normal"), faces)
        except httpx.HTTPStatusError as e:
            # 404 means not found, which is the user's mistake rather than ours
            if e.response.status_code == 404:
                logger.info(f"Card '{name}' not found on Scryfall (404).")
                return CardNotFound(name)
            logger.error(f"Scryfall API error for '{name}': {e}")
            return CatalogFailure(f"Scryfall API error: {e}")
        except (httpx.RequestError, KeyError, ValueError) as e:
            logger.error(f"An error occurred while querying Scryfall for '{name}': {e}")
            return CatalogFailure(f"Scryfall lookup failed: {e}")

    def close(self):
        self.client.close()


class SqliteCardCatalog:
    """
    Resolves normalized card names against the database built by scripts/build_db.py.

    Every card is indexed under its full name ("fire // ice") and under each
    face name ("fire", "ice"), so either form finds it.
    """

    def __init__(self, conn: sqlite3.Connection, fallback: Optional[ScryfallFallback] = None):
        self.conn = conn
        self.fallback = fallback

    def resolve(self, name: str) -> CardLookup:
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                "SELECT c.name, c.layout, c.faces FROM card_names n "
                "JOIN cards c ON c.id = n.card_id WHERE n.lookup_name = ? LIMIT 1",
                (normalize_name(name),),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Database error while resolving '{name}': {e}")
            return CatalogFailure(f"Database error: {e}")

        if row:
            return card_from_faces(row["name"], row["layout"], json.loads(row["faces"]))

        if self.fallback is not None:
            logger.warning(f"Card '{name}' not in local DB. Falling back to Scryfall API.")
            return self.fallback.resolve(name)

        logger.info(f"Card '{name}' not found in local DB.")
        return CardNotFound(name)

    def close(self):
        self.conn.close()
        if self.fallback is not None:
            self.fallback.close()


def get_card_catalog() -> SqliteCardCatalog:
    """Creates the catalog the web app uses, from the configured database and fallback."""
    conn = get_db_connection()
    fallback = ScryfallFallback() if SCRYFALL_FALLBACK_ENABLED else None
    return SqliteCardCatalog(conn, fallback)
