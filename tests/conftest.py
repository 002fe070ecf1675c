
import sqlite3

import pytest

from proxygen.services.card_service import SqliteCardCatalog, get_db_connection
from scripts.build_db import create_database_and_tables, insert_cards

# A handful of cards in Scryfall's "oracle_cards" shape.
SAMPLE_CARDS = [
    {
        "id": "island",
        "name": "Island",
        "layout": "normal",
        "mana_cost": "",
        "type_line": "Basic Land — Island",
        "oracle_text": "({T}: Add {U}.)",
    },
    {
        "id": "forest",
        "name": "Forest",
        "layout": "normal",
        "mana_cost": "",
        "type_line": "Basic Land — Forest",
        "oracle_text": "({T}: Add {G}.)",
    },
    {
        "id": "plains",
        "name": "Plains",
        "layout": "normal",
        "mana_cost": "",
        "type_line": "Basic Land — Plains",
        "oracle_text": "({T}: Add {W}.)",
    },
    {
        "id": "lightning-bolt",
        "name": "Lightning Bolt",
        "layout": "normal",
        "mana_cost": "{R}",
        "type_line": "Instant",
        "oracle_text": "Lightning Bolt deals 3 damage to any target.",
    },
    {
        "id": "aether-vial",
        "name": "Æther Vial",
        "layout": "normal",
        "mana_cost": "{1}",
        "type_line": "Artifact",
        "oracle_text": "At the beginning of your upkeep, you may put a charge counter on Æther Vial.",
    },
    {
        "id": "tarmogoyf",
        "name": "Tarmogoyf",
        "layout": "normal",
        "mana_cost": "{1}{G}",
        "type_line": "Creature — Lhurgoyf",
        "oracle_text": "Tarmogoyf's power is equal to the number of card types among cards in all graveyards.",
        "power": "*",
        "toughness": "1+*",
    },
    {
        "id": "fire-ice",
        "name": "Fire // Ice",
        "layout": "split",
        "card_faces": [
            {
                "name": "Fire",
                "mana_cost": "{1}{R}",
                "type_line": "Instant",
                "oracle_text": "Fire deals 2 damage divided as you choose among one or two targets.",
            },
            {
                "name": "Ice",
                "mana_cost": "{1}{U}",
                "type_line": "Instant",
                "oracle_text": "Tap target permanent.\nDraw a card.",
            },
        ],
    },
    {
        "id": "delver",
        "name": "Delver of Secrets // Insectile Aberration",
        "layout": "transform",
        "card_faces": [
            {
                "name": "Delver of Secrets",
                "mana_cost": "{U}",
                "type_line": "Creature — Human Wizard",
                "oracle_text": "At the beginning of your upkeep, look at the top card of your library.",
                "power": "1",
                "toughness": "1",
            },
            {
                "name": "Insectile Aberration",
                "mana_cost": "",
                "type_line": "Creature — Human Insect",
                "oracle_text": "Flying",
                "power": "3",
                "toughness": "2",
            },
        ],
    },
    {
        "id": "who-what",
        "name": "Who // What // When // Where // Why",
        "layout": "split",
        "card_faces": [
            {"name": "Who", "mana_cost": "{X}{W}", "type_line": "Instant", "oracle_text": ""},
            {"name": "What", "mana_cost": "{2}{R}", "type_line": "Instant", "oracle_text": ""},
            {"name": "When", "mana_cost": "{2}{U}", "type_line": "Instant", "oracle_text": ""},
            {"name": "Where", "mana_cost": "{3}{B}", "type_line": "Instant", "oracle_text": ""},
            {"name": "Why", "mana_cost": "{1}{G}", "type_line": "Instant", "oracle_text": ""},
        ],
    },
    {
        "id": "goblin-token",
        "name": "Goblin",
        "layout": "token",
        "type_line": "Token Creature — Goblin",
    },
]


@pytest.fixture
def card_db_path(tmp_path):
    """Builds a small card database the same way scripts/build_db.py does."""
    path = tmp_path / "cards.db"
    conn = sqlite3.connect(path)
    create_database_and_tables(conn)
    insert_cards(conn, SAMPLE_CARDS)
    conn.close()
    return path


@pytest.fixture
def catalog(card_db_path):
    catalog = SqliteCardCatalog(get_db_connection(card_db_path))
    yield catalog
    catalog.close()
