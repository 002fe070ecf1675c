
import json
import logging
import os
import sqlite3
import sys
import time
from pathlib import Path
from typing import Any, Dict, Iterable

import requests

from proxygen.core.normalize import normalize_name
from proxygen.services.card_service import DATABASE_PATH, faces_from_scryfall

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

# --- Configuration ---
# Scryfall API URL for all bulk data objects
BULK_DATA_API_URL = "https://api.scryfall.com/bulk-data"
# One object per distinct card (not per printing), which is all a text proxy needs
BULK_DATA_TYPE = "oracle_cards"
DATA_DIR = DATABASE_PATH.parent
# Path for the temporary downloaded JSON file
JSON_TMP_PATH = DATA_DIR / "oracle_cards.json"
# Layouts that aren't cards anyone puts in a decklist
SKIPPED_LAYOUTS = frozenset({"token", "double_faced_token", "emblem", "art_series", "vanguard", "planar", "scheme"})

# --- Database Schema ---
CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    layout TEXT NOT NULL,
    faces TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS card_names (
    lookup_name TEXT PRIMARY KEY,
    card_id TEXT NOT NULL REFERENCES cards(id)
);
"""
BATCH_SIZE = 1000


def get_bulk_data_url() -> str:
    """
    Fetches the URL for the 'Oracle Cards' bulk data file from Scryfall.
    """
    logging.info("Fetching bulk data metadata from Scryfall...")
    try:
        response = requests.get(BULK_DATA_API_URL, timeout=60)
        response.raise_for_status()
        all_bulk_data = response.json()["data"]
        for data_object in all_bulk_data:
            if data_object.get("type") == BULK_DATA_TYPE:
                download_url = data_object["download_uri"]
                logging.info(f"Found '{BULK_DATA_TYPE}' download URL.")
                return download_url
        raise RuntimeError(f"Could not find bulk data of type '{BULK_DATA_TYPE}'.")
    except (requests.RequestException, KeyError, RuntimeError) as e:
        logging.error(f"Failed to get bulk data URL: {e}")
        raise


def download_bulk_data(url: str):
    """
    Streams the download of the bulk data JSON file to avoid high memory usage.
    """
    logging.info(f"Downloading bulk data from {url}...")
    try:
        with requests.get(url, stream=True, timeout=300) as r:
            r.raise_for_status()
            with open(JSON_TMP_PATH, "wb") as f:
                for chunk in r.iter_content(chunk_size=8192):
                    f.write(chunk)
        logging.info(f"Successfully downloaded and saved to {JSON_TMP_PATH}")
    except requests.RequestException as e:
        logging.error(f"Failed to download bulk data: {e}")
        raise


def create_database_and_tables(conn: sqlite3.Connection):
    """
    Creates the database tables.
    """
    logging.info("Creating database tables...")
    try:
        conn.executescript(CREATE_TABLES_SQL)
        conn.commit()
        logging.info("Database structure created successfully.")
    except sqlite3.Error as e:
        logging.error(f"Database setup failed: {e}")
        raise


def insert_cards(conn: sqlite3.Connection, cards: Iterable[Dict[str, Any]]) -> int:
    """
    Inserts Scryfall card objects and their lookup names.

    Each card is reachable by its normalized full name and by each normalized
    face name. When two cards share a lookup name the first one wins.
    Returns the number of cards inserted.
    """
    cursor = conn.cursor()
    card_rows = []
    name_rows = []
    insert_count = 0

    def flush():
        cursor.executemany("INSERT OR IGNORE INTO cards (id, name, layout, faces) VALUES (?, ?, ?, ?)", card_rows)
        cursor.executemany("INSERT OR IGNORE INTO card_names (lookup_name, card_id) VALUES (?, ?)", name_rows)
        card_rows.clear()
        name_rows.clear()

    for card in cards:
        layout = card.get("layout", "normal")
        if not card.get("name") or layout in SKIPPED_LAYOUTS:
            continue

        faces = faces_from_scryfall(card)
        card_rows.append((card["id"], card["name"], layout, json.dumps(faces)))
        name_rows.append((normalize_name(card["name"]), card["id"]))
        for face in faces:
            name_rows.append((normalize_name(face["name"]), card["id"]))
        insert_count += 1

        # Insert in batches to improve performance
        if len(card_rows) >= BATCH_SIZE:
            flush()

    if card_rows:
        flush()

    conn.commit()
    return insert_count


def process_and_insert_data(conn: sqlite3.Connection):
    """
    Reads the downloaded JSON data and inserts it into the SQLite database.
    """
    logging.info(f"Processing JSON file: {JSON_TMP_PATH}")
    start_time = time.time()

    # Use a high-memory approach for speed, as this is a build script.
    with open(JSON_TMP_PATH, "r", encoding="utf-8") as f:
        all_cards = json.load(f)

    insert_count = insert_cards(conn, all_cards)
    end_time = time.time()
    logging.info(f"Inserted {insert_count} card records in {end_time - start_time:.2f} seconds.")


def cleanup():
    """
    Removes the temporary JSON file.
    """
    if os.path.exists(JSON_TMP_PATH):
        logging.info(f"Cleaning up temporary file: {JSON_TMP_PATH}")
        os.remove(JSON_TMP_PATH)
        logging.info("Cleanup complete.")


def main():
    """
    Main function to orchestrate the database build process.
    """
    logging.info("--- Starting Scryfall DB Build Process ---")

    DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Always rebuild the database to ensure data is fresh and normalized.
    if DATABASE_PATH.exists():
        logging.info("Database already exists. Deleting it to rebuild with latest data.")
        os.remove(DATABASE_PATH)

    conn = None
    try:
        download_url = get_bulk_data_url()
        download_bulk_data(download_url)

        conn = sqlite3.connect(DATABASE_PATH)
        create_database_and_tables(conn)
        process_and_insert_data(conn)

        logging.info("--- Scryfall DB Build Process Completed Successfully ---")

    except Exception as e:
        logging.error(f"An error occurred during the build process: {e}")
        # Exit with a non-zero code to fail the Docker build if something goes wrong
        sys.exit(1)
    finally:
        if conn:
            conn.close()
        cleanup()


if __name__ == "__main__":
    main()
