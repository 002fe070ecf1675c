
import hashlib
import json
import logging
import os
import time
import urllib.parse
from pathlib import Path
from typing import Dict, Optional, Tuple

import uvicorn
from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
import posthog

from proxygen.core.errors import (
    DecklistParseError,
    InvalidCardName,
    MulticardHasMalformedNames,
    ParseError,
    TooManyCards,
)
from proxygen.core.parser import LOOKUP_FAILURES, CardResolver, parse_decklist
from proxygen.services.card_service import SqliteCardCatalog, get_card_catalog

# --- App Configuration ---
TEMPLATES_DIR = Path(__file__).parent / "templates"

app = FastAPI(
    title="Proxygen",
    description="Turn a Magic: The Gathering decklist into printable text proxies.",
)
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
logging.basicConfig(level=logging.INFO)

# --- Card Catalog ---
# One read-only catalog shared by every request.
try:
    card_catalog: Optional[SqliteCardCatalog] = get_card_catalog()
except RuntimeError as e:
    logging.error(f"Card catalog unavailable: {e}")
    card_catalog = None

# --- PostHog Analytics ---
POSTHOG_API_KEY = os.environ.get("POSTHOG_API_KEY", "")
POSTHOG_HOST = os.environ.get("POSTHOG_HOST", "https://us.i.posthog.com")

posthog_client: Optional[posthog.Posthog] = None
if POSTHOG_API_KEY:
    try:
        posthog_client = posthog.Posthog(
            project_api_key=POSTHOG_API_KEY,
            host=POSTHOG_HOST,
            flush_interval=10,  # Flush every 10s
        )
    except Exception as e:
        logging.error(f"Failed to initialize PostHog client: {e}")


def get_card_resolver() -> CardResolver:
    if card_catalog is None:
        raise HTTPException(status_code=503, detail="Card database is not available.")
    return card_catalog


def get_distinct_id(request: Request) -> str:
    """Get PostHog distinct_id from cookies, headers, or a hash of the client."""
    for cookie_name, cookie_value in request.cookies.items():
        if 'posthog' in cookie_name.lower() and cookie_name.startswith(('ph_', 'phc_')) and cookie_value:
            try:
                decoded = urllib.parse.unquote(cookie_value)
                if decoded.startswith('{'):
                    data = json.loads(decoded)
                    if 'distinct_id' in data:
                        return data['distinct_id']
            except (json.JSONDecodeError, ValueError):
                pass
            return cookie_value

    ph_session_id = request.headers.get("X-PostHog-Session-ID")
    if ph_session_id:
        return ph_session_id

    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")
    return hashlib.md5(f"{client_ip}{user_agent}".encode()).hexdigest()


def capture_event(request: Request, event: str, properties: Dict):
    if not posthog_client:
        return
    try:
        posthog_client.capture(
            distinct_id=get_distinct_id(request),
            event=event,
            properties=properties,
        )
    except Exception as e:
        logging.error(f"Error sending PostHog event: {e}")


def describe_error(error: ParseError) -> Tuple[int, str]:
    """Maps a decklist parse error to an HTTP status code and a message for the user."""
    if isinstance(error, TooManyCards):
        return 400, f"Too many proxies requested. Request at most {error.limit} proxies at a time"
    if isinstance(error, InvalidCardName):
        return 400, f'Invalid card name: "{error.name}"'
    if isinstance(error, DecklistParseError):
        return 400, f'Error parsing decklist at line: "{error.line}"'
    if isinstance(error, MulticardHasMalformedNames):
        return 500, ("A split/flip/transform has more than 2 different forms. "
                     f'Are you using unhinged/unglued cards? Card: "{error.name}"')
    return 500, ("An error happened internally that wasn't handled properly. "
                 f"Tell the developer '{error.detail}'")


@app.on_event("startup")
def startup_event():
    logging.info("Checking card database...")
    if card_catalog is None:
        logging.error("No card database loaded; proxy requests will fail with 503.")
        return
    probe = card_catalog.resolve("island")
    if isinstance(probe, LOOKUP_FAILURES):
        logging.error(f"Card database check failed: {probe}")
    else:
        logging.info("Card database ready.")


@app.on_event("shutdown")
def shutdown_event():
    if card_catalog:
        card_catalog.close()
        logging.info("Database connection closed.")
    # Flush PostHog events before shutdown
    if posthog_client:
        try:
            posthog_client.shutdown()
        except Exception as e:
            logging.error(f"Error shutting down PostHog: {e}")


# --- Routes ---
@app.get("/", response_class=HTMLResponse)
@app.get("/proxygen", response_class=HTMLResponse)
def read_form(request: Request):
    """
    Serves the page with the decklist input form.
    """
    return templates.TemplateResponse(request, "index.html")


@app.get("/proxygen.css")
def read_css():
    return FileResponse(TEMPLATES_DIR / "proxygen.css", media_type="text/css")


@app.post("/proxygen", response_class=HTMLResponse)
def generate_proxies(
    request: Request,
    decklist: str = Form(""),
    resolver: CardResolver = Depends(get_card_resolver),
):
    """
    Parses a submitted decklist and returns a printable page with one
    text proxy per requested copy of each card.
    """
    start_time = time.perf_counter()
    logging.info(f"Received decklist with {len(decklist.splitlines())} lines.")

    result = parse_decklist(decklist, resolver)
    duration = (time.perf_counter() - start_time) * 1000  # in ms

    if not isinstance(result, list):
        status_code, message = describe_error(result)
        logging.info(f"Decklist rejected in {duration:.2f}ms: {result!r}")
        capture_event(request, "Decklist Rejected", {"error": type(result).__name__})
        return PlainTextResponse(message, status_code=status_code)

    total_copies = sum(entry.quantity for entry in result)
    logging.info(
        f"Decklist parsed in {duration:.2f}ms. "
        f"Entries: {len(result)}. Total proxies requested: {total_copies}."
    )
    capture_event(request, "Proxies Generated", {"entries": len(result), "total_copies": total_copies})

    return templates.TemplateResponse(request, "results.html", {"entries": result})


if __name__ == "__main__":
    # This is for local development.
    port = int(os.environ.get("PORT", 6767))
    uvicorn.run("proxygen.main:app", host="127.0.0.1", port=port, reload=True)
