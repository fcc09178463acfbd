"""
FastAPI application — owns the catalog session and serves it to the frontend.

Run as a script:
    python app/app.py

Or as a module:
    uvicorn app.app:app --reload

On startup the Orchestrator downloads the published sheet in the background
(GET /view reports loading=true meanwhile), parses it, and displays the first
50 records. Thumbnails are looked up in the background and
appear in later GET /view responses as they resolve.

Endpoints:
    GET  /view     → current page state
    POST /search   body: {"country": "...", "type": "...", "model": "..."}
    POST /reset    → clears the three terms, shows the first 50 records
    GET  /health   → {"status": "ok", "records": <dataset size>}

Logs to stdout and logs/app.log (rotating, 5 MB max, 3 backups).
"""

import asyncio
import logging
import logging.handlers
import os
import sys
import time
from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from pydantic import BaseModel

# Ensure project root is on sys.path when running as a script (python app/app.py)
sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from catalog.display import AppState, CardViewModel, DisplayController
from catalog.enrich import enrich
from catalog.filters import SearchTerms, filter_records
from etl.sheet import SHEET_URL, fetch_dataset, parse

LOG_DIR  = Path(__file__).parent.parent / "logs"
LOG_FILE = LOG_DIR / "app.log"

def _setup_logging() -> None:
    LOG_DIR.mkdir(exist_ok=True)
    fmt = logging.Formatter("%(asctime)s  %(levelname)s  %(message)s")

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(fmt)

    # Rotate at 5 MB, keep 3 backups
    rotating = logging.handlers.RotatingFileHandler(
        LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    rotating.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(stream)
    root.addHandler(rotating)

_setup_logging()
log = logging.getLogger("api")

DISPLAY_LIMIT  = int(os.getenv("DISPLAY_LIMIT", "50"))
ENRICH_TIMEOUT = float(os.environ["ENRICH_TIMEOUT"]) if os.getenv("ENRICH_TIMEOUT") else None

LOAD_ERROR_MESSAGE = "Could not load the database. Check the URL and your connection."


# ---------------------------------------------------------------------------
# Page state exposed over HTTP
# ---------------------------------------------------------------------------

class PageView:
    """View implementation that records what a browser page would show."""

    def __init__(self):
        self.loading    = False
        self.error: str | None = None
        self.no_results = False
        self.cards: list[CardViewModel] = []
        self.terms      = SearchTerms()

    def show_loading(self) -> None:
        self.loading = True

    def hide_loading(self) -> None:
        self.loading = False

    def show_error(self, message: str) -> None:
        # Replaces the whole results area
        self.cards = []
        self.no_results = False
        self.error = message

    def show_no_results(self) -> None:
        self.no_results = True

    def hide_no_results(self) -> None:
        self.no_results = False

    def clear_cards(self) -> None:
        self.cards = []
        self.error = None

    def add_card(self, card: CardViewModel) -> None:
        self.cards.append(card)

    def clear_inputs(self) -> None:
        self.terms = SearchTerms()


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

class Orchestrator:
    def __init__(self, view, enricher, loader=fetch_dataset, url: str = SHEET_URL,
                 limit: int = DISPLAY_LIMIT):
        self.view       = view
        self.loader     = loader
        self.url        = url
        self.limit      = limit
        self.state      = AppState()
        self.controller = DisplayController(view, enricher, self.state)

    async def main(self) -> None:
        """Download, parse and show the first page of the sheet. Never raises."""
        self.view.show_loading()
        try:
            log.info("Downloading dataset from %s…", self.url)
            raw = await asyncio.to_thread(self.loader, self.url)
            records = parse(raw)
            self.state.set_dataset(records)
            log.info("  %d records loaded.", len(records))
            self.controller.display(records[:self.limit])
        except Exception:
            log.exception("Failed to load the dataset.")
            self.state.set_dataset([])
            self.view.show_error(LOAD_ERROR_MESSAGE)
        finally:
            self.view.hide_loading()

    def search(self, country: str = "", type_: str = "", model: str = "") -> list[CardViewModel]:
        t0 = time.perf_counter()
        matched = filter_records(self.state.dataset, country, type_, model)
        cards = self.controller.display(matched[:self.limit])
        elapsed = time.perf_counter() - t0
        log.info("search country=%r type=%r model=%r  hits=%d  %.3fs",
                 country, type_, model, len(matched), elapsed)
        return cards

    def reset(self) -> list[CardViewModel]:
        self.view.clear_inputs()
        log.info("reset  showing first %d of %d records",
                 min(self.limit, len(self.state.dataset)), len(self.state.dataset))
        return self.controller.display(self.state.dataset[:self.limit])


# ---------------------------------------------------------------------------
# App + lifespan
# ---------------------------------------------------------------------------

_orchestrator: Orchestrator | None = None
_view: PageView | None = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _orchestrator, _view

    _view = PageView()
    async with httpx.AsyncClient(timeout=ENRICH_TIMEOUT) as client:
        _orchestrator = Orchestrator(_view, partial(enrich, client=client), loader=fetch_dataset)
        # Serve /view with loading=True while the sheet downloads
        _view.show_loading()
        load_task = asyncio.create_task(_orchestrator.main())

        yield  # server runs here

        load_task.cancel()
        await asyncio.gather(load_task, return_exceptions=True)
        await _orchestrator.controller.close()


app = FastAPI(title="Equipment Catalog", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class SearchRequest(BaseModel):
    country: str = ""
    type: str = ""
    model: str = ""


class ImageResult(BaseModel):
    src: str
    alt: str
    status: str


class CardResult(BaseModel):
    name: str
    country: str
    image: ImageResult
    type: str
    model: str
    description: str


class ViewResponse(BaseModel):
    loading: bool
    error: str | None = None
    no_results: bool
    terms: SearchRequest
    cards: list[CardResult]
    total: int


def _snapshot() -> ViewResponse:
    assert _view is not None and _orchestrator is not None, "App not initialised"
    return ViewResponse(
        loading=_view.loading,
        error=_view.error,
        no_results=_view.no_results,
        terms=SearchRequest(
            country=_view.terms.country, type=_view.terms.type, model=_view.terms.model
        ),
        cards=[
            CardResult(
                name=c.name,
                country=c.country,
                image=ImageResult(src=c.image.src, alt=c.image.alt, status=c.image.status),
                type=c.type,
                model=c.model,
                description=c.description,
            )
            for c in _view.cards
        ],
        total=len(_orchestrator.state.dataset),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/view", response_model=ViewResponse)
async def view() -> ViewResponse:
    return _snapshot()


@app.post("/search", response_model=ViewResponse)
async def search(req: SearchRequest) -> ViewResponse:
    assert _orchestrator is not None and _view is not None, "App not initialised"
    _view.terms = SearchTerms(req.country, req.type, req.model)
    _orchestrator.search(req.country, req.type, req.model)
    return _snapshot()


@app.post("/reset", response_model=ViewResponse)
async def reset() -> ViewResponse:
    assert _orchestrator is not None, "App not initialised"
    _orchestrator.reset()
    return _snapshot()


@app.get("/health")
async def health() -> dict:
    records = len(_orchestrator.state.dataset) if _orchestrator else 0
    return {"status": "ok", "records": records}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    log.info("=== Equipment Catalog — launching server on http://0.0.0.0:8000 ===")
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)
