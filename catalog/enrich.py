"""
Wikipedia thumbnail lookup for a card.

Two dependent calls against the MediaWiki action API:
  1. list=search&srlimit=1&srsearch=<name>     → canonical page title
  2. titles=<title>&prop=pageimages&pithumbsize → thumbnail.source

Every call resolves to exactly one EnrichmentResult. Nothing is raised to the
caller: HTTP errors, network errors, bad JSON and unexpected response shapes
all end in EnrichmentStatus.ERROR and a warning in the log. A missing page or
a page without an image is a normal outcome, not an error.

Public API:
    enrich(name, client) → EnrichmentResult   (coroutine)
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum

import httpx

WIKI_API       = os.getenv("WIKI_API", "https://en.wikipedia.org/w/api.php")
THUMBNAIL_SIZE = int(os.getenv("THUMBNAIL_SIZE", "300"))

BASE_PARAMS = {"origin": "*", "action": "query", "format": "json"}

log = logging.getLogger(__name__)


class EnrichmentStatus(str, Enum):
    NO_TERM  = "no_term"
    NO_PAGE  = "no_page"
    NO_IMAGE = "no_image"
    FOUND    = "found"
    ERROR    = "error"


@dataclass(frozen=True)
class EnrichmentResult:
    status: EnrichmentStatus
    alt: str
    thumbnail_url: str | None = None


async def _get_json(client: httpx.AsyncClient, params: dict) -> dict:
    resp = await client.get(WIKI_API, params={**BASE_PARAMS, **params})
    resp.raise_for_status()
    return resp.json()


async def enrich(name: str | None, client: httpx.AsyncClient) -> EnrichmentResult:
    """Resolve a thumbnail for `name`; never raises."""
    if not name:
        return EnrichmentResult(EnrichmentStatus.NO_TERM, "No search term provided")

    try:
        search = await _get_json(client, {"list": "search", "srlimit": 1, "srsearch": name})
        hits = search["query"]["search"]
        if not isinstance(hits, list):
            raise TypeError(f"unexpected search results: {hits!r}")
        if not hits:
            return EnrichmentResult(EnrichmentStatus.NO_PAGE, f'No page found for "{name}"')
        title = hits[0]["title"]

        images = await _get_json(
            client,
            {"titles": title, "prop": "pageimages", "pithumbsize": THUMBNAIL_SIZE},
        )
        page = next(iter(images["query"]["pages"].values()))
        source = (page.get("thumbnail") or {}).get("source")
        if not source:
            return EnrichmentResult(EnrichmentStatus.NO_IMAGE, f'No image found for "{title}"')
        if not isinstance(source, str):
            raise TypeError(f"unexpected thumbnail source: {source!r}")

        return EnrichmentResult(EnrichmentStatus.FOUND, f"Image of {title}", source)

    except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError, StopIteration) as exc:
        log.warning("Error fetching Wikipedia image for %r: %s", name, exc)
        return EnrichmentResult(EnrichmentStatus.ERROR, "Error loading image")
