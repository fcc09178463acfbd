"""
Display state and card rendering, independent of any UI toolkit.

DisplayController owns the AppState (full dataset + currently displayed view)
and turns records into CardViewModels that a View renders. Each card carries
an ImageSlot that starts as a transparent placeholder and is filled in later
by a fire-and-forget enrichment task.

Render cycles: every display() call bumps AppState.cycle and stamps the new
slots with it. In-flight tasks are never cancelled. When one finishes after a
newer display() call, its slot belongs to a dead cycle and the result is
dropped instead of written.

Public API:
    AppState
    CardViewModel / ImageSlot
    View                       (protocol implemented by the presentation layer)
    DisplayController.display(records)
    DisplayController.drain() / close()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from catalog.enrich import EnrichmentResult
from etl.sheet import Record

# 1x1 transparent gif
PLACEHOLDER_SRC = "data:image/gif;base64,R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7"
LOADING_ALT     = "Loading image…"

log = logging.getLogger(__name__)

Enricher = Callable[[str | None], Awaitable[EnrichmentResult]]


# ---------------------------------------------------------------------------
# State + view models
# ---------------------------------------------------------------------------

@dataclass
class AppState:
    dataset: list[Record] = field(default_factory=list)
    view: list[Record] = field(default_factory=list)
    cycle: int = 0

    def set_dataset(self, records: list[Record]) -> None:
        """Replace the dataset wholesale."""
        self.dataset = list(records)


@dataclass
class ImageSlot:
    cycle: int
    src: str = PLACEHOLDER_SRC
    alt: str = LOADING_ALT
    status: str = "loading"

    def apply(self, result: EnrichmentResult) -> None:
        if result.thumbnail_url:
            self.src = result.thumbnail_url
        self.alt = result.alt
        self.status = result.status.value


@dataclass
class CardViewModel:
    name: str
    country: str
    image: ImageSlot
    type: str
    model: str
    description: str

    @classmethod
    def from_record(cls, record: Record, cycle: int) -> "CardViewModel":
        return cls(
            name=record.get("Name") or "No Name",
            country=record.get("Country") or "Unknown Country",
            image=ImageSlot(cycle=cycle),
            type=record.get("Type") or "N/A",
            model=record.get("Model") or "N/A",
            description=record.get("Description") or "N/A",
        )


class View(Protocol):
    def show_loading(self) -> None: ...
    def hide_loading(self) -> None: ...
    def show_error(self, message: str) -> None: ...
    def show_no_results(self) -> None: ...
    def hide_no_results(self) -> None: ...
    def clear_cards(self) -> None: ...
    def add_card(self, card: CardViewModel) -> None: ...
    def clear_inputs(self) -> None: ...


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class DisplayController:
    def __init__(self, view: View, enricher: Enricher, state: AppState | None = None):
        self.view     = view
        self.enricher = enricher
        self.state    = state or AppState()
        self._tasks: set[asyncio.Task] = set()

    def display(self, records: list[Record]) -> list[CardViewModel]:
        """
        Render `records` as cards, replacing whatever was shown before.

        Must be called from inside a running event loop: one enrichment task
        is scheduled per card and not awaited here.
        """
        self.state.cycle += 1
        self.state.view = list(records)
        self.view.clear_cards()

        if not records:
            self.view.show_no_results()
            return []
        self.view.hide_no_results()

        cards = []
        for record in records:
            card = CardViewModel.from_record(record, self.state.cycle)
            self.view.add_card(card)
            self._schedule(record.get("Name"), card.image)
            cards.append(card)
        return cards

    def _schedule(self, name: str | None, slot: ImageSlot) -> None:
        task = asyncio.get_running_loop().create_task(self._enrich_slot(name, slot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _enrich_slot(self, name: str | None, slot: ImageSlot) -> None:
        result = await self.enricher(name)
        if slot.cycle != self.state.cycle:
            log.debug("Dropping stale image for %r (cycle %d, live %d).",
                      name, slot.cycle, self.state.cycle)
            return
        slot.apply(result)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight enrichment task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        """Cancel whatever is still in flight. Only used at shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
