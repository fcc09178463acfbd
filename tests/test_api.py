import asyncio
import threading
import time

import pytest
from fastapi.testclient import TestClient

import app.app as app_module
from app.app import LOAD_ERROR_MESSAGE, Orchestrator, PageView, app
from catalog.enrich import EnrichmentResult, EnrichmentStatus
from etl.sheet import DatasetLoadError


def _sheet(rows: int) -> str:
    lines = ["Name,Country,Type,Model,Description"]
    for i in range(rows):
        country = "USA" if i % 2 == 0 else "Russia"
        lines.append(f"Jet {i},{country},Fighter,M{i},Aircraft number {i}")
    return "\n".join(lines)


async def fake_enrich(name, client=None):
    return EnrichmentResult(EnrichmentStatus.FOUND, f"Image of {name}", f"https://img.test/{name}.jpg")


def failing_loader(url):
    raise DatasetLoadError("Error downloading the dataset: 503 Server Error")


def _wait_until(client, predicate, timeout=5.0):
    """Poll GET /view until predicate(data) holds; return the last snapshot."""
    deadline = time.monotonic() + timeout
    data = client.get("/view").json()
    while not predicate(data) and time.monotonic() < deadline:
        time.sleep(0.01)
        data = client.get("/view").json()
    return data


def _loaded(data):
    return not data["loading"]


@pytest.fixture
def client(monkeypatch):
    """FastAPI test client backed by a 60-row fake sheet."""
    monkeypatch.setattr(app_module, "fetch_dataset", lambda url: _sheet(60))
    monkeypatch.setattr(app_module, "enrich", fake_enrich)
    with TestClient(app) as c:
        _wait_until(c, _loaded)
        yield c


@pytest.fixture
def broken_client(monkeypatch):
    """FastAPI test client whose dataset download fails."""
    monkeypatch.setattr(app_module, "fetch_dataset", failing_loader)
    monkeypatch.setattr(app_module, "enrich", fake_enrich)
    with TestClient(app) as c:
        _wait_until(c, _loaded)
        yield c


class TestOrchestrator:
    """Test the load / search / reset flow without HTTP."""

    def test_main_displays_first_page(self):
        """Test that startup shows the first 50 records and hides loading."""
        view = PageView()

        async def go():
            orch = Orchestrator(view, fake_enrich, loader=lambda url: _sheet(60))
            await orch.main()
            await orch.controller.drain()
            return orch

        orch = asyncio.run(go())
        assert len(orch.state.dataset) == 60
        assert len(view.cards) == 50
        assert view.cards[0].name == "Jet 0"
        assert view.loading is False
        assert view.error is None

    def test_main_load_failure(self):
        """Test that a failed download shows one error and leaves the dataset empty."""
        view = PageView()

        async def go():
            orch = Orchestrator(view, fake_enrich, loader=failing_loader)
            await orch.main()
            return orch

        orch = asyncio.run(go())
        assert orch.state.dataset == []
        assert view.error == LOAD_ERROR_MESSAGE
        assert view.cards == []
        assert view.loading is False

    def test_search_and_reset_after_failure(self):
        """Test that search/reset over an empty dataset do not raise."""
        view = PageView()

        async def go():
            orch = Orchestrator(view, fake_enrich, loader=failing_loader)
            await orch.main()
            orch.search("usa", "", "")
            orch.reset()

        asyncio.run(go())
        assert view.cards == []
        assert view.no_results is True

    def test_loading_shown_during_fetch(self):
        """Test that the loading flag is up while the sheet downloads."""
        view = PageView()
        seen = []

        def loader(url):
            seen.append(view.loading)
            return _sheet(1)

        async def go():
            await Orchestrator(view, fake_enrich, loader=loader).main()

        asyncio.run(go())
        assert seen == [True]
        assert view.loading is False

    def test_reset_restores_first_page(self):
        """Test that reset clears the terms and shows the first 50 unfiltered."""
        view = PageView()

        async def go():
            orch = Orchestrator(view, fake_enrich, loader=lambda url: _sheet(60))
            await orch.main()
            orch.search("russia", "", "jet 1")
            filtered = [c.name for c in view.cards]
            orch.reset()
            await orch.controller.drain()
            return filtered

        filtered = asyncio.run(go())
        assert all(name.startswith("Jet 1") for name in filtered)
        assert len(view.cards) == 50
        assert view.cards[0].name == "Jet 0"
        assert view.terms.country == view.terms.type == view.terms.model == ""


class TestViewEndpoint:
    """Test GET /view."""

    def test_initial_view(self, client):
        """Test that the first page is served after startup."""
        data = client.get("/view").json()
        assert data["loading"] is False
        assert data["error"] is None
        assert data["total"] == 60
        assert len(data["cards"]) == 50

    def test_card_fields(self, client):
        """Test the card schema and its field order."""
        card = client.get("/view").json()["cards"][0]
        assert list(card) == ["name", "country", "image", "type", "model", "description"]
        assert card["country"] == "USA"
        assert set(card["image"]) == {"src", "alt", "status"}

    def test_thumbnails_arrive(self, client):
        """Test that enrichment results show up in a later snapshot."""
        data = _wait_until(client, lambda d: d["cards"][0]["image"]["status"] == "found")
        card = data["cards"][0]
        assert card["image"]["status"] == "found"
        assert card["image"]["src"] == "https://img.test/Jet 0.jpg"

    def test_loading_reported_while_sheet_downloads(self, monkeypatch):
        """Test that the server answers with loading=true before the sheet arrives."""
        release = threading.Event()

        def slow_loader(url):
            release.wait(5)
            return _sheet(3)

        monkeypatch.setattr(app_module, "fetch_dataset", slow_loader)
        monkeypatch.setattr(app_module, "enrich", fake_enrich)
        with TestClient(app) as c:
            data = c.get("/view").json()
            assert data["loading"] is True
            assert data["cards"] == []

            release.set()
            data = _wait_until(c, _loaded)
            assert data["loading"] is False
            assert [card["name"] for card in data["cards"]] == ["Jet 0", "Jet 1", "Jet 2"]

    def test_health(self, client):
        """Test the health endpoint reports the dataset size."""
        assert client.get("/health").json() == {"status": "ok", "records": 60}


class TestSearchEndpoint:
    """Test POST /search and POST /reset."""

    def test_search_by_country(self, client):
        """Test that the country term filters the cards."""
        data = client.post("/search", json={"country": "russia"}).json()
        assert len(data["cards"]) == 30
        assert all(c["country"] == "Russia" for c in data["cards"])
        assert data["terms"]["country"] == "russia"

    def test_search_by_model_or_name(self, client):
        """Test that the model term matches names too."""
        data = client.post("/search", json={"model": "jet 59"}).json()
        assert [c["name"] for c in data["cards"]] == ["Jet 59"]

    def test_search_no_results(self, client):
        """Test that an unmatched search flags no_results."""
        data = client.post("/search", json={"country": "atlantis"}).json()
        assert data["no_results"] is True
        assert data["cards"] == []

    def test_search_result_capped(self, client):
        """Test that a broad search still shows at most 50 cards."""
        data = client.post("/search", json={}).json()
        assert len(data["cards"]) == 50

    def test_search_rejects_bad_body(self, client):
        """Test that a non-string term is a validation error."""
        response = client.post("/search", json={"country": ["usa"]})
        assert response.status_code == 422

    def test_reset(self, client):
        """Test that reset after a search restores the first page and clears terms."""
        client.post("/search", json={"country": "russia", "type": "fighter", "model": "m1"})
        data = client.post("/reset").json()
        assert data["terms"] == {"country": "", "type": "", "model": ""}
        assert len(data["cards"]) == 50
        assert data["cards"][0]["name"] == "Jet 0"
        assert data["no_results"] is False


class TestLoadFailure:
    """Test the API when the sheet cannot be downloaded."""

    def test_error_surfaced(self, broken_client):
        """Test that the view carries the single load error."""
        data = broken_client.get("/view").json()
        assert data["error"] == LOAD_ERROR_MESSAGE
        assert data["cards"] == []
        assert data["total"] == 0
        assert data["loading"] is False

    def test_search_and_reset_still_work(self, broken_client):
        """Test that search/reset over the empty dataset respond normally."""
        assert broken_client.post("/search", json={"country": "usa"}).status_code == 200
        data = broken_client.post("/reset").json()
        assert data["cards"] == []
        assert data["no_results"] is True
