"""
Streamlit frontend for the Equipment Catalog.

Talks to the FastAPI backend (app/app.py) and renders its current view as a
grid of cards. Pressing Enter in any of the three inputs submits the search
form; Reset clears the inputs and asks the backend for the first page again.
"""

import os

import requests
import streamlit as st

API_URL = os.getenv("CATALOG_API_URL", "http://localhost:8000")
FIELDS  = ("country", "type", "model")
COLUMNS = 3

st.set_page_config(page_title="Equipment Catalog", layout="wide")
st.title("Equipment Catalog")

st.markdown(
    """
Filter the equipment sheet by country, type and model or name.

1. Start backend API in another terminal: `python app/app.py`
2. Type in any of the fields and press **Enter** or click **Search**
3. Click **Reset** to clear the filters

Thumbnails come from Wikipedia and fill in as they are found.
Use **Refresh thumbnails** to pick up the ones that arrived since the last load.
"""
)


def _on_search() -> None:
    st.session_state["action"] = "search"


def _on_reset() -> None:
    for key in FIELDS:
        st.session_state[key] = ""
    st.session_state["action"] = "reset"


# Callbacks run before this script, so the backend is asked first and the
# inputs below are drawn from whatever terms it now holds.
action = st.session_state.pop("action", None)

with st.spinner("Loading…"):
    try:
        if action == "search":
            payload = {key: st.session_state.get(key, "") for key in FIELDS}
            resp = requests.post(f"{API_URL}/search", json=payload, timeout=30)
        elif action == "reset":
            resp = requests.post(f"{API_URL}/reset", timeout=30)
        else:
            resp = requests.get(f"{API_URL}/view", timeout=30)
        resp.raise_for_status()
        data = resp.json()
    except requests.exceptions.ConnectionError:
        st.error("Cannot reach the API. Start it with: python app/app.py")
        st.stop()
    except requests.exceptions.HTTPError as exc:
        st.error(f"API error: {exc}")
        st.stop()

terms = data.get("terms", {})
for key in FIELDS:
    st.session_state[key] = terms.get(key, "")

with st.form("search"):
    cols = st.columns(3)
    cols[0].text_input("Country", key="country", placeholder="e.g. USA")
    cols[1].text_input("Type", key="type", placeholder="e.g. Fighter")
    cols[2].text_input("Model or name", key="model", placeholder="e.g. F-16")
    st.form_submit_button("Search", on_click=_on_search)

left, right = st.columns([1, 1])
left.button("Reset", key="reset", on_click=_on_reset)
right.button("Refresh thumbnails")

if data.get("loading"):
    st.info("The catalog is still loading…")
elif data.get("error"):
    st.error(data["error"])
elif data.get("no_results"):
    st.warning("No results found for this search.")
else:
    cards = data.get("cards", [])
    st.caption(f"Showing {len(cards)} of {data.get('total', 0)} records")
    grid = st.columns(COLUMNS)
    for i, card in enumerate(cards):
        with grid[i % COLUMNS].container(border=True):
            st.subheader(card["name"])
            st.markdown(f"`{card['country']}`")
            image = card["image"]
            if image["status"] == "found":
                st.image(image["src"], caption=image["alt"])
            else:
                st.caption(image["alt"])
            st.markdown(f"**Type:** {card['type']}")
            st.markdown(f"**Model:** {card['model']}")
            st.markdown(f"**Description:** {card['description']}")
