"""
Loader for the published equipment spreadsheet.

The sheet is exported by Google Sheets as plain CSV ("pub?output=csv"), one
header row followed by one row per piece of equipment:

    Name,Country,Type,Model,Description

Parsing is deliberately naive: lines are split on "\\n" and fields on ",".
There is no support for quoted fields, so a value containing a comma shifts
the row's field count and the row is dropped. Rows whose field count does not
match the header are discarded without error; the number dropped is only
written to the log.

Public API:
    fetch_dataset(url, session) → str
    parse(raw_text)             → list[dict[str, str]]
"""

import logging
import os

import requests

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

SHEET_URL = os.getenv(
    "SHEET_URL",
    "https://docs.google.com/spreadsheets/d/e/"
    "2PACX-1vTra4sQ8-xdHS_3CLItreDQT9IQfvzzugCEFg0WuuWk78fn_SVdQ5geFKKWnKlIkMUvwNPJzRNAkUGU"
    "/pub?output=csv",
)

log = logging.getLogger(__name__)

SESSION = requests.Session()
SESSION.headers["User-Agent"] = "Equipment-Catalog/1.0 (research project)"

Record = dict[str, str]


class DatasetLoadError(Exception):
    """The dataset could not be downloaded."""


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def fetch_dataset(url: str = SHEET_URL, session: requests.Session | None = None) -> str:
    """GET the CSV export once and return its body as text.

    Raises DatasetLoadError on a non-2xx status or any network failure.
    """
    session = session or SESSION
    try:
        resp = session.get(url)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise DatasetLoadError(f"Error downloading the dataset: {exc}") from exc

    resp.encoding = "utf-8"
    return resp.text


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _split(line: str) -> list[str]:
    return [value.strip() for value in line.split(",")]


def parse(raw_text: str) -> list[Record]:
    """Turn CSV text into records keyed by the header row."""
    text = raw_text.strip()
    if not text:
        return []

    lines = text.split("\n")
    headers = _split(lines[0])

    records: list[Record] = []
    dropped = 0
    for line in lines[1:]:
        values = _split(line)
        if len(values) != len(headers):
            dropped += 1
            continue
        records.append(dict(zip(headers, values)))

    if dropped:
        log.info("Dropped %d row(s) whose field count did not match the header (%d).",
                 dropped, len(headers))
    return records
