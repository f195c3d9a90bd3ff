"""Resolve the cohort list behind the lookup page.

The page embeds its data source as ``const CSV_URL = "..."``. We pull that
URL out of the markup, download the sheet and keep the third column whenever
it holds a plain cohort number.
"""

import logging
import re

import pandas as pd
import requests

logger = logging.getLogger(__name__)

# --- Config ---
CSV_URL_RE = re.compile(r'const\s+CSV_URL\s*=\s*"([^"]+)"')
COHORT_COLUMN = 2
FETCH_TIMEOUT_S = 30


class CsvUrlNotFoundError(ValueError):
    pass


class CsvFetchError(RuntimeError):
    def __init__(self, status_code):
        super().__init__(f"Failed to fetch CSV: {status_code}")
        self.status_code = status_code


def read_page(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


def extract_csv_url(html_text):
    match = CSV_URL_RE.search(html_text)
    if not match:
        raise CsvUrlNotFoundError("CSV_URL not found in index.html")
    return match.group(1)


def fetch_csv(csv_url, session=None, timeout=FETCH_TIMEOUT_S):
    """Download the sheet, following redirects (published sheets bounce once)."""
    http = session or requests
    response = http.get(csv_url, allow_redirects=True, timeout=timeout)
    logger.info(
        "csv_fetch status=%s bytes=%s", response.status_code, len(response.content)
    )
    if not 200 <= response.status_code < 300:
        raise CsvFetchError(response.status_code)
    # Sheets exports are UTF-8 but often come without a charset.
    return response.content.decode("utf-8", errors="replace")


def parse_cohorts(csv_text):
    """
    Returns the distinct digit-only values of the third column.

    Rows are split naively on commas, so quoted fields are not honoured;
    that matches how the page itself reads the sheet. Order is first-seen.
    """
    rows = pd.Series(re.split(r"\r?\n", csv_text.strip()), dtype=object)
    cells = rows.str.split(",").str[COHORT_COLUMN].fillna("").str.strip()
    cohorts = cells[cells.str.fullmatch(r"[0-9]+")]
    return cohorts.drop_duplicates().tolist()


def fetch_cohorts(csv_url, session=None, timeout=FETCH_TIMEOUT_S):
    cohorts = parse_cohorts(fetch_csv(csv_url, session=session, timeout=timeout))
    logger.info("csv_cohorts count=%s", len(cohorts))
    return cohorts


def resolve_cohorts(html_text, session=None):
    """Shortcut used by both scripts: markup in, cohort list out."""
    return fetch_cohorts(extract_csv_url(html_text), session=session)
