"""Direct SEC EDGAR API client.

Uses only public SEC endpoints (no API key needed, just User-Agent header):
  - company_tickers.json  — ticker→CIK resolution and company search
  - submissions/CIK{cik}.json  — company info + filing list
  - api/xbrl/companyfacts/CIK{cik}.json  — ALL XBRL facts for a company

Rate limited to 8 req/sec per SEC guidelines.
In-memory caching for frequently-accessed data (tickers list, company facts).
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterable

import pandas as pd
import requests

from sec_risk.models import CompanyInfo, FilingMetadata

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Constants
# ═══════════════════════════════════════════════════════════════════════════

SEC_BASE = "https://www.sec.gov"
DATA_BASE = "https://data.sec.gov"
TICKERS_URL = f"{SEC_BASE}/files/company_tickers.json"
SUBMISSIONS_URL = f"{DATA_BASE}/submissions/CIK{{cik}}.json"
COMPANY_FACTS_URL = f"{DATA_BASE}/api/xbrl/companyfacts/CIK{{cik}}.json"

# SEC requires a descriptive User-Agent with contact email
DEFAULT_USER_AGENT = "SEC-Risk sec-risk@example.com"

# Rate limiting: SEC allows up to 10 req/s; we use 8 to stay safe
MAX_REQUESTS_PER_SECOND = 8.0
MIN_REQUEST_INTERVAL = 1.0 / MAX_REQUESTS_PER_SECOND

# Cache TTLs (seconds)
TICKERS_CACHE_TTL = 1800    # 30 minutes for ticker→CIK mapping
FACTS_CACHE_TTL = 300       # 5 minutes for XBRL company facts
SUBMISSIONS_CACHE_TTL = 120  # 2 minutes for submissions/filings list

SEARCH_LIMIT = 20


def pad_cik(cik: str | int) -> str:
    """Normalize a CIK to the 10-digit zero-padded form SEC URLs use."""
    clean = str(cik).strip().upper()
    if clean.startswith("CIK"):
        clean = clean[3:]
    return clean.zfill(10)


# ═══════════════════════════════════════════════════════════════════════════
#  Cache helper
# ═══════════════════════════════════════════════════════════════════════════

class _CacheEntry:
    """Simple timestamped cache entry."""
    __slots__ = ("data", "timestamp")

    def __init__(self, data: Any):
        self.data = data
        self.timestamp = time.time()

    def expired(self, ttl: float) -> bool:
        return (time.time() - self.timestamp) > ttl


# ═══════════════════════════════════════════════════════════════════════════
#  SEC EDGAR Client
# ═══════════════════════════════════════════════════════════════════════════

class SECClient:
    """Direct HTTP client for SEC EDGAR public APIs.

    Thread-safe with rate limiting and in-memory caching.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: int = 30):
        self.user_agent = user_agent
        self.timeout = timeout
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }
        # Rate limiter state
        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()
        # Caches
        self._tickers_cache: _CacheEntry | None = None
        self._facts_cache: dict[str, _CacheEntry] = {}
        self._submissions_cache: dict[str, _CacheEntry] = {}

    # ── Rate-limited HTTP request ─────────────────────────────────────

    def _request(self, url: str, timeout: int | None = None, retries: int = 2) -> requests.Response:
        """Make a GET request with rate limiting and automatic retry.

        Enforces MIN_REQUEST_INTERVAL between calls to stay within
        SEC's 10 req/s limit. Thread-safe via lock.
        Retries on 429 (rate-limit), 500/502/503/504 (server errors),
        and connection errors.
        """
        timeout = timeout or self.timeout
        last_exc: Exception | None = None
        for attempt in range(1 + retries):
            with self._rate_lock:
                elapsed = time.time() - self._last_request_time
                if elapsed < MIN_REQUEST_INTERVAL:
                    time.sleep(MIN_REQUEST_INTERVAL - elapsed)
                self._last_request_time = time.time()

            try:
                resp = requests.get(url, headers=self.headers, timeout=timeout)
                if resp.status_code == 429 and attempt < retries:
                    wait = min(2 ** attempt, 10)
                    log.warning("SEC rate-limited (429), retrying in %ds…", wait)
                    time.sleep(wait)
                    continue
                if resp.status_code in (500, 502, 503, 504) and attempt < retries:
                    wait = min(2 ** attempt, 8)
                    log.warning("SEC %d error, retrying in %ds…", resp.status_code, wait)
                    time.sleep(wait)
                    continue
                resp.raise_for_status()
                return resp
            except requests.exceptions.ConnectionError as exc:
                last_exc = exc
                if attempt < retries:
                    wait = min(2 ** attempt, 8)
                    log.warning("Connection error, retrying in %ds: %s", wait, exc)
                    time.sleep(wait)
                    continue
                raise
            except requests.exceptions.Timeout as exc:
                last_exc = exc
                if attempt < retries:
                    log.warning("Request timeout, retrying: %s", exc)
                    continue
                raise

        if last_exc:
            raise last_exc
        raise requests.exceptions.ConnectionError(f"Failed after {retries + 1} attempts: {url}")

    def _request_json(self, url: str, timeout: int | None = None) -> dict:
        """GET request that returns parsed JSON."""
        return self._request(url, timeout=timeout).json()

    # ── Ticker → CIK resolution ──────────────────────────────────────

    def _get_tickers_map(self) -> dict[str, dict]:
        """Load and cache SEC company tickers.

        Returns a dict keyed by uppercase ticker → {cik_str, ticker, title}.
        Also includes entries keyed by "CIK:<int>" for reverse lookup.
        Network errors propagate so callers can fall back.
        """
        if self._tickers_cache and not self._tickers_cache.expired(TICKERS_CACHE_TTL):
            return self._tickers_cache.data

        log.info("Fetching SEC company_tickers.json (cached for %ds)", TICKERS_CACHE_TTL)
        raw = self._request_json(TICKERS_URL)

        by_ticker: dict[str, dict] = {}
        by_cik: dict[str, dict] = {}
        # Format: {"0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."}, ...}
        for entry in raw.values():
            ticker = str(entry.get("ticker", "")).upper()
            cik = str(entry.get("cik_str", ""))
            record = {
                "cik_str": cik,
                "ticker": ticker,
                "title": entry.get("title", ""),
            }
            if ticker:
                by_ticker[ticker] = record
            if cik and cik not in by_cik:
                by_cik[cik] = record

        log.info("Loaded %d tickers from company_tickers.json", len(by_ticker))
        merged = {**by_ticker, **{f"CIK:{k}": v for k, v in by_cik.items()}}
        self._tickers_cache = _CacheEntry(merged)
        return merged

    def resolve_cik(self, ticker_or_cik: str) -> str:
        """Resolve a ticker symbol or CIK number to a zero-padded CIK string.

        Accepts: "AAPL", "320193", "0000320193", "CIK0000320193"
        Returns: "0000320193" (10-digit zero-padded)
        """
        clean = ticker_or_cik.strip().upper()
        if clean.startswith("CIK"):
            clean = clean[3:]

        if clean.isdigit():
            return clean.zfill(10)

        entry = self._get_tickers_map().get(clean)
        if entry:
            return pad_cik(entry["cik_str"])

        raise ValueError(
            f"Could not resolve '{ticker_or_cik}' to a CIK number. "
            f"Try using a ticker symbol (e.g., AAPL) or CIK number."
        )

    # ── Company search ────────────────────────────────────────────────

    def search_companies(self, query: str, limit: int = SEARCH_LIMIT) -> list[CompanyInfo]:
        """Search for companies by ticker or name (case-insensitive substring).

        An exact ticker match is returned first, then the remaining matches
        in tickers-file order.
        """
        tickers_map = self._get_tickers_map()
        query_upper = query.strip().upper()
        results: list[CompanyInfo] = []
        seen_ciks: set[str] = set()

        def _info(entry: dict) -> CompanyInfo:
            return CompanyInfo(
                cik=pad_cik(entry["cik_str"]),
                name=entry["title"],
                ticker=entry["ticker"],
                exchange="US Market",
            )

        exact = tickers_map.get(query_upper)
        if exact:
            results.append(_info(exact))
            seen_ciks.add(exact["cik_str"])

        for key, entry in tickers_map.items():
            if len(results) >= limit:
                break
            if key.startswith("CIK:") or entry["cik_str"] in seen_ciks:
                continue
            if query_upper in entry["ticker"].upper() or query_upper in entry["title"].upper():
                results.append(_info(entry))
                seen_ciks.add(entry["cik_str"])

        log.info("Search '%s' matched %d companies", query, len(results))
        return results

    # ── Company info ──────────────────────────────────────────────────

    def _get_submissions(self, cik: str) -> dict:
        """Fetch and cache the submissions JSON for a company.

        The submissions endpoint returns company metadata + all recent filings.
        Returns empty dict on any network/HTTP error instead of crashing.
        """
        cik_padded = pad_cik(cik)

        cached = self._submissions_cache.get(cik_padded)
        if cached and not cached.expired(SUBMISSIONS_CACHE_TTL):
            return cached.data

        url = SUBMISSIONS_URL.format(cik=cik_padded)
        try:
            data = self._request_json(url)
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else 0
            log.warning("Submissions fetch failed for CIK %s (HTTP %d)", cik_padded, status)
            return {}
        except requests.exceptions.RequestException as exc:
            log.warning("Submissions fetch failed for CIK %s: %s", cik_padded, exc)
            return {}

        self._submissions_cache[cik_padded] = _CacheEntry(data)
        return data

    def get_company_info(self, ticker_or_cik: str) -> CompanyInfo | None:
        """Get company metadata (name, CIK, ticker, exchange) from submissions."""
        cik = self.resolve_cik(ticker_or_cik)
        data = self._get_submissions(cik)
        if not data:
            return None

        tickers_list = data.get("tickers") or []
        exchanges = data.get("exchanges") or []
        return CompanyInfo(
            cik=cik,
            name=data.get("name", ""),
            ticker=tickers_list[0] if tickers_list else None,
            exchange=exchanges[0] if exchanges else None,
        )

    def get_latest_filing(self, ticker_or_cik: str, form_type: str = "10-Q") -> FilingMetadata | None:
        """Most recent filing of ``form_type``, or None if the company has none."""
        cik = self.resolve_cik(ticker_or_cik)
        recent = self._get_submissions(cik).get("filings", {}).get("recent", {})
        forms = recent.get("form", [])
        if form_type not in forms:
            return None

        # Submissions lists filings newest first
        i = forms.index(form_type)

        def _col(name: str) -> str | None:
            values = recent.get(name, [])
            return values[i] if i < len(values) else None

        return FilingMetadata(
            accession_number=_col("accessionNumber") or "",
            form_type=form_type,
            filing_date=_col("filingDate") or "",
            report_date=_col("reportDate"),
        )

    # ── XBRL Company Facts ───────────────────────────────────────────

    def get_company_facts(self, ticker_or_cik: str) -> dict:
        """Fetch ALL XBRL facts for a company.

        Structure: {
            "cik": 320193,
            "entityName": "Apple Inc",
            "facts": {
                "us-gaap": {
                    "Revenues": {
                        "label": "Revenues",
                        "units": {
                            "USD": [
                                {"start": "2023-10-01", "end": "2024-09-28",
                                 "filed": "2024-11-01", "form": "10-K",
                                 "accn": "0000320193-24-000123", "val": 391035000000, ...},
                                ...
                            ]
                        }
                    },
                    ...
                }
            }
        }

        HTTP and network errors propagate; the caller decides the fallback.
        """
        cik_padded = self.resolve_cik(ticker_or_cik)

        cached = self._facts_cache.get(cik_padded)
        if cached and not cached.expired(FACTS_CACHE_TTL):
            return cached.data

        url = COMPANY_FACTS_URL.format(cik=cik_padded)
        log.info("Fetching XBRL companyfacts for CIK %s", cik_padded)
        data = self._request_json(url, timeout=max(self.timeout, 60))

        self._facts_cache[cik_padded] = _CacheEntry(data)
        return data

    def get_facts_dataframe(
        self,
        ticker_or_cik: str,
        concepts: Iterable[str] | None = None,
        forms: Iterable[str] | None = None,
        taxonomy: str = "us-gaap",
        unit: str = "USD",
    ) -> pd.DataFrame:
        """Convert XBRL company facts into a flat DataFrame.

        Each row is one fact (one concept, one period, one value).
        Columns: concept, value, start, end, filed, form, accn, fy, fp
        """
        return facts_to_dataframe(
            self.get_company_facts(ticker_or_cik),
            concepts=concepts,
            forms=forms,
            taxonomy=taxonomy,
            unit=unit,
        )


def facts_to_dataframe(
    facts_data: dict,
    concepts: Iterable[str] | None = None,
    forms: Iterable[str] | None = None,
    taxonomy: str = "us-gaap",
    unit: str = "USD",
) -> pd.DataFrame:
    """Flatten a companyfacts payload into one row per fact, newest end first."""
    taxonomy_data = facts_data.get("facts", {}).get(taxonomy, {})
    wanted = set(concepts) if concepts is not None else None
    form_filter = set(forms) if forms is not None else None

    rows: list[dict] = []
    for concept_name, concept_data in taxonomy_data.items():
        if wanted is not None and concept_name not in wanted:
            continue
        for fact in concept_data.get("units", {}).get(unit, []):
            if form_filter is not None and fact.get("form") not in form_filter:
                continue
            rows.append({
                "concept": concept_name,
                "value": fact.get("val") if "val" in fact else fact.get("value"),
                "start": fact.get("start"),
                "end": fact.get("end"),
                "filed": fact.get("filed"),
                "form": fact.get("form"),
                "accn": fact.get("accn"),
                "fy": fact.get("fy"),
                "fp": fact.get("fp"),
            })

    columns = ["concept", "value", "start", "end", "filed", "form", "accn", "fy", "fp"]
    df = pd.DataFrame(rows, columns=columns)
    if not df.empty:
        df["end"] = pd.to_datetime(df["end"], errors="coerce")
        df["filed"] = pd.to_datetime(df["filed"], errors="coerce")
        df = df.dropna(subset=["end"]).sort_values("end", ascending=False)
    return df


# ═══════════════════════════════════════════════════════════════════════════
#  Module-level singleton — shared across the app
# ═══════════════════════════════════════════════════════════════════════════

_client: SECClient | None = None


def get_sec_client() -> SECClient:
    """Get or create the shared SECClient singleton.

    Reads EDGAR_IDENTITY from config for the User-Agent header.
    """
    global _client
    if _client is None:
        from sec_risk.config import get_config
        config = get_config()
        _client = SECClient(user_agent=config.edgar_identity, timeout=config.request_timeout)
    return _client
