"""Financial period feed: recent quarterly figures for one company.

Data flow:
  1. SECClient.get_facts_dataframe() → us-gaap USD facts from 10-Q/10-K filings
  2. _flow_by_end() / _instant_by_end() → one value per (metric, period end date),
     flows reduced to the quarter ending on that date
  3. periods = revenue end dates, newest first, truncated to ``quarters``

Any failure (network, unknown CIK, unparseable or empty facts) is logged and
answered with a deterministic synthetic dataset, so downstream risk checks
only ever see possibly-incomplete data, never a failed fetch.
"""

from __future__ import annotations

import logging
import math
import random
from datetime import date
from typing import Any, NamedTuple

import pandas as pd

from sec_risk.companies import filter_popular_companies
from sec_risk.config import get_config
from sec_risk.models import CompanyInfo, FinancialPeriod
from sec_risk.sec_client import SEARCH_LIMIT, SECClient, get_sec_client, pad_cik

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Concept map (first match wins when a period reports several)
# ═══════════════════════════════════════════════════════════════════════════

CONCEPTS: dict[str, tuple[str, ...]] = {
    "revenue": (
        "Revenues",
        "RevenueFromContractWithCustomerExcludingAssessedTax",
        "SalesRevenueNet",
    ),
    "net_income": ("NetIncomeLoss",),
    "assets": ("Assets",),
    "liabilities": ("Liabilities",),
    "equity": ("StockholdersEquity",),
    "cash": ("CashAndCashEquivalentsAtCarryingValue",),
    "operating_cash_flow": ("NetCashProvidedByUsedInOperatingActivities",),
}

PERIODIC_FORMS = ("10-Q", "10-K")

# Income and cash-flow facts come as quarterly, year-to-date and annual
# durations sharing an end date.
FLOW_METRICS = ("revenue", "net_income", "operating_cash_flow")
QUARTER_DAYS = 91
QUARTER_TOLERANCE_DAYS = 15


class FeedResult(NamedTuple):
    periods: list[FinancialPeriod]
    synthetic: bool


class SearchResult(NamedTuple):
    companies: list[CompanyInfo]
    fallback: bool


def _safe(v: Any) -> float | None:
    """Convert a value to float, returning None for invalid/missing values."""
    if v is None:
        return None
    if hasattr(v, "item"):
        v = v.item()
    try:
        f = float(v)
        if math.isnan(f) or math.isinf(f):
            return None
        return f
    except (TypeError, ValueError):
        return None


def period_label(end: date) -> str:
    """Calendar quarter label of a period end date, e.g. "Q3 2024"."""
    return f"Q{(end.month - 1) // 3 + 1} {end.year}"


# ═══════════════════════════════════════════════════════════════════════════
#  XBRL parsing
# ═══════════════════════════════════════════════════════════════════════════

def _ranked(df: pd.DataFrame, concepts: tuple[str, ...]) -> pd.DataFrame:
    """Facts for one metric, newest end first, then concept priority, then latest filing."""
    sub = df[df["concept"].isin(concepts)].copy()
    sub["rank"] = sub["concept"].map({c: i for i, c in enumerate(concepts)})
    return sub.sort_values(["end", "rank", "filed"], ascending=[False, True, False])


def _is_quarter(days: int) -> bool:
    return abs(days - QUARTER_DAYS) <= QUARTER_TOLERANCE_DAYS


def _instant_by_end(df: pd.DataFrame, concepts: tuple[str, ...]) -> dict[pd.Timestamp, float | None]:
    """Pick one value per period end date for a balance-sheet metric."""
    sub = _ranked(df, concepts).drop_duplicates(subset="end", keep="first")
    return {end: _safe(v) for end, v in zip(sub["end"], sub["value"])}


def _quarter_from_cumulative(row: Any, cumulative: dict[tuple, Any]) -> float | None:
    """Cumulative value at ``row`` minus the one with the same start a quarter earlier."""
    for (start, end), value in cumulative.items():
        if start != row.start or end >= row.end:
            continue
        if _is_quarter((row.end - end).days):
            current, prior = _safe(row.value), _safe(value)
            if current is not None and prior is not None:
                return current - prior
    return None


def _flow_by_end(df: pd.DataFrame, concepts: tuple[str, ...]) -> dict[pd.Timestamp, float | None]:
    """Quarterly value per period end date for an income or cash-flow metric.

    A fact spanning about one quarter is used as reported.  Otherwise the
    quarter is derived from two cumulative facts sharing a start date
    (6-month minus Q1, 9-month minus 6-month, annual minus 9-month).  End
    dates where neither works map to None, so a period never mixes a
    quarterly figure with a year-to-date one.
    """
    sub = _ranked(df, concepts)
    sub["start"] = pd.to_datetime(sub["start"], errors="coerce")
    sub = sub.dropna(subset=["start"]).drop_duplicates(subset=["start", "end"], keep="first")
    sub["days"] = (sub["end"] - sub["start"]).dt.days
    rows = list(sub.itertuples(index=False))
    cumulative = {(row.start, row.end): row.value for row in rows}

    values: dict[pd.Timestamp, float | None] = {}
    for row in rows:
        if _is_quarter(row.days) and values.get(row.end) is None:
            values[row.end] = _safe(row.value)
    for row in rows:
        if values.get(row.end) is None:
            values[row.end] = _quarter_from_cumulative(row, cumulative)
    return values


def parse_company_facts(facts_df: pd.DataFrame, quarters: int) -> list[FinancialPeriod]:
    """Build most-recent-first periods from a flat facts DataFrame.

    A period exists for every revenue end date; the other metrics are matched
    on the same end date and left as None when not reported.  Income and
    cash-flow figures always cover the quarter ending on that date.
    """
    if facts_df.empty:
        return []

    by_metric = {
        metric: (_flow_by_end if metric in FLOW_METRICS else _instant_by_end)(facts_df, concepts)
        for metric, concepts in CONCEPTS.items()
    }
    revenue = by_metric["revenue"]
    ends = sorted(revenue, reverse=True)[:quarters]

    periods: list[FinancialPeriod] = []
    for end in ends:
        periods.append(FinancialPeriod(
            period=period_label(end.date()),
            **{metric: values.get(end) for metric, values in by_metric.items()},
        ))
    return periods


# ═══════════════════════════════════════════════════════════════════════════
#  Synthetic fallback
# ═══════════════════════════════════════════════════════════════════════════

def _seed_for(cik: str) -> int:
    digits = "".join(ch for ch in str(cik) if ch.isdigit())
    return int(digits) if digits else 0


def generate_synthetic_financials(
    quarters: int,
    seed: int = 0,
    as_of: date | None = None,
) -> list[FinancialPeriod]:
    """Placeholder figures for ``quarters`` periods ending at ``as_of``.

    The same seed always yields the same figures.  Ratios are those of a
    large, healthy company (revenue ~$100-120B per quarter).
    """
    rng = random.Random(seed)
    as_of = as_of or date.today()

    periods: list[FinancialPeriod] = []
    for i in range(quarters):
        year, month_index = divmod(as_of.year * 12 + as_of.month - 1 - i * 3, 12)
        label = period_label(date(year, month_index + 1, 1))

        base_revenue = 100_000_000_000 + rng.random() * 20_000_000_000
        periods.append(FinancialPeriod(
            period=label,
            revenue=base_revenue,
            net_income=base_revenue * 0.2 + rng.random() * base_revenue * 0.05,
            assets=base_revenue * 3 + rng.random() * base_revenue * 0.2,
            liabilities=base_revenue * 1.5 + rng.random() * base_revenue * 0.1,
            equity=base_revenue * 1.5 + rng.random() * base_revenue * 0.1,
            cash=base_revenue * 0.3 + rng.random() * base_revenue * 0.1,
            operating_cash_flow=base_revenue * 0.25 + rng.random() * base_revenue * 0.05,
        ))
    return periods


# ═══════════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════════

def fetch_company_financials(
    cik: str,
    quarters: int | None = None,
    client: SECClient | None = None,
) -> FeedResult:
    """Fetch up to ``quarters`` periods for ``cik``, newest first.

    Falls back to synthetic figures (``synthetic=True``) unless
    ``Settings.use_synthetic_fallback`` is off, in which case errors propagate.
    """
    config = get_config()
    quarters = quarters or config.default_quarters
    client = client or get_sec_client()
    cik = pad_cik(cik)

    log.info("Fetching financials for CIK %s (%d quarters)", cik, quarters)
    try:
        all_concepts = [c for concepts in CONCEPTS.values() for c in concepts]
        facts_df = client.get_facts_dataframe(cik, concepts=all_concepts, forms=PERIODIC_FORMS)
        periods = parse_company_facts(facts_df, quarters)
        if not periods:
            raise ValueError(f"No revenue facts reported for CIK {cik}")
    except Exception as exc:
        if not config.use_synthetic_fallback:
            raise
        log.warning("Financials fetch failed for CIK %s, using synthetic data: %s", cik, exc)
        return FeedResult(generate_synthetic_financials(quarters, seed=_seed_for(cik)), True)

    log.info("Parsed %d periods for CIK %s", len(periods), cik)
    return FeedResult(periods, False)


def search_public_company(query: str, client: SECClient | None = None) -> SearchResult:
    """Search SEC filers by ticker or name.

    When EDGAR cannot be reached the built-in popular companies are filtered
    instead and ``fallback`` is set.
    """
    client = client or get_sec_client()
    try:
        return SearchResult(client.search_companies(query, limit=SEARCH_LIMIT), False)
    except Exception as exc:
        log.warning("Company search failed for '%s', using popular companies: %s", query, exc)
        return SearchResult(filter_popular_companies(query), True)
