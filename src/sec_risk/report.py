"""Company report: company identity, recent financials and detected risks."""

from __future__ import annotations

import logging

from sec_risk.companies import find_popular_company, get_company_name, get_company_ticker
from sec_risk.feed import fetch_company_financials
from sec_risk.models import CompanyInfo, CompanyReport
from sec_risk.risk_engine import detect_risks
from sec_risk.sec_client import SECClient, get_sec_client, pad_cik

log = logging.getLogger(__name__)


def resolve_company(cik: str, client: SECClient | None = None) -> CompanyInfo:
    """Company identity for a CIK.

    Popular companies resolve offline; others are looked up in SEC
    submissions, and fall back to placeholder name/ticker when unavailable.
    """
    cik = pad_cik(cik)
    popular = find_popular_company(cik)
    if popular is not None:
        return popular

    client = client or get_sec_client()
    try:
        info = client.get_company_info(cik)
    except Exception as exc:
        log.warning("Company lookup failed for CIK %s: %s", cik, exc)
        info = None
    if info is not None and info.name:
        return info
    return CompanyInfo(cik=cik, name=get_company_name(cik), ticker=get_company_ticker(cik))


def build_company_report(
    cik: str,
    quarters: int | None = None,
    client: SECClient | None = None,
) -> CompanyReport:
    """Fetch financials for ``cik`` and run the risk checks over them."""
    feed = fetch_company_financials(cik, quarters, client=client)
    log.info("Financials fetched for CIK %s: %d periods", cik, len(feed.periods))

    company = resolve_company(cik, client=client)
    risks = detect_risks(feed.periods)
    log.info("Risks detected for CIK %s: %d", cik, len(risks))

    return CompanyReport(
        company=company,
        financials=feed.periods,
        risks=risks,
        synthetic=feed.synthetic,
    )
