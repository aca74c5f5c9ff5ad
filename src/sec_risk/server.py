"""SEC-Risk: MCP server for company financial risk checks.

Tool hierarchy
──────────────
  Discovery
    1. search_company           — ticker/name → CIK + metadata
    2. get_latest_filing        — accession number and dates of the newest 10-Q/10-K

  Financials
    3. get_financials           — recent quarterly periods, newest first

  Risk
    4. detect_company_risks     — findings that fired (liquidity, cash flow, leverage)
    5. evaluate_company_risks   — every detector's outcome, incl. insufficient data
    6. get_company_report       — company + financials + risks in one call
"""

from __future__ import annotations

from fastmcp import FastMCP

from sec_risk.feed import fetch_company_financials, search_public_company
from sec_risk.report import build_company_report
from sec_risk.risk_engine import detect_risks, evaluate_risks
from sec_risk.sec_client import get_sec_client

mcp = FastMCP(name="SEC-Risk")


@mcp.tool()
def search_company(query: str) -> dict:
    """Search for a company by ticker symbol or name.

    Returns up to 20 matching companies with 10-digit CIK, ticker and name.
    ``fallback`` is true when SEC search was unavailable and only the
    built-in list of popular companies was searched.
    """
    result = search_public_company(query)
    return {
        "results": [c.model_dump() for c in result.companies],
        "fallback": result.fallback,
    }


@mcp.tool()
def get_latest_filing(cik: str, form_type: str = "10-Q") -> dict | None:
    """Most recent filing of ``form_type`` (e.g. '10-Q', '10-K') for a company.

    Accepts a ticker or CIK.  Returns None if the company has no such filing.
    """
    filing = get_sec_client().get_latest_filing(cik, form_type=form_type)
    return filing.model_dump() if filing else None


@mcp.tool()
def get_financials(cik: str, quarters: int = 12) -> dict:
    """Get recent quarterly financials for a company (most recent first).

    ``synthetic`` is true when SEC data was unavailable and placeholder
    figures were returned instead.
    """
    feed = fetch_company_financials(cik, quarters)
    return {
        "cik": cik,
        "periods": [p.model_dump() for p in feed.periods],
        "synthetic": feed.synthetic,
    }


@mcp.tool()
def detect_company_risks(cik: str, quarters: int = 12) -> list[dict]:
    """Run the liquidity, cash-flow and operating-leverage checks for a company.

    Only detectors that found a risk are returned, in that fixed order.
    """
    periods = fetch_company_financials(cik, quarters).periods
    return [r.model_dump(mode="json") for r in detect_risks(periods)]


@mcp.tool()
def evaluate_company_risks(cik: str, quarters: int = 12) -> list[dict]:
    """Like detect_company_risks, but reports every detector.

    Status is one of 'risk', 'clear' or 'insufficient_data'.
    """
    periods = fetch_company_financials(cik, quarters).periods
    return [o.model_dump(mode="json") for o in evaluate_risks(periods)]


@mcp.tool()
def get_company_report(cik: str, quarters: int = 12) -> dict:
    """Company identity, recent financials and detected risks in one call."""
    return build_company_report(cik, quarters=quarters).model_dump(mode="json")


if __name__ == "__main__":
    import sys

    # python -m sec_risk.server --sse   for remote hosting; STDIO otherwise
    if "--sse" in sys.argv:
        mcp.run(transport="sse")
    else:
        mcp.run()
