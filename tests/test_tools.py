"""Integration tests against live SEC EDGAR endpoints."""

import pytest


@pytest.mark.integration
def test_search_company_live():
    from sec_risk.feed import search_public_company
    result = search_public_company("AAPL")
    assert result.fallback is False
    assert result.companies[0].cik == "0000320193"


@pytest.mark.integration
def test_latest_filing_live():
    from sec_risk.sec_client import get_sec_client
    filing = get_sec_client().get_latest_filing("AAPL", form_type="10-K")
    assert filing is not None
    assert filing.accession_number.startswith("0000320193-")


@pytest.mark.integration
def test_financials_live():
    from sec_risk.feed import fetch_company_financials
    result = fetch_company_financials("320193", quarters=8)
    assert not result.synthetic
    assert 1 <= len(result.periods) <= 8
    assert result.periods[0].revenue is not None


@pytest.mark.integration
def test_company_report_live():
    from sec_risk.report import build_company_report
    report = build_company_report("0000789019", quarters=8)
    assert report.company.ticker == "MSFT"
    assert all(r.id in ("liquidity-risk", "cash-flow-discrepancy", "operating-leverage") for r in report.risks)
