"""Tests for the JSON API and company report assembly."""

import pytest
import requests
from fastapi.testclient import TestClient

from sec_risk import app as app_module
from sec_risk import config as config_module
from sec_risk.config import Settings
from sec_risk.feed import SearchResult, search_public_company
from sec_risk.models import CompanyInfo, FilingMetadata, FinancialPeriod
from sec_risk.report import build_company_report, resolve_company
from sec_risk.sec_client import facts_to_dataframe


class FakeClient:
    """Serves fixed periods: latest has a thin current ratio and weak cash flow."""

    def __init__(self, company_info=None, error=None):
        self.company_info = company_info
        self.error = error

    def get_facts_dataframe(self, cik, concepts=None, forms=None):
        if self.error:
            raise self.error
        facts = {"facts": {"us-gaap": {
            "Revenues": {"units": {"USD": [
                {"end": "2024-09-30", "start": "2024-07-01", "val": 1000, "form": "10-Q"},
            ]}},
            "NetIncomeLoss": {"units": {"USD": [
                {"end": "2024-09-30", "start": "2024-07-01", "val": 100, "form": "10-Q"},
            ]}},
            "NetCashProvidedByUsedInOperatingActivities": {"units": {"USD": [
                {"end": "2024-09-30", "start": "2024-07-01", "val": 50, "form": "10-Q"},
            ]}},
            "Assets": {"units": {"USD": [{"end": "2024-09-30", "val": 1200, "form": "10-Q"}]}},
            "Liabilities": {"units": {"USD": [{"end": "2024-09-30", "val": 1000, "form": "10-Q"}]}},
        }}}
        return facts_to_dataframe(facts, concepts=concepts, forms=forms)

    def get_company_info(self, cik):
        if self.error:
            raise self.error
        return self.company_info


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    s = Settings(_env_file=None)
    monkeypatch.setattr(config_module, "_config", s)
    return s


@pytest.fixture
def api():
    return TestClient(app_module.app)


# --- Report ---


def test_report_for_popular_company():
    report = build_company_report("320193", quarters=4, client=FakeClient())
    assert report.company.name == "Apple Inc."
    assert report.company.ticker == "AAPL"
    assert report.synthetic is False
    assert [p.period for p in report.financials] == ["Q3 2024"]
    assert [r.id for r in report.risks] == ["liquidity-risk", "cash-flow-discrepancy"]


def test_report_uses_submissions_for_other_companies():
    info = CompanyInfo(cik="0000000042", name="Example Corp", ticker="EXM")
    report = build_company_report("42", client=FakeClient(company_info=info))
    assert report.company.name == "Example Corp"


def test_report_falls_back_on_fetch_failure():
    client = FakeClient(error=requests.exceptions.ConnectionError("offline"))
    report = build_company_report("42", quarters=4, client=client)
    assert report.synthetic is True
    assert len(report.financials) == 4
    assert report.company.name == "Company 0000000042"
    assert report.company.ticker == "N/A"


def test_resolve_company_popular_needs_no_client():
    assert resolve_company("0001318605", client=None).ticker == "TSLA"


# --- HTTP ---


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_search_requires_query(api):
    resp = api.get("/api/search", params={"q": "  "})
    assert resp.status_code == 400


def test_search_returns_results(api, monkeypatch):
    apple = CompanyInfo(cik="0000320193", name="Apple Inc.", ticker="AAPL")
    monkeypatch.setattr(app_module, "search_public_company", lambda q: SearchResult([apple], False))
    resp = api.get("/api/search", params={"q": " apple "})
    assert resp.status_code == 200
    body = resp.json()
    assert body["results"][0]["ticker"] == "AAPL"
    assert body["count"] == 1
    assert body["query"] == "apple"
    assert "fallback" not in body


def test_search_flags_popular_company_fallback(api, monkeypatch):
    class OfflineClient:
        def search_companies(self, query, limit=20):
            raise requests.exceptions.ConnectionError("offline")

    def search_offline(q):
        return search_public_company(q, client=OfflineClient())

    monkeypatch.setattr(app_module, "search_public_company", search_offline)
    body = api.get("/api/search", params={"q": "tesla"}).json()
    assert body["fallback"] is True
    assert body["count"] == 1
    assert body["results"][0]["ticker"] == "TSLA"


def test_company_endpoint_serializes_risks(api, monkeypatch):
    def fake_report(cik, quarters=None):
        return build_company_report(cik, quarters=quarters, client=FakeClient())

    monkeypatch.setattr(app_module, "build_company_report", fake_report)
    body = api.get("/api/company/0000320193").json()
    assert body["company"]["ticker"] == "AAPL"
    risk = body["risks"][0]
    assert risk["id"] == "liquidity-risk"
    assert risk["severity"] == "HIGH"
    assert risk["risk_level"] == "HIGH"
    assert risk["evidence"] == ["Assets: $1,200", "Liabilities: $1,000"]
    assert body["financials"][0] == FinancialPeriod(
        period="Q3 2024",
        revenue=1000,
        net_income=100,
        assets=1200,
        liabilities=1000,
        operating_cash_flow=50,
    ).model_dump()


def test_company_endpoint_error(api, monkeypatch):
    def boom(cik, quarters=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(app_module, "build_company_report", boom)
    resp = api.get("/api/company/320193")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch company data"}


class FilingClient:
    def __init__(self, filing=None, error=None):
        self.filing = filing
        self.error = error
        self.calls = []

    def get_latest_filing(self, ticker_or_cik, form_type="10-Q"):
        self.calls.append((ticker_or_cik, form_type))
        if self.error:
            raise self.error
        return self.filing


def test_latest_filing_endpoint(api, monkeypatch):
    filing = FilingMetadata(
        accession_number="0000320193-24-000123",
        form_type="10-K",
        filing_date="2024-11-01",
        report_date="2024-09-28",
    )
    client = FilingClient(filing=filing)
    monkeypatch.setattr(app_module, "get_sec_client", lambda: client)
    resp = api.get("/api/company/320193/latest-filing", params={"form_type": "10-K"})
    assert resp.status_code == 200
    assert resp.json()["accession_number"] == "0000320193-24-000123"
    assert client.calls == [("320193", "10-K")]


def test_latest_filing_defaults_to_10q(api, monkeypatch):
    client = FilingClient()
    monkeypatch.setattr(app_module, "get_sec_client", lambda: client)
    resp = api.get("/api/company/320193/latest-filing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "No 10-Q filing found"}
    assert client.calls == [("320193", "10-Q")]


def test_latest_filing_unknown_ticker(api, monkeypatch):
    client = FilingClient(error=ValueError("Unknown ticker: NOPE"))
    monkeypatch.setattr(app_module, "get_sec_client", lambda: client)
    resp = api.get("/api/company/NOPE/latest-filing")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch filing data"}
