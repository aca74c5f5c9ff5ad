"""Well-known companies used for name lookup and offline search."""

from __future__ import annotations

from sec_risk.models import CompanyInfo
from sec_risk.sec_client import pad_cik

POPULAR_COMPANIES: list[CompanyInfo] = [
    CompanyInfo(cik="0000320193", name="Apple Inc.", ticker="AAPL", exchange="NASDAQ"),
    CompanyInfo(cik="0001318605", name="Tesla Inc.", ticker="TSLA", exchange="NASDAQ"),
    CompanyInfo(cik="0000789019", name="Microsoft Corp.", ticker="MSFT", exchange="NASDAQ"),
    CompanyInfo(cik="0001018724", name="Amazon.com Inc.", ticker="AMZN", exchange="NASDAQ"),
    CompanyInfo(cik="0001652044", name="Alphabet Inc.", ticker="GOOGL", exchange="NASDAQ"),
    CompanyInfo(cik="0000051143", name="International Business Machines Corp.", ticker="IBM", exchange="NYSE"),
    CompanyInfo(cik="0001326801", name="Meta Platforms Inc.", ticker="META", exchange="NASDAQ"),
    CompanyInfo(cik="0001045810", name="NVIDIA Corp.", ticker="NVDA", exchange="NASDAQ"),
    CompanyInfo(cik="0000021344", name="Coca-Cola Co.", ticker="KO", exchange="NYSE"),
    CompanyInfo(cik="0000200406", name="Johnson & Johnson", ticker="JNJ", exchange="NYSE"),
]

_BY_CIK: dict[str, CompanyInfo] = {c.cik: c for c in POPULAR_COMPANIES}


def find_popular_company(cik: str) -> CompanyInfo | None:
    return _BY_CIK.get(pad_cik(cik))


def get_company_name(cik: str) -> str:
    company = find_popular_company(cik)
    return company.name if company else f"Company {cik}"


def get_company_ticker(cik: str) -> str:
    company = find_popular_company(cik)
    return company.ticker if company and company.ticker else "N/A"


def filter_popular_companies(query: str) -> list[CompanyInfo]:
    """Popular companies whose ticker or name contains ``query`` (any case)."""
    needle = query.strip().lower()
    return [
        c for c in POPULAR_COMPANIES
        if needle in (c.ticker or "").lower() or needle in c.name.lower()
    ]
