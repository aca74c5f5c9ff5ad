"""Pydantic models for financial periods, risk findings and company reports."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, computed_field


# ---------------------------------------------------------------------------
# Company & filing basics
# ---------------------------------------------------------------------------

class CompanyInfo(BaseModel):
    cik: str                     # 10-digit zero-padded
    name: str
    ticker: str | None = None
    exchange: str | None = None


class FilingMetadata(BaseModel):
    accession_number: str
    form_type: str
    filing_date: str
    report_date: str | None = None


# ---------------------------------------------------------------------------
# Financial period feed
# ---------------------------------------------------------------------------

class FinancialPeriod(BaseModel):
    """One reporting period's snapshot.  None means not reported."""
    period: str                  # e.g. "Q1 2024"
    revenue: float | None = None
    net_income: float | None = None
    assets: float | None = None
    liabilities: float | None = None
    equity: float | None = None
    cash: float | None = None
    operating_cash_flow: float | None = None


# ---------------------------------------------------------------------------
# Risk findings
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RiskFinding(BaseModel):
    """One detected risk condition, created fresh per evaluation."""
    id: str                      # liquidity-risk | cash-flow-discrepancy | operating-leverage
    severity: Severity
    title: str
    description: str
    metric: str
    current_value: float
    threshold: float
    evidence: list[str] = []

    model_config = {"frozen": True}

    # Older dashboard consumers read the level under this name
    @computed_field
    @property
    def risk_level(self) -> Severity:
        return self.severity


class DetectorStatus(str, Enum):
    RISK = "risk"
    CLEAR = "clear"
    INSUFFICIENT_DATA = "insufficient_data"


class DetectorOutcome(BaseModel):
    """Result of running a single detector, including the no-finding cases."""
    detector: str
    status: DetectorStatus
    finding: RiskFinding | None = None
    reason: str | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Company report
# ---------------------------------------------------------------------------

class CompanyReport(BaseModel):
    """Everything the dashboard shows for one company."""
    company: CompanyInfo
    financials: list[FinancialPeriod] = []
    risks: list[RiskFinding] = []
    synthetic: bool = False      # True when the feed served placeholder figures
