"""Threshold-based risk detection over a company's recent financial periods.

Three independent detectors, always reported in this order:
  1. Liquidity          — current ratio (assets / liabilities) below 1.5
  2. Cash-flow quality  — operating cash flow differs from net income by > 20%
  3. Operating leverage — income change / revenue change beyond ±3.0x

Periods are ordered most-recent-first; index 0 is the latest period and the
leverage detector compares it with ``periods[comparison_offset]`` (default 3,
four periods back).  The order is trusted as given and never re-sorted.

Nothing here raises on missing data: a detector that cannot evaluate simply
produces no finding.  ``evaluate_risks`` reports why (clear vs. insufficient
data) for callers that need the distinction.

Absent figures are ``None``, and NaN or infinite figures count as absent
too.  With ``zero_as_missing=True`` a zero figure is also treated as
absent, matching the zero-skipping behaviour of earlier releases.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Sequence

from sec_risk.config import get_config
from sec_risk.models import (
    DetectorOutcome,
    DetectorStatus,
    FinancialPeriod,
    RiskFinding,
    Severity,
)

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Thresholds
# ═══════════════════════════════════════════════════════════════════════════

LIQUIDITY_ID = "liquidity-risk"
CASH_FLOW_ID = "cash-flow-discrepancy"
LEVERAGE_ID = "operating-leverage"

CURRENT_RATIO_THRESHOLD = 1.5
CASH_FLOW_DISCREPANCY_THRESHOLD = 20.0   # percent
OPERATING_LEVERAGE_THRESHOLD = 3.0

# Positional stand-in for "same period last year" on quarterly data
COMPARISON_OFFSET = 3


# ═══════════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════════

def format_currency(v: float) -> str:
    """Format an amount as ``$`` + grouped digits, e.g. ``$1,234,567.5``.

    Up to three fraction digits are kept and trailing zeros dropped.
    """
    text = f"{v:,.3f}".rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return f"${text}"


def _present(v: float | None, zero_as_missing: bool) -> bool:
    if v is None or math.isnan(v) or math.isinf(v):
        return False
    if zero_as_missing and v == 0:
        return False
    return True


def _insufficient(detector: str, reason: str) -> DetectorOutcome:
    return DetectorOutcome(
        detector=detector,
        status=DetectorStatus.INSUFFICIENT_DATA,
        reason=reason,
    )


def _clear(detector: str, reason: str | None = None) -> DetectorOutcome:
    return DetectorOutcome(detector=detector, status=DetectorStatus.CLEAR, reason=reason)


def _risk(finding: RiskFinding) -> DetectorOutcome:
    return DetectorOutcome(detector=finding.id, status=DetectorStatus.RISK, finding=finding)


# ═══════════════════════════════════════════════════════════════════════════
#  Detectors
# ═══════════════════════════════════════════════════════════════════════════

def check_liquidity(
    periods: Sequence[FinancialPeriod],
    zero_as_missing: bool = False,
) -> DetectorOutcome:
    """Current ratio of the latest period against CURRENT_RATIO_THRESHOLD."""
    latest = periods[0] if periods else None
    if latest is None:
        return _insufficient(LIQUIDITY_ID, "no periods")
    if not _present(latest.assets, zero_as_missing) or not _present(latest.liabilities, zero_as_missing):
        return _insufficient(LIQUIDITY_ID, "assets or liabilities not reported")

    assets = latest.assets
    liabilities = latest.liabilities
    if liabilities == 0:
        # No liabilities: ratio is unbounded, which is the opposite of a risk
        return _clear(LIQUIDITY_ID, "no liabilities reported against assets")

    current_ratio = assets / liabilities
    threshold = CURRENT_RATIO_THRESHOLD
    if not current_ratio < threshold:
        return _clear(LIQUIDITY_ID)

    return _risk(RiskFinding(
        id=LIQUIDITY_ID,
        severity=Severity.HIGH,
        title="Liquidity Risk",
        description=f"Current ratio ({current_ratio:.2f}) below threshold {threshold}",
        metric="Current Ratio",
        current_value=current_ratio,
        threshold=threshold,
        evidence=[
            f"Assets: {format_currency(assets)}",
            f"Liabilities: {format_currency(liabilities)}",
        ],
    ))


def check_cash_flow_discrepancy(
    periods: Sequence[FinancialPeriod],
    zero_as_missing: bool = False,
) -> DetectorOutcome:
    """Gap between operating cash flow and net income, as % of net income."""
    latest = periods[0] if periods else None
    if latest is None:
        return _insufficient(CASH_FLOW_ID, "no periods")
    if (not _present(latest.net_income, zero_as_missing)
            or not _present(latest.operating_cash_flow, zero_as_missing)):
        return _insufficient(CASH_FLOW_ID, "net income or operating cash flow not reported")

    net_income = latest.net_income
    ocf = latest.operating_cash_flow
    if net_income == 0:
        return _insufficient(CASH_FLOW_ID, "net income is zero; percentage undefined")

    discrepancy = abs(net_income - ocf)
    discrepancy_pct = discrepancy / abs(net_income) * 100
    threshold = CASH_FLOW_DISCREPANCY_THRESHOLD
    if not discrepancy_pct > threshold:
        return _clear(CASH_FLOW_ID)

    return _risk(RiskFinding(
        id=CASH_FLOW_ID,
        severity=Severity.MEDIUM,
        title="Cash Flow Discrepancy",
        description=f"Operating cash flow differs from net income by {discrepancy_pct:.1f}%",
        metric="Cash Flow vs Net Income",
        current_value=discrepancy_pct,
        threshold=threshold,
        evidence=[
            f"Net Income: {format_currency(net_income)}",
            f"Operating Cash Flow: {format_currency(ocf)}",
        ],
    ))


def check_operating_leverage(
    periods: Sequence[FinancialPeriod],
    zero_as_missing: bool = False,
    comparison_offset: int = COMPARISON_OFFSET,
) -> DetectorOutcome:
    """Income sensitivity to revenue between the latest and a prior period.

    Leverage is reported as 0 when revenue did not change at all, even if
    income moved.  That understates the risk and is a known limitation.
    """
    if len(periods) <= comparison_offset:
        return _insufficient(LEVERAGE_ID, f"needs more than {comparison_offset} periods")

    latest = periods[0]
    prior = periods[comparison_offset]

    values = (latest.revenue, prior.revenue, latest.net_income, prior.net_income)
    if zero_as_missing:
        # Legacy behaviour: anything unreported counts as zero
        new_revenue, old_revenue, new_income, old_income = (
            v if _present(v, False) else 0 for v in values
        )
    elif not all(_present(v, False) for v in values):
        return _insufficient(LEVERAGE_ID, "revenue or net income not reported")
    else:
        new_revenue, old_revenue, new_income, old_income = values

    if old_revenue == 0 or old_income == 0:
        return _insufficient(LEVERAGE_ID, "prior revenue or net income is zero")

    revenue_change = (new_revenue - old_revenue) / old_revenue * 100
    income_change = (new_income - old_income) / old_income * 100
    leverage = income_change / revenue_change if revenue_change != 0 else 0.0
    threshold = OPERATING_LEVERAGE_THRESHOLD
    if not abs(leverage) > threshold:
        return _clear(LEVERAGE_ID)

    return _risk(RiskFinding(
        id=LEVERAGE_ID,
        severity=Severity.HIGH,
        title="Operating Leverage Risk",
        description=f"High operating leverage ({leverage:.2f}x)",
        metric="Operating Leverage",
        current_value=leverage,
        threshold=threshold,
        evidence=[
            f"Revenue change: {revenue_change:.1f}%",
            f"Income change: {income_change:.1f}%",
        ],
    ))


def detect_liquidity_risk(
    periods: Sequence[FinancialPeriod],
    zero_as_missing: bool = False,
) -> RiskFinding | None:
    return check_liquidity(periods, zero_as_missing).finding


def detect_cash_flow_discrepancy(
    periods: Sequence[FinancialPeriod],
    zero_as_missing: bool = False,
) -> RiskFinding | None:
    return check_cash_flow_discrepancy(periods, zero_as_missing).finding


def detect_operating_leverage_risk(
    periods: Sequence[FinancialPeriod],
    zero_as_missing: bool = False,
    comparison_offset: int = COMPARISON_OFFSET,
) -> RiskFinding | None:
    return check_operating_leverage(periods, zero_as_missing, comparison_offset).finding


# ═══════════════════════════════════════════════════════════════════════════
#  Dispatch
# ═══════════════════════════════════════════════════════════════════════════

def evaluate_risks(
    periods: Sequence[FinancialPeriod] | None,
    *,
    zero_as_missing: bool | None = None,
    comparison_offset: int | None = None,
) -> list[DetectorOutcome]:
    """Run every detector and report each outcome, in fixed detector order.

    Unset options fall back to ``Settings.zero_as_missing`` and
    ``Settings.comparison_offset``.
    """
    if zero_as_missing is None or comparison_offset is None:
        config = get_config()
        if zero_as_missing is None:
            zero_as_missing = config.zero_as_missing
        if comparison_offset is None:
            comparison_offset = config.comparison_offset

    periods = list(periods or [])
    detectors: list[Callable[[Sequence[FinancialPeriod]], DetectorOutcome]] = [
        lambda p: check_liquidity(p, zero_as_missing),
        lambda p: check_cash_flow_discrepancy(p, zero_as_missing),
        lambda p: check_operating_leverage(p, zero_as_missing, comparison_offset),
    ]
    outcomes = [detector(periods) for detector in detectors]
    log.debug(
        "Risk evaluation over %d periods: %s",
        len(periods),
        ", ".join(f"{o.detector}={o.status.value}" for o in outcomes),
    )
    return outcomes


def detect_risks(
    periods: Sequence[FinancialPeriod] | None,
    *,
    zero_as_missing: bool | None = None,
    comparison_offset: int | None = None,
) -> list[RiskFinding]:
    """Return the findings of every detector that fired.

    Order is always liquidity, cash flow, operating leverage.  An empty or
    missing period list yields no findings.
    """
    if not periods:
        return []
    outcomes = evaluate_risks(
        periods,
        zero_as_missing=zero_as_missing,
        comparison_offset=comparison_offset,
    )
    return [o.finding for o in outcomes if o.finding is not None]
