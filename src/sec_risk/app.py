"""SEC Risk — JSON API behind the financial risk dashboard.

Endpoints:
  GET /health               — liveness check
  GET /api/search?q=...     — company search by ticker or name
  GET /api/company/{cik}    — company, recent financials and detected risks
  GET /api/company/{cik}/latest-filing?form_type=10-Q
                            — most recent filing of one form type

Run:  python -m sec_risk.app
Open: http://localhost:{PORT}  (default 8877)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sec_risk.config import get_config
from sec_risk.feed import search_public_company
from sec_risk.report import build_company_report
from sec_risk.sec_client import get_sec_client

log = logging.getLogger(__name__)

app = FastAPI(title="SEC Risk")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/search")
def search(q: str = ""):
    """Companies whose ticker or name contains ``q``."""
    query = q.strip()
    if not query:
        return JSONResponse({"error": "Query parameter 'q' is required"}, status_code=400)
    result = search_public_company(query)
    body = {
        "results": [c.model_dump() for c in result.companies],
        "count": len(result.companies),
        "query": query,
    }
    if result.fallback:
        body["fallback"] = True
    return body


@app.get("/api/company/{cik}")
def company(cik: str, quarters: int | None = None):
    """Company report: identity, financial periods (newest first) and risks."""
    log.info("Fetching data for CIK %s", cik)
    try:
        report = build_company_report(cik, quarters=quarters)
    except Exception:
        log.exception("Company report failed for CIK %s", cik)
        return JSONResponse({"error": "Failed to fetch company data"}, status_code=500)
    return report.model_dump(mode="json")


@app.get("/api/company/{cik}/latest-filing")
def latest_filing(cik: str, form_type: str = "10-Q"):
    """Accession number and dates of the company's most recent ``form_type`` filing."""
    try:
        filing = get_sec_client().get_latest_filing(cik, form_type=form_type)
    except Exception:
        log.exception("Latest %s lookup failed for CIK %s", form_type, cik)
        return JSONResponse({"error": "Failed to fetch filing data"}, status_code=500)
    if filing is None:
        return JSONResponse({"error": f"No {form_type} filing found"}, status_code=404)
    return filing.model_dump()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    logging.basicConfig(level=config.log_level)
    print(f"\n  SEC Risk → http://localhost:{config.port}\n")
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level=config.log_level.lower())
