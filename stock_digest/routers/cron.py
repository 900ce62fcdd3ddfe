"""Scheduled digest trigger, called by an external cron service."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from stock_digest.deps import DigestServiceDep, require_cron_secret

router = APIRouter(prefix="/api", tags=["cron"])


@router.api_route(
    "/cron",
    methods=["GET", "POST"],
    dependencies=[Depends(require_cron_secret)],
)
def run_cron(service: DigestServiceDep):
    """Run one digest cycle for every user due in the current UTC hour."""
    try:
        report = service.run_digest_cycle()
    except Exception as exc:
        logging.error("Cron job error: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal error"})
    return report.to_response()
