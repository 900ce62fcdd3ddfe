"""Ad-hoc research for a single ticker."""
import logging

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from stock_digest.deps import CurrentUser, DigestServiceDep
from stock_digest.errors import ValidationError
from stock_digest.models import normalize_ticker

router = APIRouter(prefix="/api/research", tags=["research"])


@router.post("/test")
async def research_ticker(request: Request, user: CurrentUser, service: DigestServiceDep):
    """Research one ticker (body: ``{"ticker": "AAPL"}``) and return the raw result."""
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise ValidationError("Invalid request")

    ticker = normalize_ticker(body.get("ticker"))

    try:
        result = await run_in_threadpool(service.research_client.research, ticker, None)
    except Exception as exc:
        logging.error("Research test error for %s: %s", ticker, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to research stock"})
    return result.model_dump(mode="json", by_alias=True)
