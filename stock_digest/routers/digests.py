"""On-demand digest delivery and digest history for the signed-in user."""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from stock_digest.deps import CurrentUser, DigestServiceDep
from stock_digest.errors import ValidationError

router = APIRouter(prefix="/api", tags=["digests"])


@router.post("/digest/send")
def send_digest_now(user: CurrentUser, service: DigestServiceDep):
    """Research the caller's watchlist and email the digest right away.

    Blocks until research and delivery finish.
    """
    try:
        result = service.send_now(user.id, user.email)
    except ValidationError:
        raise
    except Exception as exc:
        logging.error("Error sending digest for user %s: %s", user.id, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to send digest"})
    return result.model_dump()


@router.get("/digests")
def list_recent_digests(user: CurrentUser, service: DigestServiceDep):
    """The caller's most recent digests, newest first."""
    try:
        digests = service.store.list_recent_digests(user.id)
    except Exception as exc:
        logging.error("Error listing digests for user %s: %s", user.id, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to load digests"})
    return [digest.model_dump(mode="json") for digest in digests]
