"""API routers for the digest service.

Includes routes for:
- /api/cron - Scheduled digest cycle (shared-secret protected)
- /api/digest/send, /api/digests - On-demand send and digest history
- /api/research/test - Single-ticker research check
- /api/profile - Watchlist and delivery schedule
"""
from stock_digest.routers.cron import router as cron_router
from stock_digest.routers.digests import router as digests_router
from stock_digest.routers.profile import router as profile_router
from stock_digest.routers.research import router as research_router

__all__ = [
    "cron_router",
    "digests_router",
    "profile_router",
    "research_router",
]
