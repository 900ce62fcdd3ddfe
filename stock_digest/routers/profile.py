"""Watchlist and delivery schedule for the signed-in user."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from stock_digest.deps import CurrentUser, DigestServiceDep
from stock_digest.models import ProfileUpdate, UserProfile
from stock_digest.scheduling import next_delivery

router = APIRouter(prefix="/api/profile", tags=["profile"])


def _profile_response(profile: UserProfile) -> dict:
    upcoming = next_delivery(profile, datetime.now(timezone.utc))
    payload = profile.model_dump(mode="json")
    payload["next_delivery"] = upcoming.isoformat() if upcoming and profile.tickers else None
    return payload


def _load_or_default(service, user) -> UserProfile:
    profile = service.store.get_profile(user.id)
    if profile is None:
        profile = UserProfile(id=user.id, email=user.email or "")
    return profile


@router.get("")
def get_profile(user: CurrentUser, service: DigestServiceDep):
    """The caller's profile, or the defaults for a user who has not saved one yet."""
    try:
        profile = _load_or_default(service, user)
    except Exception as exc:
        logging.error("Error loading profile for user %s: %s", user.id, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to load profile"})
    return _profile_response(profile)


@router.put("")
def update_profile(update: ProfileUpdate, user: CurrentUser, service: DigestServiceDep):
    """Apply a partial update to the watchlist and schedule, then upsert it."""
    try:
        current = _load_or_default(service, user)
        if user.email:
            current = current.model_copy(update={"email": user.email})
        saved = service.store.upsert_profile(update.apply_to(current))
    except Exception as exc:
        logging.error("Error saving profile for user %s: %s", user.id, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to save changes"})
    return _profile_response(saved)
