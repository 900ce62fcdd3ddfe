"""
Supabase access for user profiles, digests and session tokens.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError as ModelValidationError
from supabase import Client, create_client

from stock_digest.config import DIGESTS_TABLE, PROFILES_TABLE, Settings
from stock_digest.errors import UpstreamError
from stock_digest.models import (AuthenticatedUser, Digest, ScheduledProfiles,
                                 UserProfile)


RECENT_DIGESTS_LIMIT = 5


def get_supabase_client(settings: Settings) -> Client:
    """Create a Supabase client with the service role key."""
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def _execute(query: Any, action: str) -> List[dict]:
    try:
        response = query.execute()
    except Exception as exc:
        logging.error("Supabase error while %s: %s", action, exc, exc_info=True)
        raise UpstreamError(f"Database error while {action}") from exc
    return response.data or []


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ProfileStore:
    """Reads and writes the ``profiles`` and ``digests`` tables."""

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProfileStore":
        return cls(get_supabase_client(settings))

    # ---------- Profiles ----------

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        rows = _execute(
            self._client.table(PROFILES_TABLE).select("*").eq("id", user_id).limit(1),
            "loading profile",
        )
        if not rows:
            return None
        return UserProfile.model_validate(rows[0])

    def upsert_profile(self, profile: UserProfile) -> UserProfile:
        """Insert or update the profile row keyed on user id."""
        logging.info("Saving profile for user %s.", profile.id)
        rows = _execute(
            self._client.table(PROFILES_TABLE).upsert(profile.to_row(), on_conflict="id"),
            "saving profile",
        )
        return UserProfile.model_validate(rows[0]) if rows else profile

    def find_scheduled_profiles(self, day: str, hour: int) -> ScheduledProfiles:
        """
        Profiles whose schedule includes ``day`` at some minute of ``hour``.

        This is a coarse pre-filter. Rows that fail validation are logged and
        returned by id in ``malformed_ids`` so the caller can report them.
        """
        query = (
            self._client.table(PROFILES_TABLE)
            .select("*")
            .contains("schedule_days", [day])
            .gte("schedule_time", f"{hour:02d}:00")
            .lte("schedule_time", f"{hour:02d}:59")
            .neq("tickers", "{}")
        )
        rows = _execute(query, "querying scheduled profiles")

        profiles: List[UserProfile] = []
        malformed_ids: List[str] = []
        for row in rows:
            try:
                profiles.append(UserProfile.model_validate(row))
            except ModelValidationError as exc:
                logging.warning("Malformed profile %s: %s", row.get("id"), exc)
                malformed_ids.append(str(row.get("id")))
        return ScheduledProfiles(profiles, malformed_ids)

    # ---------- Digests ----------

    def get_last_digest_sent_at(self, user_id: str) -> Optional[datetime]:
        rows = _execute(
            self._client.table(DIGESTS_TABLE)
            .select("sent_at")
            .eq("user_id", user_id)
            .order("sent_at", desc=True)
            .limit(1),
            "loading last digest",
        )
        if not rows or not rows[0].get("sent_at"):
            return None
        return _parse_timestamp(rows[0]["sent_at"])

    def record_digest(
        self,
        user_id: str,
        tickers: List[str],
        content: str,
        sent_at: Optional[datetime] = None,
    ) -> Digest:
        """Append a digest row for a successfully sent email."""
        sent_at = sent_at or datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "tickers": list(tickers),
            "content": content,
            "sent_at": sent_at.isoformat(),
        }
        rows = _execute(
            self._client.table(DIGESTS_TABLE).insert(payload), "storing digest"
        )
        return Digest.model_validate(rows[0] if rows else payload)

    def list_recent_digests(
        self, user_id: str, limit: int = RECENT_DIGESTS_LIMIT
    ) -> List[Digest]:
        rows = _execute(
            self._client.table(DIGESTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("sent_at", desc=True)
            .limit(limit),
            "listing digests",
        )
        return [Digest.model_validate(row) for row in rows]

    # ---------- Auth ----------

    def get_user_for_token(self, access_token: str) -> Optional[AuthenticatedUser]:
        """Resolve a Supabase access token; ``None`` when it is not valid."""
        try:
            response = self._client.auth.get_user(access_token)
        except Exception as exc:
            logging.info("Rejected session token: %s", exc)
            return None

        user = getattr(response, "user", None)
        if user is None:
            return None
        return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None))
