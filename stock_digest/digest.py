"""
Digest orchestration.

Workflow for each recipient:
1. Look up when their last digest went out.
2. Research every ticker on their watchlist (concurrently, via Gemini).
3. Email the results through Resend.
4. Record the digest in Supabase.

The scheduled cycle runs recipients one after another and isolates
failures per user; the on-demand path does the same work for one user and
reports errors to the caller.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from stock_digest.config import Settings
from stock_digest.errors import ValidationError
from stock_digest.mailer import DigestMailer
from stock_digest.models import (DigestCycleReport, ScheduledProfiles,
                                 SendNowResult, StockResearchResult,
                                 UserCycleResult, UserProfile)
from stock_digest.research import ResearchClient
from stock_digest.scheduling import (as_utc, current_slot, select_due_profiles,
                                     sent_in_current_hour)
from stock_digest.store import ProfileStore


NO_USERS_MESSAGE = "No users scheduled for this time"
CYCLE_COMPLETE_MESSAGE = "Cron job completed"


def format_digest_content(results: List[StockResearchResult]) -> str:
    """Plain-text record of a digest: one 'TICKER: summary' block per stock."""
    return "\n\n".join(f"{r.ticker}: {r.summary}" for r in results)


class DigestService:
    """Finds due users, researches their watchlists and delivers digests."""

    def __init__(
        self,
        store: ProfileStore,
        research_client: ResearchClient,
        mailer: DigestMailer,
        skip_sent_in_slot: bool = False,
    ):
        self.store = store
        self.research_client = research_client
        self.mailer = mailer
        self.skip_sent_in_slot = skip_sent_in_slot

    @classmethod
    def from_settings(cls, settings: Settings) -> "DigestService":
        return cls(
            store=ProfileStore.from_settings(settings),
            research_client=ResearchClient.from_settings(settings),
            mailer=DigestMailer.from_settings(settings),
            skip_sent_in_slot=settings.skip_sent_in_slot,
        )

    def find_due_profiles(self, now: datetime) -> ScheduledProfiles:
        """Due profiles, plus ids of matched rows too malformed to check."""
        _, day = current_slot(now)
        candidates = self.store.find_scheduled_profiles(day, as_utc(now).hour)
        return ScheduledProfiles(
            select_due_profiles(candidates.profiles, now), candidates.malformed_ids
        )

    def deliver(
        self,
        user_id: str,
        email: str,
        tickers: List[str],
        since: Optional[datetime],
    ) -> List[StockResearchResult]:
        """Research and email one digest. Does not persist it."""
        logging.info("Researching %d ticker(s) for user %s.", len(tickers), user_id)
        results = self.research_client.research_multiple(tickers, since)

        logging.info("Sending digest to user %s.", user_id)
        self.mailer.send(email, results)
        return results

    def _process_profile(self, profile: UserProfile, now: datetime) -> UserCycleResult:
        since = self.store.get_last_digest_sent_at(profile.id)

        if self.skip_sent_in_slot and sent_in_current_hour(since, now):
            logging.info("User %s already received a digest this hour; skipping.", profile.id)
            return UserCycleResult(user_id=profile.id, status="skipped")

        results = self.deliver(profile.id, profile.email, profile.tickers, since)
        self.store.record_digest(
            profile.id,
            profile.tickers,
            format_digest_content(results),
            sent_at=datetime.now(timezone.utc),
        )
        return UserCycleResult(
            user_id=profile.id, status="success", tickers=len(profile.tickers)
        )

    def run_digest_cycle(self, now: Optional[datetime] = None) -> DigestCycleReport:
        """
        Deliver digests to every user scheduled for the current UTC hour.

        One user's failure is logged and reported as ``status="error"``; it
        never stops the remaining users from being processed. Store errors
        while selecting users propagate.
        """
        now = now or datetime.now(timezone.utc)
        slot_time, day = current_slot(now)
        logging.info("Digest cycle running at %s UTC on %s.", slot_time, day)

        profiles, malformed_ids = self.find_due_profiles(now)
        if not profiles and not malformed_ids:
            return DigestCycleReport(
                message=NO_USERS_MESSAGE, time=slot_time, day=day, users_processed=0
            )

        logging.info("Found %d eligible users.", len(profiles) + len(malformed_ids))
        results: List[UserCycleResult] = []
        for profile in profiles:
            try:
                results.append(self._process_profile(profile, now))
            except Exception as exc:  # per-user isolation
                logging.error(
                    "Error processing user %s: %s", profile.id, exc, exc_info=True
                )
                results.append(UserCycleResult(user_id=profile.id, status="error"))

        for user_id in malformed_ids:
            logging.error("Profile for user %s could not be read; no digest sent.", user_id)
            results.append(UserCycleResult(user_id=user_id, status="error"))

        succeeded = sum(1 for r in results if r.status == "success")
        logging.info(
            "Digest cycle finished: %d of %d users succeeded.", succeeded, len(results)
        )
        return DigestCycleReport(
            message=CYCLE_COMPLETE_MESSAGE,
            time=slot_time,
            day=day,
            users_processed=len(results),
            results=results,
        )

    def send_now(self, user_id: str, email: Optional[str]) -> SendNowResult:
        """
        Send a digest to one user immediately, regardless of schedule or pause.

        Raises ``ValidationError`` when the user has no tickers. A failure to
        record the digest after the email went out is logged, not raised.
        """
        profile = self.store.get_profile(user_id)
        if profile is None or not profile.tickers:
            raise ValidationError("No tickers configured")

        since = self.store.get_last_digest_sent_at(user_id)
        results = self.deliver(user_id, email or profile.email, profile.tickers, since)

        try:
            self.store.record_digest(
                user_id, profile.tickers, format_digest_content(results)
            )
        except Exception as exc:
            logging.error("Error storing digest for user %s: %s", user_id, exc, exc_info=True)

        return SendNowResult(tickers=profile.tickers)
