"""Shared fakes for the Supabase client, Gemini, Resend and the digest services."""
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from stock_digest.config import Settings
from stock_digest.digest import DigestService
from stock_digest.errors import UpstreamError
from stock_digest.models import (AuthenticatedUser, Digest, ScheduledProfiles,
                                 StockResearchResult, UserProfile)


# ---------- Supabase client ----------


class FakeQuery:
    """Chainable stand-in for a postgrest query builder; records every call."""

    def __init__(self, table: str, rows: List[dict], error: Optional[Exception] = None):
        self.table = table
        self.rows = rows
        self.error = error
        self.calls: List[tuple] = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.rows)


class FakeAuth:
    def __init__(self, users: Dict[str, SimpleNamespace]):
        self.users = users

    def get_user(self, token):
        if token not in self.users:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=self.users[token])


class FakeSupabase:
    def __init__(self, rows: Optional[Dict[str, List[dict]]] = None, error=None, users=None):
        self.rows = rows or {}
        self.error = error
        self.queries: List[FakeQuery] = []
        self.auth = FakeAuth(users or {})

    def table(self, name):
        query = FakeQuery(name, self.rows.get(name, []), self.error)
        self.queries.append(query)
        return query


# ---------- Gemini client ----------


class FakeModels:
    def __init__(self, responses: Dict[str, str], errors: Optional[Dict[str, Exception]] = None):
        self.responses = responses
        self.errors = errors or {}
        self.calls: List[dict] = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        for ticker, error in self.errors.items():
            if f"Research {ticker} " in contents:
                raise error
        for ticker, text in self.responses.items():
            if f"Research {ticker} " in contents:
                return SimpleNamespace(text=text)
        return SimpleNamespace(text="")


class FakeGenai:
    def __init__(self, responses=None, errors=None):
        self.models = FakeModels(responses or {}, errors)


# ---------- Service-level fakes ----------


class InMemoryStore:
    """Implements the ProfileStore interface over plain dicts."""

    def __init__(self, profiles: Optional[List[UserProfile]] = None):
        self.profiles: Dict[str, UserProfile] = {p.id: p for p in profiles or []}
        self.digests: List[Digest] = []
        self.tokens: Dict[str, AuthenticatedUser] = {}
        self.fail_record_for: set = set()
        self.fail_last_digest_for: set = set()
        self.fail_query = False
        # ids of stored rows that no longer parse as a profile
        self.malformed_ids: List[str] = []

    def get_profile(self, user_id):
        return self.profiles.get(user_id)

    def upsert_profile(self, profile):
        self.profiles[profile.id] = profile
        return profile

    def find_scheduled_profiles(self, day, hour):
        if self.fail_query:
            raise UpstreamError("Database error while querying scheduled profiles")
        matched = [
            p
            for p in self.profiles.values()
            if day in p.schedule_days and p.schedule_time[:2] == f"{hour:02d}" and p.tickers
        ]
        return ScheduledProfiles(matched, list(self.malformed_ids))

    def get_last_digest_sent_at(self, user_id):
        if user_id in self.fail_last_digest_for:
            raise UpstreamError("Database error while loading last digest")
        sent = [d.sent_at for d in self.digests if d.user_id == user_id]
        return max(sent) if sent else None

    def record_digest(self, user_id, tickers, content, sent_at=None):
        if user_id in self.fail_record_for:
            raise UpstreamError("Database error while storing digest")
        digest = Digest(
            id=str(len(self.digests) + 1),
            user_id=user_id,
            tickers=list(tickers),
            content=content,
            sent_at=sent_at or datetime.now(timezone.utc),
        )
        self.digests.append(digest)
        return digest

    def list_recent_digests(self, user_id, limit=5):
        mine = [d for d in self.digests if d.user_id == user_id]
        return sorted(mine, key=lambda d: d.sent_at, reverse=True)[:limit]

    def get_user_for_token(self, token):
        return self.tokens.get(token)


class FakeResearchClient:
    def __init__(self, failing_tickers=()):
        self.failing_tickers = set(failing_tickers)
        self.calls: List[tuple] = []

    def research(self, ticker, since):
        self.calls.append((ticker, since))
        if ticker in self.failing_tickers:
            raise RuntimeError(f"provider down for {ticker}")
        return make_result(ticker)

    def research_multiple(self, tickers, since):
        return [self.research(ticker, since) for ticker in tickers]


class FakeMailer:
    def __init__(self, failing_recipients=()):
        self.failing_recipients = set(failing_recipients)
        self.sent: List[tuple] = []

    def send(self, to, stocks):
        if to in self.failing_recipients:
            raise UpstreamError("Failed to send email")
        self.sent.append((to, [s.ticker for s in stocks]))
        return f"msg-{len(self.sent)}"


def make_result(ticker: str, **overrides) -> StockResearchResult:
    data = {
        "ticker": ticker,
        "companyName": f"{ticker} Inc.",
        "currentPrice": "$100.00",
        "priceChange": {"day": "+1.0%", "week": "-2.0%", "month": "0.0%"},
        "sentiment": "bullish",
        "keyEvents": ["Beat earnings"],
        "competitiveDynamics": "No significant changes",
        "insiderActivity": "CEO bought 10,000 shares",
        "analystActions": "No significant actions",
        "upcomingCatalysts": "Earnings on May 1",
        "summary": f"{ticker} had a good week.",
    }
    data.update(overrides)
    return StockResearchResult.model_validate(data)


def make_profile(user_id: str, **overrides) -> UserProfile:
    data = {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "tickers": ["AAPL", "MSFT"],
        "schedule_frequency": "daily",
        "schedule_time": "08:00",
        "schedule_days": ["monday", "tuesday", "wednesday", "thursday", "friday"],
        "timezone": "America/New_York",
        "emails_paused": False,
    }
    data.update(overrides)
    return UserProfile.model_validate(data)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="service-role",
        gemini_api_key="gemini-key",
        resend_api_key="re_test",
        cron_secret="s3cret",
        app_url="https://digest.example.com",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def research_client() -> FakeResearchClient:
    return FakeResearchClient()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def service(store, research_client, mailer) -> DigestService:
    return DigestService(store, research_client, mailer)


# Monday 2024-06-03 08:20 UTC
MONDAY_0820 = datetime(2024, 6, 3, 8, 20, tzinfo=timezone.utc)
