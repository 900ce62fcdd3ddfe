"""
Pydantic models for profiles, digests, research results and API payloads.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, List, NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stock_digest.errors import ValidationError


MAX_TICKERS = 20

TICKER_RE = re.compile(r"[A-Z]{1,5}")
SCHEDULE_TIME_RE = re.compile(r"([01]\d|2[0-3]):([0-5]\d)")

# Python's weekday() order: Monday == 0
DAY_NAMES = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]
WEEKDAYS = DAY_NAMES[:5]

# Placeholder strings the research prompt asks for when nothing happened
UNAVAILABLE = "N/A"
NO_DATA_EVENT = "Unable to fetch data"
NO_SUMMARY = "Unable to generate summary. Please try again later."


class ScheduleFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class Sentiment(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


def is_valid_ticker(value: Any) -> bool:
    """True when ``value`` is 1-5 uppercase ASCII letters and nothing else."""
    return isinstance(value, str) and TICKER_RE.fullmatch(value) is not None


def normalize_ticker(raw: Any) -> str:
    """
    Trim and upper-case a user-supplied ticker, then validate it.

    Raises ``ValidationError`` for anything that is not 1-5 letters.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Invalid request")
    ticker = raw.strip().upper()
    if not is_valid_ticker(ticker):
        raise ValidationError("Invalid ticker format")
    return ticker


def check_watchlist(tickers: List[str]) -> List[str]:
    """Validate format, uniqueness and size of a watchlist; returns it unchanged."""
    seen = set()
    for ticker in tickers:
        if not is_valid_ticker(ticker):
            raise ValueError(f"Invalid ticker symbol: {ticker!r}")
        if ticker in seen:
            raise ValueError(f"Duplicate ticker symbol: {ticker}")
        seen.add(ticker)
    if len(tickers) > MAX_TICKERS:
        raise ValueError(f"Maximum {MAX_TICKERS} tickers allowed")
    return tickers


def normalize_schedule_days(
    frequency: ScheduleFrequency, days: List[str]
) -> List[str]:
    """
    Coerce ``days`` into the shape each frequency requires.

    - daily: Monday through Friday.
    - weekly: a single day (first supplied, else Sunday).
    - custom: two or more days; a lone day gets the following day added.
    """
    ordered: List[str] = []
    for day in days:
        if day not in ordered:
            ordered.append(day)

    if frequency == ScheduleFrequency.DAILY:
        return list(WEEKDAYS)
    if frequency == ScheduleFrequency.WEEKLY:
        return [ordered[0]] if ordered else ["sunday"]

    if len(ordered) >= 2:
        return ordered
    first = ordered[0] if ordered else "sunday"
    following = DAY_NAMES[(DAY_NAMES.index(first) + 1) % 7]
    return [first, following]


def _parse_schedule_time(value: Any) -> str:
    # Postgres ``time`` columns come back as HH:MM:SS
    if not isinstance(value, str):
        raise ValueError("schedule_time must be a string")
    candidate = value.strip()[:5]
    if not SCHEDULE_TIME_RE.fullmatch(candidate):
        raise ValueError(f"Invalid schedule_time: {value!r}")
    return candidate


def _parse_days(value: Any) -> List[str]:
    if value is None:
        return []
    days = [str(day).strip().lower() for day in value]
    for day in days:
        if day not in DAY_NAMES:
            raise ValueError(f"Invalid day of week: {day!r}")
    return days


def _parse_timezone(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError("timezone must be a non-empty string")
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {value!r}") from exc
    return value


# Stored rows are read leniently: unknown zones become UTC, unknown days are dropped.
def _stored_timezone(value: Any) -> str:
    try:
        return _parse_timezone(value or "UTC")
    except ValueError:
        logging.warning("Ignoring unknown stored timezone %r; using UTC.", value)
        return "UTC"


def _stored_days(value: Any) -> List[str]:
    if not value or isinstance(value, str):
        return []
    days = [str(day).strip().lower() for day in value]
    return [day for day in days if day in DAY_NAMES]


class UserProfile(BaseModel):
    """One row of the ``profiles`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str = ""
    tickers: List[str] = Field(default_factory=list)
    schedule_frequency: ScheduleFrequency = ScheduleFrequency.DAILY
    schedule_time: str = "08:00"
    schedule_days: List[str] = Field(default_factory=lambda: list(WEEKDAYS))
    timezone: str = "UTC"
    emails_paused: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value: Any) -> str:
        return str(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> str:
        return value or ""

    @field_validator("emails_paused", mode="before")
    @classmethod
    def _paused(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("tickers", mode="before")
    @classmethod
    def _tickers(cls, value: Any) -> List[str]:
        return check_watchlist(list(value or []))

    @field_validator("schedule_time", mode="before")
    @classmethod
    def _schedule_time(cls, value: Any) -> str:
        return _parse_schedule_time(value)

    @field_validator("schedule_days", mode="before")
    @classmethod
    def _schedule_days(cls, value: Any) -> List[str]:
        return _stored_days(value)

    @field_validator("timezone", mode="before")
    @classmethod
    def _timezone(cls, value: Any) -> str:
        return _stored_timezone(value)

    @property
    def schedule_hour(self) -> int:
        return int(self.schedule_time[:2])

    def to_row(self) -> dict:
        """Columns written on upsert; timestamps are left to the database."""
        return self.model_dump(
            mode="json", exclude={"created_at", "updated_at"}
        )


class ProfileUpdate(BaseModel):
    """Partial update accepted by ``PUT /api/profile``."""

    model_config = ConfigDict(extra="forbid")

    tickers: Optional[List[str]] = None
    schedule_frequency: Optional[ScheduleFrequency] = None
    schedule_time: Optional[str] = None
    schedule_days: Optional[List[str]] = None
    timezone: Optional[str] = None
    emails_paused: Optional[bool] = None

    @field_validator("tickers", mode="before")
    @classmethod
    def _tickers(cls, value: Any) -> Optional[List[str]]:
        if value is None:
            return None
        if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
            raise ValueError("tickers must be a list of strings")
        return check_watchlist([t.strip().upper() for t in value])

    @field_validator("schedule_time", mode="before")
    @classmethod
    def _schedule_time(cls, value: Any) -> Optional[str]:
        return None if value is None else _parse_schedule_time(value)

    @field_validator("schedule_days", mode="before")
    @classmethod
    def _schedule_days(cls, value: Any) -> Optional[List[str]]:
        return None if value is None else _parse_days(value)

    @field_validator("timezone", mode="before")
    @classmethod
    def _timezone(cls, value: Any) -> Optional[str]:
        return None if value is None else _parse_timezone(value)

    def apply_to(self, profile: UserProfile) -> UserProfile:
        """Return a copy of ``profile`` with these changes and a normalized schedule."""
        changes = self.model_dump(exclude_none=True)
        updated = profile.model_copy(update=changes)
        days = normalize_schedule_days(
            updated.schedule_frequency, updated.schedule_days
        )
        return updated.model_copy(update={"schedule_days": days})


class Digest(BaseModel):
    """One row of the append-only ``digests`` table."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    tickers: List[str] = Field(default_factory=list)
    content: str = ""
    sent_at: datetime
    created_at: Optional[datetime] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class AuthenticatedUser(BaseModel):
    id: str
    email: Optional[str] = None


class PriceChange(BaseModel):
    day: str = UNAVAILABLE
    week: str = UNAVAILABLE
    month: str = UNAVAILABLE

    @field_validator("day", "week", "month", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return UNAVAILABLE if value is None else str(value)


class StockResearchResult(BaseModel):
    """
    Research findings for one ticker.

    The provider answers in camelCase JSON; aliases map it onto snake_case
    attributes and ``model_dump(by_alias=True)`` gives the same shape back.
    """

    model_config = ConfigDict(populate_by_name=True)

    ticker: str
    company_name: str = Field(default=UNAVAILABLE, alias="companyName")
    current_price: str = Field(default=UNAVAILABLE, alias="currentPrice")
    price_change: PriceChange = Field(
        default_factory=PriceChange, alias="priceChange"
    )
    sentiment: Sentiment = Sentiment.NEUTRAL
    key_events: List[str] = Field(default_factory=list, alias="keyEvents")
    competitive_dynamics: str = Field(
        default=UNAVAILABLE, alias="competitiveDynamics"
    )
    insider_activity: str = Field(default=UNAVAILABLE, alias="insiderActivity")
    analyst_actions: str = Field(default=UNAVAILABLE, alias="analystActions")
    upcoming_catalysts: str = Field(
        default=UNAVAILABLE, alias="upcomingCatalysts"
    )
    summary: str = NO_SUMMARY

    @field_validator(
        "company_name",
        "current_price",
        "competitive_dynamics",
        "insider_activity",
        "analyst_actions",
        "upcoming_catalysts",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return UNAVAILABLE if value is None else str(value)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value: Any) -> str:
        return NO_SUMMARY if value is None else str(value)

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text if text in {s.value for s in Sentiment} else "neutral"

    @field_validator("key_events", mode="before")
    @classmethod
    def _key_events(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    @classmethod
    def fallback(cls, ticker: str) -> "StockResearchResult":
        """Placeholder result used when the provider's answer cannot be parsed."""
        return cls(
            ticker=ticker,
            company_name=ticker,
            current_price=UNAVAILABLE,
            price_change=PriceChange(),
            sentiment=Sentiment.NEUTRAL,
            key_events=[NO_DATA_EVENT],
            competitive_dynamics=UNAVAILABLE,
            insider_activity=UNAVAILABLE,
            analyst_actions=UNAVAILABLE,
            upcoming_catalysts=UNAVAILABLE,
            summary=NO_SUMMARY,
        )


class ScheduledProfiles(NamedTuple):
    """Rows matched by the scheduled-profile query."""

    profiles: List[UserProfile]
    # ids of matched rows that could not be read as a profile
    malformed_ids: List[str]


class UserCycleResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    status: str  # success | error | skipped
    tickers: Optional[int] = None


class DigestCycleReport(BaseModel):
    """Outcome of one cron invocation."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    time: str
    day: str
    users_processed: int = Field(alias="usersProcessed")
    results: List[UserCycleResult] = Field(default_factory=list)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class SendNowResult(BaseModel):
    success: bool = True
    message: str = "Digest sent successfully"
    tickers: List[str] = Field(default_factory=list)
