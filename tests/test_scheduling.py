from datetime import datetime, timedelta, timezone

import pytest

from conftest import MONDAY_0820, make_profile
from stock_digest.scheduling import (current_slot, is_due, next_delivery,
                                     select_due_profiles, sent_in_current_hour)


@pytest.mark.parametrize(
    "minute,expected",
    [(0, "08:00"), (14, "08:00"), (15, "08:15"), (44, "08:30"), (59, "08:45")],
)
def test_current_slot_rounds_down(minute, expected):
    now = datetime(2024, 6, 3, 8, minute, tzinfo=timezone.utc)
    assert current_slot(now) == (expected, "monday")


def test_current_slot_converts_to_utc():
    tokyo = timezone(timedelta(hours=9))
    now = datetime(2024, 6, 3, 3, 10, tzinfo=tokyo)  # Sunday 18:10 UTC
    assert current_slot(now) == ("18:00", "sunday")


def test_naive_datetimes_are_utc():
    assert current_slot(datetime(2024, 6, 8, 23, 59)) == ("23:45", "saturday")


@pytest.mark.parametrize("schedule_time", ["08:00", "08:15", "08:45", "08:59"])
def test_due_anywhere_in_the_hour(schedule_time):
    profile = make_profile("u1", schedule_time=schedule_time)
    assert is_due(profile, MONDAY_0820)


@pytest.mark.parametrize(
    "overrides",
    [
        {"schedule_time": "07:59"},
        {"schedule_time": "09:00"},
        {"schedule_frequency": "weekly", "schedule_days": ["tuesday"]},
        {"tickers": []},
        {"emails_paused": True},
    ],
)
def test_not_due(overrides):
    assert not is_due(make_profile("u1", **overrides), MONDAY_0820)


def test_select_due_profiles_matches_predicate():
    profiles = [
        make_profile("due", schedule_time="08:30"),
        make_profile("wrong-hour", schedule_time="10:00"),
        make_profile("weekend", schedule_days=["saturday", "sunday"]),
        make_profile("empty", tickers=[]),
        make_profile("also-due", schedule_days=["monday"]),
    ]
    selected = select_due_profiles(profiles, MONDAY_0820)
    assert [p.id for p in selected] == ["due", "also-due"]


def test_sent_in_current_hour():
    assert not sent_in_current_hour(None, MONDAY_0820)
    assert sent_in_current_hour(datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc), MONDAY_0820)
    assert not sent_in_current_hour(datetime(2024, 6, 3, 7, 59, tzinfo=timezone.utc), MONDAY_0820)
    assert not sent_in_current_hour(datetime(2024, 5, 27, 8, 5, tzinfo=timezone.utc), MONDAY_0820)


def test_next_delivery_later_today():
    profile = make_profile("u1", schedule_time="09:00")
    assert next_delivery(profile, MONDAY_0820) == datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc)


def test_next_delivery_skips_to_next_scheduled_day():
    profile = make_profile("u1", schedule_time="08:00")
    friday_evening = datetime(2024, 6, 7, 20, 0, tzinfo=timezone.utc)
    assert next_delivery(profile, friday_evening) == datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)


def test_next_delivery_weekly_same_day_next_week():
    profile = make_profile(
        "u1", schedule_frequency="weekly", schedule_days=["monday"], schedule_time="08:00"
    )
    assert next_delivery(profile, MONDAY_0820) == datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)


def test_next_delivery_without_days():
    profile = make_profile("u1", schedule_frequency="custom", schedule_days=[])
    assert next_delivery(profile, MONDAY_0820) is None
