"""Unit tests for heat tiers and prospect staleness/hotness"""

import pytest
from datetime import timedelta
from carmarket_engine.domain.models import HeatTier, ProspectSource, ProspectStatus
from carmarket_engine.domain.scoring import (
    HeatThresholds,
    ProspectWindows,
    heat_tier,
    is_hot,
    is_stale,
    listing_heat,
)


@pytest.mark.parametrize(
    "age, views, expected",
    [
        (timedelta(hours=3), 19, HeatTier.NORMAL),
        (timedelta(hours=3), 20, HeatTier.HOT),
        (timedelta(hours=3), 40, HeatTier.SUPER_HOT),
        (timedelta(days=1, hours=12), 20, HeatTier.HOT),  # floors to 1 day
        (timedelta(days=2), 20, HeatTier.NORMAL),
        (timedelta(days=2), 35, HeatTier.HOT),
        (timedelta(days=7), 70, HeatTier.SUPER_HOT),
        (timedelta(days=8), 35, HeatTier.NORMAL),
        (timedelta(days=30), 50, HeatTier.HOT),
        (timedelta(days=31), 99, HeatTier.NORMAL),
        (timedelta(days=31), 100, HeatTier.HOT),
        (timedelta(days=365), 200, HeatTier.SUPER_HOT),
    ],
)
def test_heat_tier_bands(now, age, views, expected):
    """Test thresholds per age band and the 2x super-hot multiplier"""
    assert heat_tier(views, now - age, now) == expected


def test_heat_tier_negative_views_treated_as_zero(now):
    assert heat_tier(-5, now, now) == HeatTier.NORMAL


def test_heat_tier_custom_thresholds(now):
    """Test thresholds come from configuration, not constants"""
    thresholds = HeatThresholds(day=5, week=10, month=15, older=20, super_hot_multiplier=3)

    assert heat_tier(5, now, now, thresholds) == HeatTier.HOT
    assert heat_tier(14, now, now, thresholds) == HeatTier.HOT
    assert heat_tier(15, now, now, thresholds) == HeatTier.SUPER_HOT


def test_listing_heat_reads_listing_counters(now, make_listing):
    listing = make_listing(views_count=36, created_at=now - timedelta(days=3))
    assert listing_heat(listing, now) == HeatTier.HOT


def test_heat_tier_rank_order():
    assert HeatTier.NORMAL.rank < HeatTier.HOT.rank < HeatTier.SUPER_HOT.rank


def test_is_stale_after_seven_days_without_activity(now, make_prospect):
    """Test staleness boundary is strictly greater than the window"""
    at_boundary = make_prospect(last_activity_at=now - timedelta(days=7))
    past_boundary = make_prospect(last_activity_at=now - timedelta(days=7, seconds=1))

    assert is_stale(at_boundary, now) is False
    assert is_stale(past_boundary, now) is True


@pytest.mark.parametrize(
    "status", [ProspectStatus.WON, ProspectStatus.LOST, ProspectStatus.DISCARDED]
)
def test_terminal_prospect_is_never_stale(now, make_prospect, status):
    prospect = make_prospect(status=status, last_activity_at=now - timedelta(days=90))
    assert is_stale(prospect, now) is False


def test_is_stale_uses_activity_not_creation(now, make_prospect):
    prospect = make_prospect(
        created_at=now - timedelta(days=30),
        last_activity_at=now - timedelta(days=1),
    )
    assert is_stale(prospect, now) is False


def test_is_hot_with_appointment_within_48_hours(now, make_prospect):
    created = now - timedelta(days=10)
    soon = make_prospect(created_at=created, appointment_date=now + timedelta(hours=47))
    later = make_prospect(created_at=created, appointment_date=now + timedelta(hours=49))
    past = make_prospect(created_at=created, appointment_date=now - timedelta(hours=1))

    assert is_hot(soon, now) is True
    assert is_hot(later, now) is False
    assert is_hot(past, now) is False


@pytest.mark.parametrize(
    "source, age, expected",
    [
        (ProspectSource.WHATSAPP, timedelta(hours=23), True),
        (ProspectSource.REFERRAL, timedelta(hours=24), True),
        (ProspectSource.WHATSAPP, timedelta(hours=25), False),
        (ProspectSource.WEBSITE, timedelta(hours=1), False),
        (ProspectSource.FACEBOOK, timedelta(minutes=5), False),
    ],
)
def test_is_hot_for_recent_high_intent_sources(now, make_prospect, source, age, expected):
    prospect = make_prospect(source=source, created_at=now - age)
    assert is_hot(prospect, now) is expected


def test_prospect_windows_are_configurable(now, make_prospect):
    windows = ProspectWindows(stale_after=timedelta(days=1), appointment_horizon=timedelta(hours=1))
    prospect = make_prospect(
        last_activity_at=now - timedelta(days=2),
        created_at=now - timedelta(days=2),
        appointment_date=now + timedelta(hours=2),
    )

    assert is_stale(prospect, now, windows) is True
    assert is_hot(prospect, now, windows) is False
