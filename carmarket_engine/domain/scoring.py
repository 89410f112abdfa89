"""Scoring primitives - listing heat tiers and prospect staleness/hotness"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from carmarket_engine.domain.models import (
    HeatTier,
    Listing,
    Prospect,
    ProspectSource,
    ProspectStatus,
)
from carmarket_engine.utils.date_utils import whole_days_between

TERMINAL_PROSPECT_STATUSES = frozenset(
    {ProspectStatus.WON, ProspectStatus.LOST, ProspectStatus.DISCARDED}
)

HIGH_INTENT_SOURCES = frozenset({ProspectSource.WHATSAPP, ProspectSource.REFERRAL})


@dataclass(frozen=True)
class HeatThresholds:
    """Minimum views for 'hot' per listing age band"""

    day: int = 20
    week: int = 35
    month: int = 50
    older: int = 100
    super_hot_multiplier: int = 2

    def for_age(self, days_old: int) -> int:
        if days_old <= 1:
            return self.day
        elif days_old <= 7:
            return self.week
        elif days_old <= 30:
            return self.month
        else:
            return self.older


@dataclass(frozen=True)
class ProspectWindows:
    """Time windows driving prospect staleness and hotness"""

    stale_after: timedelta = timedelta(days=7)
    appointment_horizon: timedelta = timedelta(hours=48)
    recent_creation: timedelta = timedelta(hours=24)


DEFAULT_HEAT_THRESHOLDS = HeatThresholds()
DEFAULT_PROSPECT_WINDOWS = ProspectWindows()


def heat_tier(
    views_count: int,
    created_at: datetime,
    now: datetime,
    thresholds: HeatThresholds = DEFAULT_HEAT_THRESHOLDS,
) -> HeatTier:
    """
    Classify listing popularity from views relative to its age.

    Age bands (whole days since creation) and their 'hot' thresholds:
    - <= 1 day:   20 views
    - <= 7 days:  35 views
    - <= 30 days: 50 views
    - older:      100 views

    Reaching twice the threshold is 'super-hot'. Negative view counts are
    treated as zero.
    """
    views = max(views_count, 0)
    threshold = thresholds.for_age(whole_days_between(created_at, now))

    if views >= threshold * thresholds.super_hot_multiplier:
        return HeatTier.SUPER_HOT
    elif views >= threshold:
        return HeatTier.HOT
    return HeatTier.NORMAL


def listing_heat(
    listing: Listing,
    now: datetime,
    thresholds: HeatThresholds = DEFAULT_HEAT_THRESHOLDS,
) -> HeatTier:
    return heat_tier(listing.views_count, listing.created_at, now, thresholds)


def is_terminal(status: ProspectStatus) -> bool:
    return status in TERMINAL_PROSPECT_STATUSES


def is_stale(
    prospect: Prospect,
    now: datetime,
    windows: ProspectWindows = DEFAULT_PROSPECT_WINDOWS,
) -> bool:
    """Open lead with no status change, reassignment or appointment within the window"""
    if is_terminal(prospect.status):
        return False
    return now - prospect.last_activity_at > windows.stale_after


def has_upcoming_appointment(
    prospect: Prospect,
    now: datetime,
    windows: ProspectWindows = DEFAULT_PROSPECT_WINDOWS,
) -> bool:
    if prospect.appointment_date is None:
        return False
    return now <= prospect.appointment_date <= now + windows.appointment_horizon


def is_hot(
    prospect: Prospect,
    now: datetime,
    windows: ProspectWindows = DEFAULT_PROSPECT_WINDOWS,
) -> bool:
    """
    A lead is hot when an appointment falls within the near-term horizon, or
    it arrived through a high-intent channel (whatsapp, referral) recently.
    """
    if has_upcoming_appointment(prospect, now, windows):
        return True
    recently_created = now - prospect.created_at <= windows.recent_creation
    return prospect.source in HIGH_INTENT_SOURCES and recently_created
