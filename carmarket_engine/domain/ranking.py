"""Listing ranking - filter predicates and stable sort strategies for discovery feeds"""

from datetime import datetime
from typing import Iterable, List, Optional

from carmarket_engine.domain.models import Listing, ListingFilters, RankedListing, SortBy
from carmarket_engine.domain.scoring import DEFAULT_HEAT_THRESHOLDS, HeatThresholds, listing_heat


def _contains(value: Optional[str], needle: str) -> bool:
    return value is not None and needle.casefold() in value.casefold()


def matches_filters(listing: Listing, filters: ListingFilters) -> bool:
    """True when the listing satisfies every filter that is set"""
    f = filters

    if f.brand and not _contains(listing.brand, f.brand):
        return False
    if f.model and not _contains(listing.model, f.model):
        return False
    if f.color and not _contains(listing.color, f.color):
        return False
    if f.city and not _contains(listing.city, f.city):
        return False

    if f.min_year is not None and listing.year < f.min_year:
        return False
    if f.max_year is not None and listing.year > f.max_year:
        return False
    if f.min_price is not None and listing.price < f.min_price:
        return False
    if f.max_price is not None and listing.price > f.max_price:
        return False

    if f.fuel_type is not None and listing.fuel_type != f.fuel_type:
        return False
    if f.transmission is not None and listing.transmission != f.transmission:
        return False
    if f.body_type is not None and listing.body_type != f.body_type:
        return False
    if f.status is not None and listing.status != f.status:
        return False
    if f.is_featured is not None and listing.is_featured != f.is_featured:
        return False
    if f.user_id is not None and listing.user_id != f.user_id:
        return False

    if f.search:
        haystack = (listing.title, listing.description, listing.brand, listing.model, listing.color)
        if not any(_contains(field, f.search) for field in haystack):
            return False

    return True


def sort_listings(
    listings: Iterable[Listing],
    sort_by: SortBy,
    now: datetime,
    thresholds: HeatThresholds = DEFAULT_HEAT_THRESHOLDS,
) -> List[Listing]:
    """
    Order listings by strategy. Python's sort is stable, so listings with
    equal keys keep their input order (including with reverse=True), which
    keeps paginated feeds deterministic across repeated queries.
    """
    items = list(listings)

    if sort_by == SortBy.RECENT:
        return sorted(items, key=lambda l: l.created_at, reverse=True)
    elif sort_by == SortBy.PRICE_LOW:
        return sorted(items, key=lambda l: l.price)
    elif sort_by == SortBy.PRICE_HIGH:
        return sorted(items, key=lambda l: l.price, reverse=True)
    elif sort_by == SortBy.VIEWS:
        return sorted(items, key=lambda l: l.views_count, reverse=True)
    elif sort_by == SortBy.POPULAR:
        return sorted(
            items,
            key=lambda l: (l.likes_count, listing_heat(l, now, thresholds).rank, l.views_count),
            reverse=True,
        )
    raise ValueError(f"Unknown sort strategy: {sort_by!r}")


def rank(
    candidates: Iterable[Listing],
    filters: ListingFilters,
    sort_by: SortBy,
    now: datetime,
    limit: Optional[int] = None,
    skip: int = 0,
    thresholds: HeatThresholds = DEFAULT_HEAT_THRESHOLDS,
) -> List[Listing]:
    """
    Main entry point: filter candidates, order by strategy, then paginate.

    Inputs are never mutated; view and like counters are owned by the
    repository.
    """
    survivors = [listing for listing in candidates if matches_filters(listing, filters)]
    ordered = sort_listings(survivors, sort_by, now, thresholds)
    end = None if limit is None else skip + limit
    return ordered[skip:end]


def annotate(
    listings: Iterable[Listing],
    now: datetime,
    thresholds: HeatThresholds = DEFAULT_HEAT_THRESHOLDS,
) -> List[RankedListing]:
    """Attach the heat tier to each listing, preserving order"""
    return [RankedListing(listing=l, heat_tier=listing_heat(l, now, thresholds)) for l in listings]


def find_featured(
    candidates: Iterable[Listing],
    now: datetime,
    limit: Optional[int] = None,
) -> List[Listing]:
    """Featured listings, newest first"""
    return rank(candidates, ListingFilters(is_featured=True), SortBy.RECENT, now, limit=limit)


def find_similar(
    reference: Listing,
    candidates: Iterable[Listing],
    now: datetime,
    price_tolerance: float = 0.20,
    limit: Optional[int] = None,
) -> List[Listing]:
    """Same brand, price within +/- tolerance of the reference, newest first"""
    low = reference.price * (1 - price_tolerance)
    high = reference.price * (1 + price_tolerance)
    brand = reference.brand.casefold()

    def is_similar(l: Listing) -> bool:
        return l.id != reference.id and l.brand.casefold() == brand and low <= l.price <= high

    similar = [l for l in candidates if is_similar(l)]
    return rank(similar, ListingFilters(), SortBy.RECENT, now, limit=limit)
