"""GET /v1/listings - ranked discovery feeds"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from carmarket_engine.api.dependencies import get_request_id, heat_thresholds, http_error
from carmarket_engine.api.v1.schemas import ListingFeedResponse, ListingItem
from carmarket_engine.config import settings
from carmarket_engine.domain.exceptions import DomainException
from carmarket_engine.domain.models import (
    BodyType,
    FuelType,
    Listing,
    ListingFilters,
    ListingStatus,
    SortBy,
    Transmission,
)
from carmarket_engine.domain.ranking import annotate, find_featured, find_similar, rank
from carmarket_engine.infrastructure.database.repositories import SqlListingRepository
from carmarket_engine.infrastructure.database.session import get_db
from carmarket_engine.infrastructure.observability.metrics import listing_feed_counter
from carmarket_engine.utils.date_utils import utcnow

router = APIRouter()


def _feed(listings: List[Listing]) -> ListingFeedResponse:
    items = [
        ListingItem(
            id=r.listing.id,
            title=r.listing.title,
            brand=r.listing.brand,
            model=r.listing.model,
            year=r.listing.year,
            price=r.listing.price,
            status=r.listing.status.value,
            views_count=r.listing.views_count,
            likes_count=r.listing.likes_count,
            is_featured=r.listing.is_featured,
            city=r.listing.city,
            created_at=r.listing.created_at,
            heat_tier=r.heat_tier.value,
        )
        for r in annotate(listings, utcnow(), heat_thresholds())
    ]
    return ListingFeedResponse(items=items, count=len(items))


@router.get("/listings", response_model=ListingFeedResponse)
def get_listings(
    brand: Optional[str] = None,
    model: Optional[str] = None,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    fuel_type: Optional[FuelType] = None,
    transmission: Optional[Transmission] = None,
    body_type: Optional[BodyType] = None,
    color: Optional[str] = None,
    city: Optional[str] = None,
    status: Optional[ListingStatus] = None,
    is_featured: Optional[bool] = None,
    user_id: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: SortBy = SortBy.RECENT,
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """
    Filtered, ranked listing feed.

    Every listing carries its heat tier; ordering is stable so repeated
    queries paginate deterministically.
    """
    filters = ListingFilters(
        brand=brand,
        model=model,
        min_year=min_year,
        max_year=max_year,
        min_price=min_price,
        max_price=max_price,
        fuel_type=fuel_type,
        transmission=transmission,
        body_type=body_type,
        color=color,
        city=city,
        status=status,
        is_featured=is_featured,
        user_id=user_id,
        search=search,
    )
    candidates = SqlListingRepository(db).find_many(filters)
    ranked = rank(candidates, filters, sort_by, utcnow(), limit=limit, skip=skip, thresholds=heat_thresholds())

    listing_feed_counter.labels(sort_by=sort_by.value).inc()
    return _feed(ranked)


@router.get("/listings/featured", response_model=ListingFeedResponse)
def get_featured_listings(
    limit: int = Query(6, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Active featured listings, newest first"""
    candidates = SqlListingRepository(db).find_many(
        ListingFilters(is_featured=True, status=ListingStatus.ACTIVE)
    )
    listing_feed_counter.labels(sort_by="featured").inc()
    return _feed(find_featured(candidates, utcnow(), limit=limit))


@router.get("/listings/{listing_id}/similar", response_model=ListingFeedResponse)
def get_similar_listings(
    listing_id: str,
    request: Request,
    limit: int = Query(6, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Active listings of the same brand priced within the configured tolerance"""
    request_id = get_request_id(request)
    repo = SqlListingRepository(db)

    try:
        reference = repo.find_by_id(listing_id)
    except DomainException as e:
        raise http_error(e, request_id, entity="listing")

    candidates = repo.find_many(ListingFilters(brand=reference.brand, status=ListingStatus.ACTIVE))
    similar = find_similar(
        reference,
        candidates,
        utcnow(),
        price_tolerance=settings.similar_price_tolerance,
        limit=limit,
    )

    listing_feed_counter.labels(sort_by="similar").inc()
    return _feed(similar)


@router.post("/listings/{listing_id}/views", status_code=204)
def record_listing_view(listing_id: str, request: Request, db: Session = Depends(get_db)):
    """Count a detail-page view; the ranking core only ever reads this counter"""
    try:
        SqlListingRepository(db).increment_views(listing_id)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, get_request_id(request), entity="listing")
