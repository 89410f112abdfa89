"""Data access layer mapping ORM rows to domain entities"""

from dataclasses import asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from carmarket_engine.domain.exceptions import NotFound, StaleEntityError
from carmarket_engine.domain.models import (
    ApplicationDocument,
    ApplicationStatus,
    BankPartner,
    BodyType,
    Budget,
    CreditApplication,
    DocumentType,
    EmergencyContact,
    EmploymentInfo,
    FinancialInfo,
    FuelType,
    Incident,
    IncidentSeverity,
    IncidentType,
    Listing,
    ListingFilters,
    ListingStatus,
    PersonalInfo,
    Prospect,
    ProspectFilters,
    ProspectSource,
    ProspectStatus,
    ReassignmentEntry,
    ReviewInfo,
    StatusOverride,
    Transmission,
)
from carmarket_engine.domain.repositories import (
    BankPartnerRepository,
    CreditApplicationRepository,
    ListingRepository,
    ProspectRepository,
)
from carmarket_engine.infrastructure.database.models import (
    BankPartnerIncidentRecord,
    BankPartnerRecord,
    CreditApplicationRecord,
    ListingRecord,
    ProspectReassignmentRecord,
    ProspectRecord,
)
from carmarket_engine.utils.date_utils import ensure_utc


def _json_ready(value: Any) -> Any:
    """Convert dataclass-derived structures into JSON-serializable values"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(v) for v in value]
    return value


def _to_document(obj: Any) -> Optional[Dict[str, Any]]:
    return None if obj is None else _json_ready(asdict(obj))


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


def _optional_enum(enum_cls, value):
    return enum_cls(value) if value is not None else None


class SqlListingRepository(ListingRepository):
    """Repository for used-car listings"""

    def __init__(self, db: Session):
        self.db = db

    def find_many(self, filters: ListingFilters) -> List[Listing]:
        """Push simple predicates down to SQL; newest first"""
        query = self.db.query(ListingRecord)
        f = filters

        if f.status is not None:
            query = query.filter(ListingRecord.status == ListingStatus(f.status).value)
        if f.user_id is not None:
            query = query.filter(ListingRecord.user_id == f.user_id)
        if f.is_featured is not None:
            query = query.filter(ListingRecord.is_featured == f.is_featured)
        if f.brand:
            query = query.filter(ListingRecord.brand.ilike(f"%{f.brand}%"))
        if f.model:
            query = query.filter(ListingRecord.model.ilike(f"%{f.model}%"))
        if f.fuel_type is not None:
            query = query.filter(ListingRecord.fuel_type == FuelType(f.fuel_type).value)
        if f.transmission is not None:
            query = query.filter(ListingRecord.transmission == Transmission(f.transmission).value)
        if f.body_type is not None:
            query = query.filter(ListingRecord.body_type == BodyType(f.body_type).value)
        if f.min_year is not None:
            query = query.filter(ListingRecord.year >= f.min_year)
        if f.max_year is not None:
            query = query.filter(ListingRecord.year <= f.max_year)
        if f.min_price is not None:
            query = query.filter(ListingRecord.price >= f.min_price)
        if f.max_price is not None:
            query = query.filter(ListingRecord.price <= f.max_price)

        records = query.order_by(ListingRecord.created_at.desc(), ListingRecord.id).all()
        return [self._to_entity(r) for r in records]

    def find_by_id(self, listing_id: str) -> Listing:
        record = self.db.get(ListingRecord, listing_id)
        if record is None:
            raise NotFound("Listing", listing_id)
        return self._to_entity(record)

    def find_by_user_id(self, user_id: str) -> List[Listing]:
        return self.find_many(ListingFilters(user_id=user_id))

    def increment_views(self, listing_id: str) -> None:
        updated = (
            self.db.query(ListingRecord)
            .filter(ListingRecord.id == listing_id)
            .update({ListingRecord.views_count: ListingRecord.views_count + 1})
        )
        if updated == 0:
            raise NotFound("Listing", listing_id)

    def add(self, listing: Listing) -> Listing:
        self.db.add(
            ListingRecord(
                id=listing.id,
                user_id=listing.user_id,
                title=listing.title,
                brand=listing.brand,
                model=listing.model,
                year=listing.year,
                price=listing.price,
                status=ListingStatus(listing.status).value,
                views_count=max(listing.views_count, 0),
                likes_count=max(listing.likes_count, 0),
                mileage=listing.mileage,
                fuel_type=_json_ready(listing.fuel_type),
                transmission=_json_ready(listing.transmission),
                body_type=_json_ready(listing.body_type),
                color=listing.color,
                city=listing.city,
                state=listing.state,
                description=listing.description,
                is_featured=listing.is_featured,
                created_at=listing.created_at,
            )
        )
        self.db.flush()
        return listing

    @staticmethod
    def _to_entity(record: ListingRecord) -> Listing:
        return Listing(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            brand=record.brand,
            model=record.model,
            year=record.year,
            price=record.price,
            status=ListingStatus(record.status),
            created_at=ensure_utc(record.created_at),
            views_count=record.views_count,
            likes_count=record.likes_count,
            mileage=record.mileage,
            fuel_type=_optional_enum(FuelType, record.fuel_type),
            transmission=_optional_enum(Transmission, record.transmission),
            body_type=_optional_enum(BodyType, record.body_type),
            color=record.color,
            city=record.city,
            state=record.state,
            description=record.description,
            is_featured=record.is_featured,
        )


class SqlBankPartnerRepository(BankPartnerRepository):
    """Repository for bank partners and their incident logs"""

    def __init__(self, db: Session):
        self.db = db

    def find_active_for_simulator(self) -> List[BankPartner]:
        records = (
            self.db.query(BankPartnerRecord)
            .filter(BankPartnerRecord.is_active.is_(True))
            .order_by(BankPartnerRecord.credit_rate, BankPartnerRecord.name)
            .all()
        )
        return [self._to_entity(r) for r in records]

    def find_active_for_vehicle_year(self, vehicle_year: int) -> List[BankPartner]:
        records = (
            self.db.query(BankPartnerRecord)
            .filter(BankPartnerRecord.is_active.is_(True))
            .filter(
                or_(
                    BankPartnerRecord.min_vehicle_year.is_(None),
                    BankPartnerRecord.min_vehicle_year <= vehicle_year,
                )
            )
            .order_by(BankPartnerRecord.credit_rate, BankPartnerRecord.name)
            .all()
        )
        return [self._to_entity(r) for r in records]

    def find_by_id(self, partner_id: str) -> BankPartner:
        record = self.db.get(BankPartnerRecord, partner_id)
        if record is None:
            raise NotFound("BankPartner", partner_id)
        return self._to_entity(record)

    def add(self, partner: BankPartner) -> BankPartner:
        record = BankPartnerRecord(id=partner.id)
        self._apply(record, partner)
        self.db.add(record)
        self.db.flush()
        return partner

    def update(self, partner: BankPartner) -> BankPartner:
        record = self.db.get(BankPartnerRecord, partner.id)
        if record is None:
            raise NotFound("BankPartner", partner.id)
        self._apply(record, partner)
        self.db.flush()
        return partner

    @staticmethod
    def _apply(record: BankPartnerRecord, partner: BankPartner) -> None:
        record.name = partner.name
        record.credit_rate = partner.credit_rate
        record.min_term = partner.min_term
        record.max_term = partner.max_term
        record.processing_time = partner.processing_time
        record.is_active = partner.is_active
        record.min_vehicle_year = partner.min_vehicle_year
        record.requirements = sorted(partner.requirements)

        stored = {i.id: i for i in record.incidents}
        for incident in partner.incidents:
            row = stored.get(incident.id)
            if row is None:
                record.incidents.append(
                    BankPartnerIncidentRecord(
                        id=incident.id,
                        type=incident.type.value,
                        severity=incident.severity.value,
                        description=incident.description,
                        reported_by=incident.reported_by,
                        reported_at=incident.reported_at,
                        resolved=incident.resolved,
                        resolved_at=incident.resolved_at,
                        resolved_by=incident.resolved_by,
                        notes=incident.notes,
                    )
                )
            else:
                row.resolved = incident.resolved
                row.resolved_at = incident.resolved_at
                row.resolved_by = incident.resolved_by
                row.notes = incident.notes

    @staticmethod
    def _to_entity(record: BankPartnerRecord) -> BankPartner:
        return BankPartner(
            id=record.id,
            name=record.name,
            credit_rate=record.credit_rate,
            min_term=record.min_term,
            max_term=record.max_term,
            processing_time=record.processing_time,
            is_active=record.is_active,
            min_vehicle_year=record.min_vehicle_year,
            requirements=frozenset(record.requirements or []),
            incidents=tuple(
                Incident(
                    id=i.id,
                    type=IncidentType(i.type),
                    severity=IncidentSeverity(i.severity),
                    description=i.description,
                    reported_by=i.reported_by,
                    reported_at=ensure_utc(i.reported_at),
                    resolved=i.resolved,
                    resolved_at=ensure_utc(i.resolved_at),
                    resolved_by=i.resolved_by,
                    notes=i.notes,
                )
                for i in record.incidents
            ),
        )


def _override_from_document(doc: Dict[str, Any]) -> StatusOverride:
    return StatusOverride(
        from_status=doc["from_status"],
        to_status=doc["to_status"],
        actor=doc["actor"],
        reason=doc["reason"],
        at=_parse_datetime(doc["at"]),
    )


class SqlCreditApplicationRepository(CreditApplicationRepository):
    """Repository for credit applications"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, application_id: str) -> CreditApplication:
        record = self.db.get(CreditApplicationRecord, application_id)
        if record is None:
            raise NotFound("CreditApplication", application_id)
        return self._to_entity(record)

    def add(self, application: CreditApplication) -> CreditApplication:
        self.db.add(CreditApplicationRecord(id=application.id, **self._columns(application)))
        self.db.flush()
        return application

    def update(
        self,
        application: CreditApplication,
        expected_status: ApplicationStatus,
    ) -> CreditApplication:
        """Compare-and-swap on status so concurrent reviewers cannot overwrite each other"""
        expected = ApplicationStatus(expected_status)
        updated = (
            self.db.query(CreditApplicationRecord)
            .filter(
                CreditApplicationRecord.id == application.id,
                CreditApplicationRecord.status == expected.value,
            )
            .update(self._columns(application))
        )
        if updated == 0:
            if self.db.get(CreditApplicationRecord, application.id) is None:
                raise NotFound("CreditApplication", application.id)
            raise StaleEntityError("CreditApplication", application.id, expected.value)
        self.db.flush()
        return application

    @staticmethod
    def _columns(application: CreditApplication) -> Dict[str, Any]:
        return {
            "user_id": application.user_id,
            "status": application.status.value,
            "listing_id": application.listing_id,
            "personal_info": _to_document(application.personal_info),
            "employment_info": _to_document(application.employment_info),
            "financial_info": _to_document(application.financial_info),
            "emergency_contact": _to_document(application.emergency_contact),
            "documents": [_to_document(d) for d in application.documents],
            "review_info": _to_document(application.review_info),
            "overrides": [_to_document(o) for o in application.overrides],
            "submitted_at": application.submitted_at,
            "created_at": application.created_at,
            "updated_at": application.updated_at,
        }

    @staticmethod
    def _to_entity(record: CreditApplicationRecord) -> CreditApplication:
        personal = dict(record.personal_info)
        if personal.get("date_of_birth"):
            personal["date_of_birth"] = date.fromisoformat(personal["date_of_birth"])

        review = None
        if record.review_info:
            review_doc = dict(record.review_info)
            review_doc["reviewed_at"] = _parse_datetime(review_doc["reviewed_at"])
            review = ReviewInfo(**review_doc)

        documents = tuple(
            ApplicationDocument(
                id=d["id"],
                type=DocumentType(d["type"]),
                name=d["name"],
                url=d["url"],
                size=d["size"],
                uploaded_at=_parse_datetime(d["uploaded_at"]),
            )
            for d in record.documents or []
        )

        return CreditApplication(
            id=record.id,
            user_id=record.user_id,
            personal_info=PersonalInfo(**personal),
            employment_info=EmploymentInfo(**record.employment_info),
            financial_info=FinancialInfo(**record.financial_info),
            emergency_contact=EmergencyContact(**record.emergency_contact),
            status=ApplicationStatus(record.status),
            created_at=ensure_utc(record.created_at),
            updated_at=ensure_utc(record.updated_at),
            listing_id=record.listing_id,
            documents=documents,
            review_info=review,
            submitted_at=ensure_utc(record.submitted_at),
            overrides=tuple(_override_from_document(o) for o in record.overrides or []),
        )


def locked_prospect_query(db: Session, prospect_id: str) -> Query:
    """SELECT ... FOR UPDATE on the prospect row; SQLite omits the clause"""
    return (
        db.query(ProspectRecord)
        .filter(ProspectRecord.id == prospect_id)
        .populate_existing()
        .with_for_update()
    )


class SqlProspectRepository(ProspectRepository):
    """Repository for CRM prospects and their reassignment log"""

    def __init__(self, db: Session):
        self.db = db

    def find_many(self, filters: Optional[ProspectFilters] = None) -> List[Prospect]:
        f = filters or ProspectFilters()
        query = self.db.query(ProspectRecord)

        if f.status is not None:
            query = query.filter(ProspectRecord.status == ProspectStatus(f.status).value)
        if f.source is not None:
            query = query.filter(ProspectRecord.source == ProspectSource(f.source).value)
        if f.assigned_to is not None:
            query = query.filter(ProspectRecord.assigned_to == f.assigned_to)
        if f.has_appointment is True:
            query = query.filter(ProspectRecord.appointment_date.isnot(None))
        elif f.has_appointment is False:
            query = query.filter(ProspectRecord.appointment_date.is_(None))

        records = query.order_by(ProspectRecord.created_at.desc(), ProspectRecord.id).all()
        prospects = [self._to_entity(r) for r in records]

        # JSON containment is dialect-specific; filter tags in memory
        if f.tag:
            prospects = [p for p in prospects if f.tag in p.tags]
        return prospects

    def find_by_id(self, prospect_id: str) -> Prospect:
        record = self.db.get(ProspectRecord, prospect_id)
        if record is None:
            raise NotFound("Prospect", prospect_id)
        return self._to_entity(record)

    def add(self, prospect: Prospect) -> Prospect:
        record = ProspectRecord(id=prospect.id, **self._columns(prospect))
        for entry in prospect.reassignment_history:
            record.reassignments.append(self._entry_record(entry))
        self.db.add(record)
        self.db.flush()
        return prospect

    def update(self, prospect: Prospect, expected_status: ProspectStatus) -> Prospect:
        """
        Compare-and-swap on status under a row lock; new reassignment entries are
        inserted, stored ones are never rewritten.
        """
        expected = ProspectStatus(expected_status)
        record = locked_prospect_query(self.db, prospect.id).one_or_none()
        if record is None:
            raise NotFound("Prospect", prospect.id)

        # Read after the lock so a writer that committed first is visible
        stored = (
            self.db.query(ProspectReassignmentRecord)
            .filter(ProspectReassignmentRecord.prospect_id == prospect.id)
            .order_by(ProspectReassignmentRecord.seq)
            .all()
        )
        history = prospect.reassignment_history
        if len(stored) > len(history) or (
            stored and stored[-1].to_user_id != history[len(stored) - 1].to_user_id
        ):
            raise StaleEntityError("Prospect", prospect.id, expected.value)

        updated = (
            self.db.query(ProspectRecord)
            .filter(ProspectRecord.id == prospect.id, ProspectRecord.status == expected.value)
            .update(self._columns(prospect))
        )
        if updated == 0:
            raise StaleEntityError("Prospect", prospect.id, expected.value)

        for entry in history[len(stored):]:
            self.db.add(ProspectReassignmentRecord(prospect_id=prospect.id, **self._entry_columns(entry)))

        self.db.flush()
        self.db.expire(record)
        return prospect

    @staticmethod
    def _columns(prospect: Prospect) -> Dict[str, Any]:
        return {
            "name": prospect.name,
            "phone": prospect.phone,
            "email": prospect.email,
            "source": prospect.source.value,
            "status": prospect.status.value,
            "created_by": prospect.created_by,
            "assigned_to": prospect.assigned_to,
            "interested_listing_id": prospect.interested_listing_id,
            "budget_min": prospect.budget.min if prospect.budget else None,
            "budget_max": prospect.budget.max if prospect.budget else None,
            "message": prospect.message,
            "notes": prospect.notes,
            "tags": sorted(prospect.tags),
            "appointment_date": prospect.appointment_date,
            "appointment_notes": prospect.appointment_notes,
            "overrides": [_to_document(o) for o in prospect.overrides],
            "created_at": prospect.created_at,
            "updated_at": prospect.updated_at,
            "last_activity_at": prospect.last_activity_at,
        }

    @staticmethod
    def _entry_columns(entry: ReassignmentEntry) -> Dict[str, Any]:
        return {
            "from_user_id": entry.from_user_id,
            "to_user_id": entry.to_user_id,
            "reason": entry.reason,
            "reassigned_by": entry.reassigned_by,
            "reassigned_at": entry.reassigned_at,
        }

    def _entry_record(self, entry: ReassignmentEntry) -> ProspectReassignmentRecord:
        return ProspectReassignmentRecord(**self._entry_columns(entry))

    @staticmethod
    def _to_entity(record: ProspectRecord) -> Prospect:
        budget = None
        if record.budget_min is not None and record.budget_max is not None:
            budget = Budget(min=record.budget_min, max=record.budget_max)

        return Prospect(
            id=record.id,
            name=record.name,
            phone=record.phone,
            source=ProspectSource(record.source),
            status=ProspectStatus(record.status),
            created_by=record.created_by,
            created_at=ensure_utc(record.created_at),
            updated_at=ensure_utc(record.updated_at),
            last_activity_at=ensure_utc(record.last_activity_at),
            email=record.email,
            interested_listing_id=record.interested_listing_id,
            budget=budget,
            message=record.message,
            notes=record.notes,
            tags=frozenset(record.tags or []),
            appointment_date=ensure_utc(record.appointment_date),
            appointment_notes=record.appointment_notes,
            reassignment_history=tuple(
                ReassignmentEntry(
                    from_user_id=r.from_user_id,
                    to_user_id=r.to_user_id,
                    reassigned_at=ensure_utc(r.reassigned_at),
                    reason=r.reason,
                    reassigned_by=r.reassigned_by,
                )
                for r in record.reassignments
            ),
            overrides=tuple(_override_from_document(o) for o in record.overrides or []),
        )
