"""Domain models - immutable dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from carmarket_engine.domain.exceptions import FieldViolation, ValidationError


class ListingStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    RESERVED = "reserved"
    INACTIVE = "inactive"


class FuelType(str, Enum):
    GASOLINA = "gasolina"
    DIESEL = "diesel"
    HIBRIDO = "hibrido"
    ELECTRICO = "electrico"


class Transmission(str, Enum):
    MANUAL = "manual"
    AUTOMATICO = "automatico"


class BodyType(str, Enum):
    SEDAN = "sedan"
    SUV = "suv"
    HATCHBACK = "hatchback"
    PICKUP = "pickup"
    COUPE = "coupe"
    CONVERTIBLE = "convertible"


class SortBy(str, Enum):
    RECENT = "recent"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    POPULAR = "popular"
    VIEWS = "views"


class HeatTier(str, Enum):
    NORMAL = "normal"
    HOT = "hot"
    SUPER_HOT = "super-hot"

    @property
    def rank(self) -> int:
        """Ordering weight: super-hot > hot > normal"""
        return {"normal": 0, "hot": 1, "super-hot": 2}[self.value]


class IncidentType(str, Enum):
    TARDANZA = "tardanza"
    NO_RESPUESTA = "no_respuesta"
    MALA_ATENCION = "mala_atencion"
    DOCUMENTOS_FALTANTES = "documentos_faltantes"
    PROCESO_LENTO = "proceso_lento"
    OTRO = "otro"


class IncidentSeverity(str, Enum):
    BAJA = "baja"
    MEDIA = "media"
    ALTA = "alta"
    CRITICA = "critica"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"
    CANCELLED = "cancelled"


class DocumentType(str, Enum):
    IDENTIFICATION = "identification"
    INCOME_PROOF = "income_proof"
    ADDRESS_PROOF = "address_proof"
    BANK_STATEMENT = "bank_statement"
    OTHER = "other"


class ProspectSource(str, Enum):
    MERCADOLIBRE = "mercadolibre"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    WHATSAPP = "whatsapp"
    WEBSITE = "website"
    REFERRAL = "referral"
    OTHER = "other"


class ProspectStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    NEGOTIATING = "negotiating"
    WON = "won"
    LOST = "lost"
    DISCARDED = "discarded"


# Listings


@dataclass(frozen=True)
class Listing:
    """Used-car listing as materialized by the listing repository"""

    id: str
    user_id: str
    title: str
    brand: str
    model: str
    year: int
    price: float
    status: ListingStatus
    created_at: datetime
    views_count: int = 0
    likes_count: int = 0
    mileage: Optional[int] = None
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    body_type: Optional[BodyType] = None
    color: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    description: Optional[str] = None
    is_featured: bool = False


@dataclass(frozen=True)
class ListingFilters:
    """Conjunction of listing predicates; None means no constraint"""

    brand: Optional[str] = None
    model: Optional[str] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    body_type: Optional[BodyType] = None
    color: Optional[str] = None
    city: Optional[str] = None
    status: Optional[ListingStatus] = None
    is_featured: Optional[bool] = None
    user_id: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class RankedListing:
    """Listing paired with the heat tier computed at ranking time"""

    listing: Listing
    heat_tier: HeatTier


# Bank partners


@dataclass(frozen=True)
class Incident:
    """Service complaint filed against a bank partner"""

    id: str
    type: IncidentType
    severity: IncidentSeverity
    description: str
    reported_by: str
    reported_at: datetime
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class IncidentStats:
    """Aggregate over a partner's incident list"""

    total: int
    unresolved: int
    last_incident: Optional[datetime]


def aggregate_incidents(incidents: Tuple[Incident, ...]) -> IncidentStats:
    """Recompute incident stats from the incident list"""
    return IncidentStats(
        total=len(incidents),
        unresolved=sum(1 for i in incidents if not i.resolved),
        last_incident=max((i.reported_at for i in incidents), default=None),
    )


@dataclass(frozen=True)
class BankPartner:
    """Financing partner offering vehicle credit"""

    id: str
    name: str
    credit_rate: float  # annual, percentage
    min_term: int  # months
    max_term: int  # months
    processing_time: int  # days
    is_active: bool = True
    min_vehicle_year: Optional[int] = None
    requirements: FrozenSet[str] = frozenset()
    incidents: Tuple[Incident, ...] = ()

    def __post_init__(self) -> None:
        if self.min_term > self.max_term:
            raise ValidationError(
                [FieldViolation("min_term", "min_term must not exceed max_term")]
            )

    @property
    def incident_stats(self) -> IncidentStats:
        return aggregate_incidents(self.incidents)


@dataclass(frozen=True)
class FinancingRequest:
    """Amount (currency units), term (months) and optional vehicle model year"""

    amount: float
    term: int
    vehicle_year: Optional[int] = None


@dataclass(frozen=True)
class PartnerMatch:
    """Eligible partner with its composite quality score (lower is better)"""

    partner: BankPartner
    score: float
    has_unresolved_incidents: bool


@dataclass(frozen=True)
class Quote:
    """Monthly payment simulation for one partner"""

    partner_id: str
    eligible: bool
    monthly_payment: float
    total_payment: float
    total_interest: float


@dataclass(frozen=True)
class AmortizationRow:
    """Single month in an amortization schedule"""

    number: int
    due_date: date
    payment: float
    principal: float
    interest: float
    balance: float


@dataclass(frozen=True)
class Offer:
    """Ranked partner together with its payment simulation"""

    match: PartnerMatch
    quote: Quote


# Credit applications


@dataclass(frozen=True)
class PersonalInfo:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    curp: Optional[str] = None
    rfc: Optional[str] = None
    marital_status: Optional[str] = None
    dependents: int = 0


@dataclass(frozen=True)
class EmploymentInfo:
    employment_type: str
    company_name: Optional[str] = None
    position: Optional[str] = None
    work_experience_years: int = 0


@dataclass(frozen=True)
class FinancialInfo:
    monthly_income: float
    requested_amount: float = 0.0
    down_payment: float = 0.0
    preferred_term: Optional[int] = None
    monthly_expenses: float = 0.0
    other_debts: float = 0.0
    bank_name: Optional[str] = None


@dataclass(frozen=True)
class EmergencyContact:
    name: str
    relationship: str
    phone: str


@dataclass(frozen=True)
class ApplicationDocument:
    id: str
    type: DocumentType
    name: str
    url: str
    size: int
    uploaded_at: datetime


@dataclass(frozen=True)
class ReviewInfo:
    """Outcome recorded by the reviewer on approval or rejection"""

    reviewed_by: str
    reviewed_at: datetime
    approved_amount: Optional[float] = None
    approved_term: Optional[int] = None
    interest_rate: Optional[float] = None
    monthly_payment: Optional[float] = None
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None


@dataclass(frozen=True)
class StatusOverride:
    """Audit record of an administrative status change outside the normal flow"""

    from_status: str
    to_status: str
    actor: str
    reason: str
    at: datetime


@dataclass(frozen=True)
class CreditApplication:
    id: str
    user_id: str
    personal_info: PersonalInfo
    employment_info: EmploymentInfo
    financial_info: FinancialInfo
    emergency_contact: EmergencyContact
    status: ApplicationStatus
    created_at: datetime
    updated_at: datetime
    listing_id: Optional[str] = None
    documents: Tuple[ApplicationDocument, ...] = ()
    review_info: Optional[ReviewInfo] = None
    submitted_at: Optional[datetime] = None
    overrides: Tuple[StatusOverride, ...] = ()


# Prospects


@dataclass(frozen=True)
class Budget:
    min: float
    max: float


@dataclass(frozen=True)
class ReassignmentEntry:
    """One ownership change in a prospect's audit trail"""

    from_user_id: str
    to_user_id: str
    reassigned_at: datetime
    reason: Optional[str] = None
    reassigned_by: Optional[str] = None


@dataclass(frozen=True)
class Prospect:
    """Sales lead.

    ``last_activity_at`` moves only on status-affecting updates (status
    change, reassignment, appointment set) and drives staleness;
    ``updated_at`` moves on every edit.
    """

    id: str
    name: str
    phone: str
    source: ProspectSource
    status: ProspectStatus
    created_by: str
    created_at: datetime
    updated_at: datetime
    last_activity_at: datetime
    email: Optional[str] = None
    interested_listing_id: Optional[str] = None
    budget: Optional[Budget] = None
    message: Optional[str] = None
    notes: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    appointment_date: Optional[datetime] = None
    appointment_notes: Optional[str] = None
    reassignment_history: Tuple[ReassignmentEntry, ...] = ()
    overrides: Tuple[StatusOverride, ...] = ()

    @property
    def assigned_to(self) -> str:
        """Current owner: target of the last reassignment, else the creator"""
        if self.reassignment_history:
            return self.reassignment_history[-1].to_user_id
        return self.created_by


@dataclass(frozen=True)
class ProspectFilters:
    status: Optional[ProspectStatus] = None
    source: Optional[ProspectSource] = None
    assigned_to: Optional[str] = None
    tag: Optional[str] = None
    has_appointment: Optional[bool] = None


@dataclass(frozen=True)
class ProspectStats:
    """Dashboard counts over a set of prospects"""

    total: int
    by_status: dict
    by_source: dict
    hot: int
    stale: int
    upcoming_appointments: int
