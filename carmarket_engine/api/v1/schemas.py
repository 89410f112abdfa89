"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# Listings


class ListingItem(BaseModel):
    """Listing as shown in a ranked feed"""

    id: str
    title: str
    brand: str
    model: str
    year: int
    price: float
    status: str
    views_count: int
    likes_count: int
    is_featured: bool
    city: Optional[str] = None
    created_at: datetime
    heat_tier: str


class ListingFeedResponse(BaseModel):
    items: List[ListingItem]
    count: int


# Financing


class FinancingRequestBody(BaseModel):
    """Request body for POST /v1/financing/match"""

    amount: float = Field(..., gt=0, description="Amount to finance")
    term: int = Field(..., gt=0, description="Term in months")
    vehicle_year: Optional[int] = Field(None, gt=0, description="Vehicle model year")
    limit: Optional[int] = Field(None, gt=0, description="Maximum number of offers")


class QuoteRequestBody(BaseModel):
    """Request body for POST /v1/financing/quote"""

    partner_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    term: int = Field(..., gt=0)
    vehicle_year: Optional[int] = Field(None, gt=0)


class QuoteResponse(BaseModel):
    partner_id: str
    eligible: bool
    monthly_payment: float
    total_payment: float
    total_interest: float


class OfferItem(BaseModel):
    """Eligible partner ranked by composite score (lower is better)"""

    partner_id: str
    partner_name: str
    credit_rate: float
    processing_time: int
    score: float
    has_unresolved_incidents: bool
    monthly_payment: float
    total_payment: float
    total_interest: float


class MatchResponse(BaseModel):
    offers: List[OfferItem]


class AmortizationRowSchema(BaseModel):
    number: int
    due_date: date
    payment: float
    principal: float
    interest: float
    balance: float


class ScheduleResponse(BaseModel):
    partner_id: str
    amount: float
    term: int
    credit_rate: float
    rows: List[AmortizationRowSchema]


class IncidentReportBody(BaseModel):
    type: str
    severity: str
    description: str = ""
    reported_by: str = ""


class IncidentResolveBody(BaseModel):
    resolved_by: str = Field(..., min_length=1)
    notes: Optional[str] = None


class IncidentStatsResponse(BaseModel):
    partner_id: str
    total: int
    unresolved: int
    last_incident: Optional[datetime] = None


class IncidentItem(BaseModel):
    id: str
    type: str
    severity: str
    description: str
    reported_by: str
    reported_at: datetime
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None


class IncidentListResponse(BaseModel):
    partner_id: str
    items: List[IncidentItem]


# Credit applications


class PersonalInfoSchema(BaseModel):
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    curp: Optional[str] = None
    rfc: Optional[str] = None
    marital_status: Optional[str] = None
    dependents: int = 0


class EmploymentInfoSchema(BaseModel):
    employment_type: str
    company_name: Optional[str] = None
    position: Optional[str] = None
    work_experience_years: int = 0


class FinancialInfoSchema(BaseModel):
    monthly_income: float = 0.0
    requested_amount: float = 0.0
    down_payment: float = 0.0
    preferred_term: Optional[int] = None
    monthly_expenses: float = 0.0
    other_debts: float = 0.0
    bank_name: Optional[str] = None


class EmergencyContactSchema(BaseModel):
    name: str
    relationship: str
    phone: str


class CreditApplicationCreate(BaseModel):
    """Request body for POST /v1/credit-applications"""

    user_id: str = Field(..., min_length=1)
    personal_info: PersonalInfoSchema
    employment_info: EmploymentInfoSchema
    financial_info: FinancialInfoSchema
    emergency_contact: EmergencyContactSchema
    listing_id: Optional[str] = None


class ApplicationTransitionBody(BaseModel):
    to_status: str
    reviewed_by: Optional[str] = None
    approved_amount: Optional[float] = Field(None, gt=0)
    approved_term: Optional[int] = Field(None, gt=0)
    interest_rate: Optional[float] = Field(None, ge=0)
    rejection_reason: Optional[str] = None
    comments: Optional[str] = None


class OverrideBody(BaseModel):
    to_status: str
    actor: str = ""
    reason: str = ""


class DocumentBody(BaseModel):
    type: str
    name: str = ""
    url: str = ""
    size: int = 0


class ReviewInfoSchema(BaseModel):
    reviewed_by: str
    reviewed_at: datetime
    approved_amount: Optional[float] = None
    approved_term: Optional[int] = None
    interest_rate: Optional[float] = None
    monthly_payment: Optional[float] = None
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None


class StatusOverrideSchema(BaseModel):
    from_status: str
    to_status: str
    actor: str
    reason: str
    at: datetime


class DocumentSchema(BaseModel):
    id: str
    type: str
    name: str
    url: str
    size: int
    uploaded_at: datetime


class CreditApplicationResponse(BaseModel):
    id: str
    user_id: str
    status: str
    listing_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    review_info: Optional[ReviewInfoSchema] = None
    documents: List[DocumentSchema] = []
    overrides: List[StatusOverrideSchema] = []


# Prospects


class BudgetSchema(BaseModel):
    min: float
    max: float


class ProspectCreate(BaseModel):
    """Request body for POST /v1/prospects"""

    name: str = ""
    phone: str = ""
    source: str
    created_by: str = ""
    email: Optional[str] = None
    interested_listing_id: Optional[str] = None
    budget: Optional[BudgetSchema] = None
    message: Optional[str] = None
    tags: List[str] = []


class ProspectStatusBody(BaseModel):
    to_status: str


class ReassignBody(BaseModel):
    to_user_id: str = ""
    reason: Optional[str] = None
    reassigned_by: Optional[str] = None


class AppointmentBody(BaseModel):
    appointment_date: datetime
    notes: Optional[str] = None


class TagBody(BaseModel):
    tag: str


class NotesBody(BaseModel):
    notes: str


class ReassignmentSchema(BaseModel):
    from_user_id: str
    to_user_id: str
    reassigned_at: datetime
    reason: Optional[str] = None
    reassigned_by: Optional[str] = None


class ProspectResponse(BaseModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    source: str
    status: str
    created_by: str
    assigned_to: str
    tags: List[str]
    notes: Optional[str] = None
    budget: Optional[BudgetSchema] = None
    appointment_date: Optional[datetime] = None
    appointment_notes: Optional[str] = None
    is_hot: bool
    is_stale: bool
    created_at: datetime
    updated_at: datetime
    reassignment_history: List[ReassignmentSchema]
    overrides: List[StatusOverrideSchema] = []


class ProspectListResponse(BaseModel):
    items: List[ProspectResponse]
    count: int


class ProspectStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_source: Dict[str, int]
    hot: int
    stale: int
    upcoming_appointments: int
