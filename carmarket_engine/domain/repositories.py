"""Persistence contracts consumed by the engine.

Implementations own storage and transactions. ``find_by_id`` raises
``NotFound``; ``update`` is a compare-and-swap on the status the caller read
and raises ``StaleEntityError`` when another writer got there first.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from carmarket_engine.domain.models import (
    ApplicationStatus,
    BankPartner,
    CreditApplication,
    Listing,
    ListingFilters,
    Prospect,
    ProspectFilters,
    ProspectStatus,
)


class ListingRepository(ABC):
    @abstractmethod
    def find_many(self, filters: ListingFilters) -> List[Listing]: ...

    @abstractmethod
    def find_by_id(self, listing_id: str) -> Listing: ...

    @abstractmethod
    def find_by_user_id(self, user_id: str) -> List[Listing]: ...

    @abstractmethod
    def increment_views(self, listing_id: str) -> None: ...

    @abstractmethod
    def add(self, listing: Listing) -> Listing: ...


class BankPartnerRepository(ABC):
    @abstractmethod
    def find_active_for_simulator(self) -> List[BankPartner]: ...

    @abstractmethod
    def find_active_for_vehicle_year(self, vehicle_year: int) -> List[BankPartner]: ...

    @abstractmethod
    def find_by_id(self, partner_id: str) -> BankPartner: ...

    @abstractmethod
    def add(self, partner: BankPartner) -> BankPartner: ...

    @abstractmethod
    def update(self, partner: BankPartner) -> BankPartner:
        """Persist partner fields; incidents not yet stored are appended"""


class CreditApplicationRepository(ABC):
    @abstractmethod
    def find_by_id(self, application_id: str) -> CreditApplication: ...

    @abstractmethod
    def add(self, application: CreditApplication) -> CreditApplication: ...

    @abstractmethod
    def update(
        self,
        application: CreditApplication,
        expected_status: ApplicationStatus,
    ) -> CreditApplication: ...


class ProspectRepository(ABC):
    @abstractmethod
    def find_many(self, filters: Optional[ProspectFilters] = None) -> List[Prospect]: ...

    @abstractmethod
    def find_by_id(self, prospect_id: str) -> Prospect: ...

    @abstractmethod
    def add(self, prospect: Prospect) -> Prospect: ...

    @abstractmethod
    def update(self, prospect: Prospect, expected_status: ProspectStatus) -> Prospect:
        """Persist changes; reassignment entries not yet stored are appended"""
