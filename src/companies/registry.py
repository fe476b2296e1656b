"""Company registry.

Holds every live company and answers the lookups the engine needs across
companies: who employs a citizen, which company a legal identity, account or
HQ deed belongs to. Founding and dissolution go through here so that a
dissolved company always releases its subscriptions and pending tasks.
"""

from __future__ import annotations

from typing import Any, Optional

from companies.company import Company, WorldServices
from companies.config import CompaniesConfig
from companies.errors import StateConflictError
from companies.logging import get_logger
from companies.models.world import BankAccount, Citizen, Deed

logger = get_logger(__name__)


class CompanyRegistry:
    """Registry of companies sharing one set of world services."""

    def __init__(self, services: WorldServices, config: CompaniesConfig) -> None:
        self.services = services
        self.config = config
        self._companies: dict[str, Company] = {}

    @classmethod
    def from_records(
        cls,
        services: WorldServices,
        config: CompaniesConfig,
        records: list[dict[str, Any]],
    ) -> CompanyRegistry:
        """Restore every company, then initialize and repair them."""
        registry = cls(services, config)
        for record in records:
            company = Company.from_record(record, services, config, registry)
            registry._companies[company.name] = company
        for company in registry._companies.values():
            company.initialize()
        for company in registry._companies.values():
            company.post_initialize()
        return registry

    def to_records(self) -> list[dict[str, Any]]:
        return [c.to_record() for c in self._companies.values()]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_company(self, name: str, founder: Optional[Citizen] = None) -> Company:
        """Found a company. The founder, if given, becomes its leader."""
        if not name or not name.strip():
            raise ValueError("Company name must not be empty")
        if name in self._companies:
            raise StateConflictError(
                "NameTaken", f"A company called {name} already exists",
            )
        if founder is not None:
            employer = self.get_employer(founder)
            if employer is not None:
                raise StateConflictError(
                    "AlreadyEmployedElsewhere",
                    f"Couldn't found {name} as you are already employed by "
                    f"{employer.name}",
                )
        company = Company(name, self.services, self.config, self, creator=founder)
        self._companies[name] = company
        company.initialize()
        company.post_initialize()
        if founder is not None:
            company.roster.promote(founder)
        logger.info(
            "company_created",
            company=name,
            founder=founder.name if founder is not None else None,
        )
        return company

    def dissolve(self, company: Company) -> bool:
        if self._companies.get(company.name) is not company:
            return False
        del self._companies[company.name]
        company.destroy()
        logger.info("company_dissolved", company=company.name)
        return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def companies(self) -> list[Company]:
        return list(self._companies.values())

    def get(self, name: str) -> Optional[Company]:
        return self._companies.get(name)

    def get_employer(self, citizen: Citizen) -> Optional[Company]:
        return next((c for c in self._companies.values() if c.is_employee(citizen)), None)

    def get_from_legal_identity(self, citizen: Optional[Citizen]) -> Optional[Company]:
        if citizen is None:
            return None
        return next(
            (c for c in self._companies.values() if c.legal_identity is citizen), None,
        )

    def get_from_account(self, account: Optional[BankAccount]) -> Optional[Company]:
        if account is None:
            return None
        return next(
            (c for c in self._companies.values() if c.does_own_account(account)), None,
        )

    def get_from_hq(self, deed: Deed) -> Optional[Company]:
        return next((c for c in self._companies.values() if c.hq_deed is deed), None)

    def __len__(self) -> int:
        return len(self._companies)
