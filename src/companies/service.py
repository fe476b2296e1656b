"""Company service: facade over the registry and the company components.

This is the interface the surrounding game server talks to. It turns
expected failures (authorization, state conflicts, pipeline rejections,
internal lookup failures) into ``ServiceResult`` values, and routes world
events (a deed acquired by a legal identity, a money transfer, a citizen
logging in or out) to the companies they concern.

Usage:
    config = CompaniesConfig.from_config_dir()
    service = CompanyService.create(config)

    result = service.found_company("Acme", alice)
    result = service.invite("Acme", alice, bob)
    result = service.join("Acme", bob)

    service.on_money_transfer(transfer)
    service.check_all_desyncs()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from companies.company import Company, WorldServices
from companies.config import CompaniesConfig
from companies.errors import CompanyError, IntegrityDesync, InternalLookupFailure
from companies.logging import get_logger, setup_logging
from companies.models.actions import MoneyTransfer
from companies.models.world import AccountKind, BankAccount, Citizen, Deed, VoidStorage
from companies.property.ownership import RentEditor
from companies.registry import CompanyRegistry
from companies.world.settlements import Settlement

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation.

    ``error`` carries the typed failure when there is one; ``errors`` holds
    the human-readable messages.
    """
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error: Optional[CompanyError] = None

    @property
    def message(self) -> str:
        return self.errors[0] if self.errors else ""


class CompanyService:
    """Unified company engine facade."""

    def __init__(self, registry: CompanyRegistry) -> None:
        self._registry = registry

    @classmethod
    def create(
        cls,
        config: CompaniesConfig,
        services: Optional[WorldServices] = None,
        configure_logging: bool = False,
    ) -> CompanyService:
        if configure_logging:
            setup_logging(config.log_level, config.log_json)
        services = services or WorldServices.in_memory(config)
        return cls(CompanyRegistry(services, config))

    @property
    def registry(self) -> CompanyRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _company(self, name: str) -> Company:
        company = self._registry.get(name)
        if company is None:
            raise CompanyError("UnknownCompany", f"No company called {name}")
        return company

    def _run(self, operation: Callable[[], Any]) -> ServiceResult:
        try:
            data = operation()
        except InternalLookupFailure as e:
            logger.error("internal_lookup_failure", code=e.code, detail=e.message)
            return ServiceResult(success=False, errors=[e.message], error=e)
        except CompanyError as e:
            return ServiceResult(success=False, errors=[e.message], error=e)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        if isinstance(data, dict):
            return ServiceResult(success=True, data=data)
        return ServiceResult(success=True)

    # ------------------------------------------------------------------
    # Company lifecycle
    # ------------------------------------------------------------------

    def found_company(self, name: str, founder: Citizen) -> ServiceResult:
        def found() -> dict[str, Any]:
            company = self._registry.create_company(name, founder)
            return {
                "company": company.name,
                "legal_identity": company.legal_identity.name,
                "treasury_account": company.treasury_account.name,
                "share_currency": company.share_currency.name,
            }
        return self._run(found)

    def dissolve_company(self, name: str) -> ServiceResult:
        return self._run(lambda: {"dissolved": self._registry.dissolve(self._company(name))})

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def invite(self, name: str, invoker: Citizen, target: Citizen) -> ServiceResult:
        return self._run(lambda: self._company(name).roster.invite(invoker, target))

    def revoke_invite(self, name: str, invoker: Citizen, target: Citizen) -> ServiceResult:
        return self._run(lambda: self._company(name).roster.revoke_invite(invoker, target))

    def reject_invite(self, name: str, target: Citizen) -> ServiceResult:
        return self._run(lambda: {"rejected": self._company(name).roster.reject_invite(target)})

    def join(self, name: str, target: Citizen) -> ServiceResult:
        return self._run(lambda: self._company(name).roster.join(target))

    def leave(self, name: str, target: Citizen) -> ServiceResult:
        return self._run(lambda: self._company(name).roster.leave(target))

    def fire(self, name: str, invoker: Citizen, target: Citizen) -> ServiceResult:
        return self._run(lambda: self._company(name).roster.fire(invoker, target))

    def force_join(self, name: str, target: Citizen) -> ServiceResult:
        return self._run(lambda: {"changed": self._company(name).roster.force_join(target)})

    def force_leave(self, name: str, target: Citizen) -> ServiceResult:
        return self._run(lambda: {"changed": self._company(name).roster.force_leave(target)})

    def promote(self, name: str, new_leader: Citizen) -> ServiceResult:
        return self._run(lambda: {"changed": self._company(name).roster.promote(new_leader)})

    def demote(self, name: str, current_leader: Citizen) -> ServiceResult:
        def demote() -> dict[str, Any]:
            if not self._company(name).roster.demote(current_leader):
                raise CompanyError(
                    "NotLeader", f"{current_leader.name} is not the CEO of {name}",
                )
            return {"changed": True}
        return self._run(demote)

    # ------------------------------------------------------------------
    # Settlements
    # ------------------------------------------------------------------

    def apply_to_settlement(
        self, name: str, invoker: Citizen, target: Settlement,
    ) -> ServiceResult:
        return self._run(
            lambda: {"joined": self._company(name).citizenship.apply_to_settlement(invoker, target)}
        )

    def join_settlement(self, name: str, invoker: Citizen, target: Settlement) -> ServiceResult:
        return self._run(lambda: self._company(name).citizenship.join_settlement(invoker, target))

    def leave_settlement(self, name: str, invoker: Citizen) -> ServiceResult:
        return self._run(lambda: self._company(name).citizenship.leave_settlement(invoker))

    # ------------------------------------------------------------------
    # Property
    # ------------------------------------------------------------------

    def take_claim(
        self, name: str, issuer: Citizen, deed: Optional[Deed], new_name: str = "",
    ) -> ServiceResult:
        return self._run(
            lambda: {"claimed": self._company(name).ownership.take_claim(issuer, deed, new_name)}
        )

    def edit_rent(
        self, name: str, deed: Deed, citizen: Citizen, editor: RentEditor,
    ) -> ServiceResult:
        return self._run(lambda: self._company(name).ownership.edit_rent(deed, citizen, editor))

    # ------------------------------------------------------------------
    # Self checks
    # ------------------------------------------------------------------

    def check_hq_desync(self, name: str) -> ServiceResult:
        return self._desync_result(
            lambda: self._company(name).ownership.reconcile_desync(), "HQDesync",
        )

    def check_citizenship_desync(self, name: str) -> ServiceResult:
        return self._desync_result(
            lambda: self._company(name).citizenship.check_desync(), "CitizenshipDesync",
        )

    def _desync_result(
        self, check: Callable[[], tuple[bool, str]], code: str,
    ) -> ServiceResult:
        try:
            corrected, message = check()
        except CompanyError as e:
            return ServiceResult(success=False, errors=[e.message], error=e)
        if not corrected:
            return ServiceResult(success=True, data={"corrected": False})
        return ServiceResult(
            success=True,
            errors=[message],
            data={"corrected": True},
            error=IntegrityDesync(code, message),
        )

    def check_all_desyncs(self) -> list[ServiceResult]:
        """Run every self check on every company. Returns the corrections made."""
        corrections = []
        for company in self._registry.companies:
            for result in (
                self.check_hq_desync(company.name),
                self.check_citizenship_desync(company.name),
            ):
                if result.data.get("corrected"):
                    corrections.append(result)
        return corrections

    # ------------------------------------------------------------------
    # World event routing
    # ------------------------------------------------------------------

    def on_deed_acquired(self, deed: Deed) -> bool:
        """A deed's new owner may be a legal identity; let its company know."""
        company = self._registry.get_from_legal_identity(deed.owner)
        if company is None:
            return False
        return company.ownership.on_gained_ownership(deed)

    def on_legal_identity_gained_void_storage(
        self, citizen: Citizen, storage: VoidStorage,
    ) -> int:
        company = self._registry.get_from_legal_identity(citizen)
        if company is None:
            return 0
        return company.access.grant_void_storage(storage)

    def on_money_transfer(self, transfer: MoneyTransfer) -> int:
        """Relay a money movement to every company it concerns. Returns relays sent."""
        relayed = 0
        source, target = transfer.source_account, transfer.target_account

        receiver = self._registry.get_from_account(target)
        if receiver is not None and receiver.finance.on_receive_money(transfer):
            relayed += 1
        sender = self._registry.get_from_account(source)
        if sender is not None and sender.finance.on_give_money(transfer):
            relayed += 1

        employer = self._employer_of_personal_account(target)
        if employer is not None:
            if employer.finance.on_employee_receive_money(transfer):
                relayed += 1
            employer.finance.on_employee_wealth_changed(target)
        employer = self._employer_of_personal_account(source)
        if employer is not None:
            if employer.finance.on_employee_give_money(transfer):
                relayed += 1
            employer.finance.on_employee_wealth_changed(source)
        return relayed

    def _employer_of_personal_account(self, account: Optional[BankAccount]) -> Optional[Company]:
        if account is None or account.kind != AccountKind.PERSONAL:
            return None
        if account.account_owner is None:
            return None
        return self._registry.get_employer(account.account_owner)

    def on_citizen_online_changed(self, citizen: Citizen) -> bool:
        """A citizen logged in or out; refresh their employer's online state."""
        company = self._registry.get_employer(citizen)
        if company is None:
            return False
        return company.update_online_state()
