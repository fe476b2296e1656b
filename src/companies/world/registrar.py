"""In-memory world registrar.

The company engine never touches a global index. Everything it needs to look
up (deeds owned by the legal identity, accounts it manages, void storages it
can open, settlements that list it as a citizen, unique names) goes through
an injected ``World``.
"""

from __future__ import annotations

import itertools
from typing import Callable, Iterable, Optional, TypeVar

from companies.models.world import (
    AccountKind,
    BankAccount,
    Citizen,
    Currency,
    Deed,
    HomesteadFoundation,
    PlotsComponent,
    VoidStorage,
    WorldObject,
)
from companies.world.settlements import ImmigrationPolicy, Settlement

T = TypeVar("T")


class World:
    """Registries of every world record, with predicate queries."""

    def __init__(self, base_plots_on_homestead_claim_stake: int = 10) -> None:
        self.citizens: list[Citizen] = []
        self.deeds: list[Deed] = []
        self.accounts: list[BankAccount] = []
        self.currencies: list[Currency] = []
        self.settlements: list[Settlement] = []
        self.void_storages: list[VoidStorage] = []
        self.time_seconds: float = 0.0
        self.base_plots = base_plots_on_homestead_claim_stake
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids):06d}"

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_citizen(self, name: str, synthetic: bool = False) -> Citizen:
        citizen = Citizen(citizen_id=self._next_id("cit"), name=name, synthetic=synthetic)
        self.citizens.append(citizen)
        return citizen

    def create_deed(
        self,
        name: str,
        owner: Optional[Citizen] = None,
        homestead: bool = False,
        vehicle: bool = False,
        settlement: Optional[Settlement] = None,
        claim_papers: int = 0,
    ) -> Deed:
        """Create a deed on a fresh world object.

        Homestead deeds get a plot sizing record and a foundation component.
        """
        deed = Deed(
            deed_id=self._next_id("deed"),
            name=name,
            owner=owner,
            creator=owner,
            is_homestead=homestead,
            is_vehicle=vehicle,
            influencing_settlement=settlement,
            cached_owning_settlement=settlement,
        )
        host = WorldObject(
            object_id=self._next_id("obj"),
            name=name,
            creator=owner,
            owner_name=owner.name if owner is not None else "",
            deed=deed,
        )
        if homestead:
            host.plots = PlotsComponent(
                deed=deed, claim_papers=claim_papers, base_claims=self.base_plots,
            )
            host.foundation = HomesteadFoundation()
            deed.allowed_plots = claim_papers + self.base_plots
        deed.host_object = host
        self.deeds.append(deed)
        # Legal identities get their homestead through HQ designation only.
        if (
            homestead
            and owner is not None
            and not owner.synthetic
            and owner.homestead_deed is None
        ):
            owner.homestead_deed = deed
        return deed

    def create_account(
        self,
        name: str,
        kind: AccountKind = AccountKind.SHARED,
        owner: Optional[Citizen] = None,
        managers: Iterable[Citizen] = (),
    ) -> BankAccount:
        account = BankAccount(
            account_id=self._next_id("acct"),
            name=name,
            kind=kind,
            account_owner=owner,
            managers=set(managers),
        )
        self.accounts.append(account)
        return account

    def personal_account(self, citizen: Citizen) -> BankAccount:
        """Return ``citizen``'s personal account, creating it on first use."""
        for account in self.accounts:
            if account.kind == AccountKind.PERSONAL and account.account_owner is citizen:
                return account
        return self.create_account(
            citizen.name, AccountKind.PERSONAL, owner=citizen, managers=[citizen],
        )

    def player_currency(self, citizen: Citizen) -> Currency:
        """Return the currency issued by ``citizen``, creating it on first use."""
        for currency in self.currencies:
            if currency.owner is citizen:
                return currency
        currency = Currency(
            currency_id=self._next_id("cur"), name=f"{citizen.name} Credit", owner=citizen,
        )
        self.currencies.append(currency)
        return currency

    def create_settlement(
        self,
        name: str,
        policy: Optional[ImmigrationPolicy] = None,
        parent: Optional[Settlement] = None,
    ) -> Settlement:
        settlement = Settlement(self._next_id("stl"), name, policy, parent)
        self.settlements.append(settlement)
        return settlement

    def create_void_storage(self, name: str, access: Iterable[Citizen] = ()) -> VoidStorage:
        storage = VoidStorage(storage_id=self._next_id("void"), name=name, can_access=list(access))
        self.void_storages.append(storage)
        return storage

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def find(items: Iterable[T], predicate: Callable[[T], bool]) -> Optional[T]:
        """First item matching ``predicate``, or None."""
        return next((item for item in items if predicate(item)), None)

    def get_citizen(self, citizen_id: Optional[str]) -> Optional[Citizen]:
        return self.find(self.citizens, lambda c: c.citizen_id == citizen_id)

    def get_account(self, account_id: Optional[str]) -> Optional[BankAccount]:
        return self.find(self.accounts, lambda a: a.account_id == account_id)

    def get_currency(self, currency_id: Optional[str]) -> Optional[Currency]:
        return self.find(self.currencies, lambda c: c.currency_id == currency_id)

    def deeds_owned_by(self, citizen: Optional[Citizen]) -> list[Deed]:
        if citizen is None:
            return []
        return [d for d in self.deeds if d.owner is citizen and not d.destroyed]

    def accounts_managed_by(self, citizen: Citizen) -> list[BankAccount]:
        return [a for a in self.accounts if a.can_manage(citizen)]

    def void_storages_accessible_by(self, citizen: Citizen) -> list[VoidStorage]:
        return [s for s in self.void_storages if s.can_user_access(citizen)]

    def settlements_listing(self, citizen: Citizen) -> list[Settlement]:
        return [s for s in self.settlements if s.citizenship.has_citizen(citizen)]

    def unique_name(self, existing: Iterable[str], base: str) -> str:
        """``base`` if unused, else ``base 2``, ``base 3``, ..."""
        taken = set(existing)
        if base not in taken:
            return base
        for n in itertools.count(2):
            candidate = f"{base} {n}"
            if candidate not in taken:
                return candidate
        raise AssertionError("unreachable")

    def unique_citizen_name(self, base: str) -> str:
        return self.unique_name((c.name for c in self.citizens), base)

    def unique_account_name(self, base: str) -> str:
        return self.unique_name((a.name for a in self.accounts), base)

    def unique_currency_name(self, base: str) -> str:
        return self.unique_name((c.name for c in self.currencies), base)

    def unique_deed_name(self, base: str, exclude: Optional[Deed] = None) -> str:
        return self.unique_name((d.name for d in self.deeds if d is not exclude), base)
