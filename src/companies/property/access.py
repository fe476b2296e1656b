"""Authorization lists on company property.

Every list is recomputed from the current roster and ownership, never
patched incrementally, so any refresh can be repeated safely.

- owned deeds: accessors are exactly the employees
- the HQ: resident invitations are the employees who are not residents yet,
  and plot unclaiming is on
- owned accounts: managers are exactly the legal identity, users exactly the
  employees
- void storages the legal identity can open: every employee is granted access
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from companies.models.world import BankAccount, Deed, VoidStorage

if TYPE_CHECKING:
    from companies.company import Company


class AccessListSynchronizer:

    def __init__(self, company: Company) -> None:
        self._company = company

    def refresh_all(self) -> None:
        for deed in self._company.owned_deeds:
            self.refresh_deed(deed)
        for account in self._company.owned_accounts:
            self.refresh_account(account)
        self.refresh_void_storages()

    def refresh_deed(self, deed: Deed) -> None:
        employees = self._company.all_employees
        deed.accessors.clear()
        deed.accessors.update(employees)
        if deed is self._company.hq_deed:
            residency = deed.residency
            residency.invitations.clear()
            residency.invitations.update(
                e for e in employees if e not in residency.residents
            )
            residency.allow_plots_unclaiming = True
        deed.mark_dirty()

    def refresh_account(self, account: BankAccount) -> None:
        company = self._company
        account.managers.clear()
        account.managers.add(company.legal_identity)
        account.users.clear()
        account.users.update(company.all_employees)
        account.mark_dirty()
        if account is not company.treasury_account:
            company.mark_display_dirty()

    def grant_void_storage(self, storage: VoidStorage) -> int:
        """Give every employee access to ``storage``. Returns how many were added."""
        return storage.grant(self._company.all_employees)

    def refresh_void_storages(self) -> int:
        company = self._company
        if company.legal_identity is None:
            return 0
        storages = company.services.world.void_storages_accessible_by(company.legal_identity)
        return sum(self.grant_void_storage(s) for s in storages)
