"""Ownership watcher: deeds owned by the legal identity and the HQ.

A deed enters the watched set when the legal identity gains it
(``on_gained_ownership``) and leaves it when the owner changes away, which
the watcher learns through its own subscription on the deed's ``owner``.

STRUCTURAL INVARIANT: at most one owned deed is the HQ, recorded as the
legal identity's ``homestead_deed``. A homestead-class deed becomes the HQ
when gained and stops being it when lost, at which point another owned
homestead (if any) takes over. ``reconcile_desync`` repairs the record when
the two drift apart.

The ``ignore_owner_changed`` guard on the company suppresses the watcher's
subscription callback while an administrative flow hands a deed to someone
else and back. It is read and written under the company lock.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from companies.errors import AuthorizationError, StateConflictError
from companies.logging import get_logger
from companies.models.world import Citizen, Deed, OwnerChangeType
from companies.world.subscriptions import Change

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)

RentEditor = Callable[[Deed, Citizen], None]


class OwnershipWatcher:

    def __init__(self, company: Company) -> None:
        self._company = company

    def watch(self, deed: Deed) -> bool:
        """Subscribe to ``deed``'s owner changes. Returns True if newly watched."""
        return self._company.subscriptions.watch(deed, "owner", self.on_owner_changed)

    def is_watching(self, deed: Deed) -> bool:
        return self._company.subscriptions.is_watching(deed, "owner")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def on_owner_changed(self, change: Change) -> None:
        company = self._company
        with company.lock:
            if company.ignore_owner_changed:
                return
        deed = change.obj
        if not isinstance(deed, Deed):
            return
        before: Optional[Citizen] = change.before
        after: Optional[Citizen] = change.after
        logger.debug(
            "deed_owner_changed",
            company=company.name,
            deed=deed.name,
            before=before.name if before is not None else None,
            after=after.name if after is not None else None,
        )
        legal = company.legal_identity
        if before is legal and after is not legal:
            self.on_lost_ownership(deed)

    def on_gained_ownership(self, deed: Deed) -> bool:
        """Start tracking ``deed``; designate it HQ if it is a homestead.

        Returns False when there was nothing to do (not owned by the legal
        identity, or already tracked and nothing to designate).
        """
        company = self._company
        legal = company.legal_identity
        if legal is None or deed.owner is not legal:
            return False
        already_tracked = not self.watch(deed)
        if already_tracked and (not deed.is_homestead or deed is company.hq_deed):
            return False

        logger.debug("ownership_gained", company=company.name, deed=deed.name)
        if deed.is_homestead:
            self._designate_hq(deed)
        else:
            company.send_company_message(f"{company.name} is now the owner of {deed.name}")
        company.access.refresh_deed(deed)
        company.mark_display_dirty()
        return True

    def on_lost_ownership(self, deed: Deed) -> None:
        company = self._company
        logger.debug("ownership_lost", company=company.name, deed=deed.name)
        company.subscriptions.unwatch(deed)
        was_hq = deed is company.hq_deed
        if was_hq:
            plots = company.hq_plots
            if plots is not None:
                company.entitlement.remove_override(plots)
            company.legal_identity.homestead_deed = None
            company.legal_identity.mark_dirty()
            company.send_company_message(f"{deed.name} is no longer the HQ of {company.name}")
            deed.residency.invitations.clear()
        else:
            company.send_company_message(f"{company.name} is no longer the owner of {deed.name}")
        deed.accessors.clear()
        deed.mark_dirty()
        company.mark_display_dirty()
        if was_hq:
            remaining = [d for d in company.owned_deeds if d.is_homestead and d is not deed]
            if remaining:
                self.on_gained_ownership(remaining[0])

    def _designate_hq(self, deed: Deed) -> None:
        company = self._company
        legal = company.legal_identity
        world = company.services.world

        previous = company.hq_deed
        if previous is not None and previous is not deed:
            plots = company.hq_plots
            if plots is not None:
                company.entitlement.remove_override(plots)
            previous.residency.invitations.clear()
            previous.mark_dirty()

        legal.homestead_deed = deed
        legal.mark_dirty()
        deed.name = world.unique_deed_name(f"{company.name} HQ", exclude=deed)

        host = deed.host_object
        if host is not None:
            previous_citizenship = host.creator.direct_citizenship if host.creator else None
            host.set_creator(legal)
            host.update_owner_name(OwnerChangeType.NORMAL)
            # Citizenship has to move before the foundation and plots react.
            company.citizenship.set_citizen_of(
                deed.cached_owning_settlement or previous_citizenship
            )
            deed.update_influencing_settlement()
            if host.foundation is not None:
                host.foundation.citizenship_updated(True)
            if host.plots is not None:
                company.entitlement.add_override(host.plots)
        if deed.cached_owning_settlement is None:
            deed.update_influencing_settlement()

        company.send_company_message(f"{deed.name} is now the new HQ of {company.name}")
        deed.residency.allow_plots_unclaiming = True
        deed.creator = legal

    # ------------------------------------------------------------------
    # Self checks and administrative flows
    # ------------------------------------------------------------------

    def reconcile_desync(self) -> tuple[bool, str]:
        """Repair the HQ record. Returns (corrected, description); never raises."""
        company = self._company
        try:
            owned_homesteads = [d for d in company.owned_deeds if d.is_homestead]
            hq = company.hq_deed
            if not owned_homesteads and hq is not None:
                message = (
                    f"Detected incorrectly assigned HQ deed '{hq.name}' (deed was "
                    "not owned by the legal identity), clearing..."
                )
                self.on_lost_ownership(hq)
                logger.warning("hq_desync_corrected", company=company.name, detail=message)
                return True, message
            if owned_homesteads and hq not in owned_homesteads:
                candidate = owned_homesteads[0]
                message = (
                    f"Detected unassigned HQ deed '{candidate.name}' (deed was owned "
                    "by the legal identity but not set as HQ), updating..."
                )
                self.on_gained_ownership(candidate)
                logger.warning("hq_desync_corrected", company=company.name, detail=message)
                return True, message
        except Exception:
            logger.exception("hq_desync_check_failed", company=company.name)
            return False, f"Couldn't check the HQ of {company.name} due to an internal error"
        return False, ""

    def edit_rent(self, deed: Deed, citizen: Citizen, editor: RentEditor) -> None:
        """Hand ``deed`` to ``citizen`` while ``editor`` runs, then hand it back.

        The temporary transfers are invisible to the watcher. The lock is not
        held while ``editor`` runs.
        """
        company = self._company
        with company.lock:
            company.ignore_owner_changed = True
            current_owner = deed.owner
        try:
            with company.lock:
                deed.force_change_owner(citizen, OwnerChangeType.ADMIN_COMMAND)
            editor(deed, citizen)
        finally:
            with company.lock:
                try:
                    deed.force_change_owner(current_owner, OwnerChangeType.ADMIN_COMMAND)
                finally:
                    company.ignore_owner_changed = False

    def take_claim(self, issuer: Citizen, deed: Optional[Deed], name: str = "") -> bool:
        """Claim a plain plot deed for the company, optionally renaming it."""
        company = self._company
        if not company.is_employee(issuer):
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't claim property for {company.name} as you are not an employee",
            )
        if deed is None or deed.is_vehicle or deed.is_homestead:
            raise StateConflictError(
                "NotClaimable",
                "Only plain plot deeds can be claimed for a company",
            )
        if deed.owner is company.legal_identity:
            return False
        if name:
            deed.name = name
        deed.force_change_owner(company.legal_identity, OwnerChangeType.NORMAL)
        deed.mark_dirty()
        self.on_gained_ownership(deed)
        company.access.refresh_all()
        company.mark_dirty()
        return True
