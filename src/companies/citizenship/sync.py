"""Citizenship synchronizer.

The legal identity's settlement citizenship is the company's citizenship.
When the property-limits policy is on, every employee is kept on the same
settlement roster as the legal identity. Those moves are flagged
employer-driven so they do not count toward immigration limits.

Joining, applying to and leaving a settlement on the company's behalf is
reserved to the leader and guarded by side-effect-free pre-checks. The first
failing precondition's message is surfaced verbatim.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from companies.errors import (
    AuthorizationError,
    InternalLookupFailure,
    StateConflictError,
)
from companies.logging import get_logger
from companies.models.world import Citizen
from companies.world.messaging import NotificationCategory
from companies.world.settlements import CheckResult, Settlement
from companies.world.subscriptions import Change

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)


class CitizenshipSynchronizer:

    def __init__(self, company: Company) -> None:
        self._company = company

    # ------------------------------------------------------------------
    # Mirroring
    # ------------------------------------------------------------------

    def on_legal_identity_citizenship_changed(self, change: Change) -> None:
        company = self._company
        before: Optional[Settlement] = change.before
        current = company.direct_citizenship
        if before is not None:
            if current is not None:
                company.send_company_message(
                    f"{company.name} has left {before.name} and joined {current.name}."
                )
            else:
                company.send_company_message(f"{company.name} has left {before.name}.")
        elif current is not None:
            company.send_company_message(f"{company.name} has joined {current.name}.")
        self.update_citizenships()
        company.mark_display_dirty()
        company.legal_identity.mark_dirty()

    def update_citizenships(self) -> None:
        if not self._company.config.property_limits_enabled:
            return
        for employee in self._company.all_employees:
            self.reconcile(employee)

    def reconcile(self, member: Citizen) -> bool:
        """Put ``member`` on the company's settlement roster. Returns True if moved."""
        target = self._company.direct_citizenship
        current = member.direct_citizenship
        if target is None:
            if current is None:
                return False
            return self._roster_of(current).leave(member, employer_driven=True)
        if current is target:
            return False
        if current is not None:
            self._roster_of(current).leave(member, employer_driven=True)
        return self._roster_of(target).add_to_roster(member, employer_driven=True)

    def set_citizen_of(self, settlement: Optional[Settlement]) -> None:
        """Move the legal identity to ``settlement`` (or to no settlement)."""
        legal = self._company.legal_identity
        previous = legal.direct_citizenship
        if previous is settlement:
            return
        # Publish a single previous -> settlement transition before the
        # rosters are touched; both roster calls then see it already applied.
        legal.direct_citizenship = settlement
        if previous is not None and previous.roster is not None:
            previous.roster.leave(legal)
        if settlement is not None:
            self._roster_of(settlement).add_to_roster(legal)

    def check_desync(self) -> tuple[bool, str]:
        """Repair the legal identity's recorded citizenship against the rosters."""
        company = self._company
        legal = company.legal_identity
        try:
            current = company.direct_citizenship
            if current is not None and not current.citizenship.has_citizen(legal):
                message = (
                    f"{company.name} was a citizen of {current.name} but not on "
                    "the roster, removing..."
                )
                legal.direct_citizenship = None
                logger.warning("citizenship_desync_corrected", company=company.name, detail=message)
                return True, message
            for settlement in company.services.world.settlements:
                if not settlement.citizenship.has_citizen(legal):
                    continue
                if settlement is current:
                    break
                message = (
                    f"{company.name} was on the roster for {settlement.name} but "
                    "not a citizen of it, updating..."
                )
                legal.direct_citizenship = settlement
                logger.warning("citizenship_desync_corrected", company=company.name, detail=message)
                return True, message
        except Exception:
            logger.exception("citizenship_desync_check_failed", company=company.name)
            return False, (
                f"Couldn't check the citizenship of {company.name} due to an internal error"
            )
        return False, ""

    # ------------------------------------------------------------------
    # Pre-checks
    # ------------------------------------------------------------------

    def can_join(self, target: Settlement) -> CheckResult:
        try:
            self._check_can_join(target)
        except (StateConflictError, InternalLookupFailure) as e:
            return CheckResult.fail(e.message)
        return CheckResult.ok()

    def can_leave(self) -> CheckResult:
        try:
            self._check_can_leave()
        except (StateConflictError, InternalLookupFailure) as e:
            return CheckResult.fail(e.message)
        return CheckResult.ok()

    def _check_can_join(self, target: Settlement) -> None:
        legal = self._company.legal_identity
        policy = target.immigration_policy
        if policy is not None:
            result = policy.check_can_join_as_citizen(legal, join_as_direct_citizen=True)
            if not result.success:
                raise StateConflictError("SettlementPolicy", result.message)
        roster = target.citizenship.roster
        if roster is None:
            logger.error("roster_missing", settlement=target.name)
            raise InternalLookupFailure(
                "RosterMissing",
                f"Couldn't join {target.name} due to an internal error",
            )
        result = roster.can_be_member(legal)
        if not result.success:
            raise StateConflictError(
                "RosterIneligible",
                f"Couldn't join {target.name} as {result.message}",
            )

    def _check_can_leave(self) -> None:
        company = self._company
        legal = company.legal_identity
        current = company.direct_citizenship
        if current is None:
            raise StateConflictError(
                "NoCitizenship",
                f"{company.name} is not currently part of any settlement.",
            )
        owned = company.owned_deeds
        for settlement in current.top_parent().self_and_descendants():
            inside = [d for d in owned if d.cached_owning_settlement is settlement]
            result = settlement.immigration_policy.can_leave_with_properties(legal, inside)
            if not result.success:
                raise StateConflictError("SettlementPolicy", result.message)
        check = current.citizenship.homestead_leave_check
        if check is None:
            logger.error("homestead_leave_check_missing", settlement=current.name)
            raise InternalLookupFailure(
                "HomesteadLeaveCheckMissing",
                f"Couldn't leave {current.name} due to an internal error",
            )
        result = check(legal, False)
        if not result.success:
            raise StateConflictError(
                "HomesteadRestriction",
                f"Couldn't leave {current.name} as {result.message}",
            )

    # ------------------------------------------------------------------
    # Settlement transitions on the company's behalf
    # ------------------------------------------------------------------

    def apply_to_settlement(self, invoker: Citizen, target: Settlement) -> bool:
        """Apply, or join outright when there is no approver.

        Returns True if the company joined immediately, False if an
        application is pending.
        """
        company = self._company
        legal = company.legal_identity
        if invoker is not company.leader:
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't apply to join {target.name} as you are not the CEO "
                f"of {company.name}",
            )
        roster = self._roster_of(target)
        if not roster.can_apply(legal):
            raise StateConflictError(
                "CannotApply",
                f"Couldn't apply to join {target.name} as {company.name} has "
                f"already applied or been invited, or {target.name} is not "
                "currently accepting new applicants.",
            )
        self._check_can_join(target)
        approver = target.immigration_policy.approver if target.immigration_policy else None
        if approver is None:
            roster.add_to_roster(legal)
            return True
        roster.applicants.add(legal)
        company.send_company_message(f"{company.name} has applied to join {target.name}.")
        company.services.messenger.mail(
            approver,
            f"{company.name} has applied to be a Citizen of {target.name}. You "
            "may approve or reject this application in the settlement's "
            "citizenship panel.",
            NotificationCategory.NOTIFICATIONS,
        )
        return False

    def join_settlement(self, invoker: Citizen, target: Settlement) -> None:
        company = self._company
        legal = company.legal_identity
        if invoker is not company.leader:
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't try to join {target.name} as you are not the CEO of "
                f"{company.name}",
            )
        self._check_can_join(target)
        roster = self._roster_of(target)
        approver = target.immigration_policy.approver if target.immigration_policy else None
        if approver is not None and not roster.can_accept_invitation(legal):
            raise StateConflictError(
                "NotInvited",
                f"Couldn't try to join {target.name} as {company.name} has not "
                "been invited.",
            )
        roster.add_to_roster(legal)

    def leave_settlement(self, invoker: Citizen) -> None:
        company = self._company
        legal = company.legal_identity
        current = company.direct_citizenship
        if current is None:
            raise StateConflictError(
                "NoCitizenship",
                f"{company.name} is not currently part of any settlement.",
            )
        if invoker is not company.leader:
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't leave {current.name} from {company.name} as you are "
                f"not the CEO of {company.name}",
            )
        roster = self._roster_of(current)
        if not roster.can_leave(legal):
            raise StateConflictError(
                "NotCitizen",
                f"Couldn't leave {current.name} as {company.name} is not "
                "currently a citizen.",
            )
        self._check_can_leave()
        roster.force_remove_member(legal)

    def _roster_of(self, settlement: Settlement):
        roster = settlement.citizenship.roster
        if roster is None:
            logger.error("roster_missing", settlement=settlement.name)
            raise InternalLookupFailure(
                "RosterMissing",
                f"The citizen roster of {settlement.name} could not be resolved "
                "due to an internal error",
            )
        return roster
