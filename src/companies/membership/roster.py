"""Membership roster: employees, leader and pending invitations.

Transitions that change who is employed (join, leave, fire) are submitted to
the action pipeline as a single action with a post effect. The post effect
performs the actual set mutation and is gated on the mutation reporting a
change, so a duplicate or racing delivery never runs the cascade twice.

Administrative transitions (force_join, force_leave, promote, demote) bypass
the pipeline but follow the same gating rule.

Expected failures are raised as typed errors; the service layer converts them
to results.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from companies.errors import AuthorizationError, ExternalRejection, StateConflictError
from companies.logging import get_logger
from companies.models.actions import CitizenJoinCompany, CitizenLeaveCompany
from companies.models.world import Citizen
from companies.world.actions import ActionPack

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)


class MembershipRoster:
    """Roster transitions for one company."""

    def __init__(self, company: Company) -> None:
        self._company = company

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    def invite(self, invoker: Citizen, target: Citizen) -> None:
        """Invite ``target``. Only the leader may invite."""
        company = self._company
        if invoker is not company.leader:
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't invite {target.name} to {company.name} as you are "
                f"not the CEO of {company.name}",
            )
        if target in company.invitees:
            raise StateConflictError(
                "AlreadyInvited",
                f"Couldn't invite {target.name} to {company.name} as they are "
                "already invited",
            )
        if company.is_employee(target):
            raise StateConflictError(
                "AlreadyEmployed",
                f"Couldn't invite {target.name} to {company.name} as they are "
                "already an employee",
            )
        if not company.invitees.add(target):
            raise StateConflictError(
                "AlreadyInvited",
                f"Couldn't invite {target.name} to {company.name} as they are "
                "already invited",
            )
        self._on_invitees_changed(target)

        company.services.messenger.mail(
            target,
            f"You have been invited to join {company.name}\n\n"
            f"To accept use: /company join {company.name}\n"
            f"To reject use: /company reject {company.name}",
        )
        company.send_company_message(
            f"{invoker.name} has invited {target.name} to join the company."
        )

    def revoke_invite(self, invoker: Citizen, target: Citizen) -> None:
        company = self._company
        if invoker is not company.leader:
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't withdraw invite of {target.name} to {company.name} "
                f"as you are not the CEO of {company.name}",
            )
        if not company.invitees.discard(target):
            raise StateConflictError(
                "NotInvited",
                f"Couldn't withdraw invite of {target.name} to {company.name} "
                "as they have not been invited",
            )
        self._on_invitees_changed(target)
        company.send_company_message(
            f"{invoker.name} has withdrawn the invitation for {target.name} "
            "to join the company."
        )

    def reject_invite(self, target: Citizen) -> bool:
        """Invitee declines. Returns False if there was no invitation."""
        if not self._company.invitees.discard(target):
            return False
        self._on_invitees_changed(target)
        return True

    # ------------------------------------------------------------------
    # Pipeline transitions
    # ------------------------------------------------------------------

    def join(self, target: Citizen) -> None:
        company = self._company
        employer = company.lookup_employer(target)
        if employer is not None:
            raise StateConflictError(
                "AlreadyEmployedElsewhere",
                f"Couldn't join {company.name} as you are already employed by "
                f"{employer.name}.\nYou must leave {employer.name} before "
                f"joining {company.name}.",
            )
        if target not in company.invitees:
            raise StateConflictError(
                "NotInvited",
                f"Couldn't join {company.name} as you have not been invited.",
            )
        if company.config.property_limits_enabled and target.homestead_deed is not None:
            raise StateConflictError(
                "PropertyConflict",
                f"Couldn't join {company.name} as you have a homestead deed.\n"
                f"You must remove {target.homestead_deed.name} before joining "
                f"{company.name}.",
            )

        def commit() -> None:
            if not company.invitees.discard(target):
                return
            if not company.members.add(target):
                return
            company.on_employees_changed()
            company.mark_per_user_display_dirty(target)
            company.send_company_message(f"{target.name} has joined the company.")

        pack = ActionPack().add_action(
            CitizenJoinCompany(citizen=target, company_legal_identity=company.legal_identity)
        ).add_post_effect(commit)
        self._perform(pack)

    def leave(self, target: Citizen) -> None:
        company = self._company
        if not company.is_employee(target):
            raise StateConflictError(
                "NotEmployed",
                f"Couldn't resign from {company.name} as you are not an employee",
            )
        if target is company.leader:
            raise StateConflictError(
                "IsLeader",
                f"Couldn't resign from {company.name} as you are the CEO",
            )

        def commit() -> None:
            if not company.members.discard(target):
                return
            company.on_employees_changed()
            company.mark_per_user_display_dirty(target)
            company.send_company_message(f"{target.name} has resigned from the company.")

        pack = ActionPack().add_action(
            CitizenLeaveCompany(
                citizen=target,
                company_legal_identity=company.legal_identity,
                fired=False,
            )
        ).add_post_effect(commit)
        self._perform(pack)

    def fire(self, invoker: Citizen, target: Citizen) -> None:
        company = self._company
        if invoker is not company.leader:
            raise AuthorizationError(
                "NotAuthorized",
                f"Couldn't fire {target.name} from {company.name} as you are "
                f"not the CEO of {company.name}",
            )
        if not company.is_employee(target):
            raise StateConflictError(
                "NotEmployed",
                f"Couldn't fire {target.name} from {company.name} as they are "
                "not an employee",
            )
        if target is company.leader:
            raise StateConflictError(
                "IsLeader",
                f"Couldn't fire {target.name} from {company.name} as they are the CEO",
            )

        def commit() -> None:
            if not company.members.discard(target):
                return
            company.on_employees_changed()
            company.mark_per_user_display_dirty(target)
            company.send_company_message(
                f"{invoker.name} has fired {target.name} from the company."
            )

        pack = ActionPack().add_action(
            CitizenLeaveCompany(
                citizen=target,
                company_legal_identity=company.legal_identity,
                fired=True,
            )
        ).add_post_effect(commit)
        self._perform(pack)

    # ------------------------------------------------------------------
    # Administrative transitions
    # ------------------------------------------------------------------

    def force_join(self, target: Citizen) -> bool:
        """Employ ``target`` without validation. Returns True if employed now."""
        company = self._company
        if company.is_employee(target):
            return False
        if not self._release_from_other_employer(target):
            return False
        if not company.members.add(target):
            return False
        company.invitees.discard(target)
        company.on_employees_changed()
        company.mark_per_user_display_dirty(target)
        company.send_company_message(f"{target.name} has joined the company.")
        return True

    def force_leave(self, target: Citizen) -> bool:
        """Remove ``target`` without validation. The leader is never removed."""
        company = self._company
        if target is company.leader:
            return False
        if not company.members.discard(target):
            return False
        company.on_employees_changed()
        company.mark_per_user_display_dirty(target)
        company.send_company_message(f"{target.name} has been ejected from the company.")
        return True

    def promote(self, new_leader: Citizen) -> bool:
        """Make ``new_leader`` the leader; the previous leader becomes a member."""
        company = self._company
        if new_leader is company.leader:
            return False
        if not self._release_from_other_employer(new_leader):
            return False
        company.members.discard(new_leader)
        company.invitees.discard(new_leader)
        previous = company.leader
        company.leader = new_leader
        self._add_as_member(previous)
        company.mark_per_user_display_dirty(new_leader)

        company.on_employees_changed()
        company.send_global_message(f"{new_leader.name} is now the CEO of {company.name}!")
        return True

    def demote(self, current_leader: Citizen) -> bool:
        company = self._company
        if company.leader is None or current_leader is not company.leader:
            return False
        company.send_company_message(f"{current_leader.name} has been removed as CEO.")
        company.leader = None
        self._add_as_member(current_leader)
        company.mark_dirty()
        company.mark_display_dirty()
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _add_as_member(self, former_leader: Optional[Citizen]) -> None:
        # The leader field is reassigned before this runs so that the leader
        # is never observed in both places.
        if former_leader is not None:
            self._company.members.add(former_leader)
            self._company.mark_per_user_display_dirty(former_leader)

    def _release_from_other_employer(self, target: Citizen) -> bool:
        """Remove ``target`` from any other company. False if they lead one."""
        employer = self._company.lookup_employer(target)
        if employer is None or employer is self._company:
            return True
        if employer.leader is target:
            return False
        employer.roster.force_leave(target)
        return True

    def _on_invitees_changed(self, target: Citizen) -> None:
        self._company.mark_dirty()
        self._company.mark_display_dirty()
        self._company.mark_per_user_display_dirty(target)

    def _perform(self, pack: ActionPack) -> None:
        outcome = self._company.services.pipeline.perform(pack)
        if not outcome.success:
            logger.info(
                "membership_rejected",
                company=self._company.name,
                reason=outcome.message,
            )
            raise ExternalRejection("ActionRejected", outcome.message)
