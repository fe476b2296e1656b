"""Tests for the membership roster — proves roster transitions keep the sets consistent."""

import pytest

from companies.company import WorldServices
from companies.config import CompaniesConfig
from companies.errors import AuthorizationError, ExternalRejection, StateConflictError
from companies.models.actions import CitizenJoinCompany, CitizenLeaveCompany
from companies.models.company import Relationship
from companies.persistence.event_log import EventKind
from companies.registry import CompanyRegistry
from companies.world.messaging import NotificationStyle


def _assert_leader_not_member(company) -> None:
    assert company.leader not in company.members


def _reject_joins(reason: str):
    def validator(action):
        if isinstance(action, CitizenJoinCompany):
            return reason
        return None
    return validator


# =====================================================================
# Invitations
# =====================================================================


class TestInvite:
    def test_leader_invites(self, company, alice, bob, messenger) -> None:
        company.roster.invite(alice, bob)
        assert company.is_invited(bob)
        assert company.relationship_of(bob) == Relationship.INVITED
        assert "Alice has invited Bob to join the company." in messenger.to(alice)

    def test_invitee_is_mailed_instructions(self, company, alice, bob, messenger) -> None:
        company.roster.invite(alice, bob)
        mails = [m for m in messenger.messages if m.recipient is bob]
        assert len(mails) == 1
        assert mails[0].style == NotificationStyle.MAIL
        assert "You have been invited to join Acme" in mails[0].text
        assert "/company join Acme" in mails[0].text

    def test_non_leader_cannot_invite(self, company, bob, carol) -> None:
        with pytest.raises(AuthorizationError) as exc:
            company.roster.invite(bob, carol)
        assert exc.value.code == "NotAuthorized"
        assert not company.is_invited(carol)

    def test_duplicate_invite_rejected(self, company, alice, bob) -> None:
        """Second invite fails and the invitee set keeps one entry."""
        company.roster.invite(alice, bob)
        with pytest.raises(StateConflictError) as exc:
            company.roster.invite(alice, bob)
        assert exc.value.code == "AlreadyInvited"
        assert len(company.invitees) == 1

    def test_cannot_invite_employee(self, company, alice, bob) -> None:
        company.roster.force_join(bob)
        with pytest.raises(StateConflictError) as exc:
            company.roster.invite(alice, bob)
        assert exc.value.code == "AlreadyEmployed"
        assert not company.invitees

    def test_invite_marks_display_dirty(self, company, alice, bob) -> None:
        company.display_dirty = False
        company.roster.invite(alice, bob)
        assert company.display_dirty
        assert bob in company.per_user_display_dirty


class TestRevokeAndReject:
    def test_revoke(self, company, alice, bob, messenger) -> None:
        company.roster.invite(alice, bob)
        company.roster.revoke_invite(alice, bob)
        assert not company.is_invited(bob)
        assert (
            "Alice has withdrawn the invitation for Bob to join the company."
            in messenger.to(alice)
        )

    def test_revoke_requires_leader(self, company, alice, bob, carol) -> None:
        company.roster.invite(alice, bob)
        with pytest.raises(AuthorizationError):
            company.roster.revoke_invite(carol, bob)
        assert company.is_invited(bob)

    def test_revoke_without_invite(self, company, alice, bob) -> None:
        with pytest.raises(StateConflictError) as exc:
            company.roster.revoke_invite(alice, bob)
        assert exc.value.code == "NotInvited"

    def test_reject(self, company, alice, bob) -> None:
        company.roster.invite(alice, bob)
        assert company.roster.reject_invite(bob) is True
        assert company.roster.reject_invite(bob) is False
        assert company.relationship_of(bob) == Relationship.NONE


# =====================================================================
# Pipeline transitions
# =====================================================================


class TestJoin:
    def test_invited_citizen_joins(self, company, alice, bob, messenger) -> None:
        company.roster.invite(alice, bob)
        company.roster.join(bob)
        assert bob in company.members
        assert not company.is_invited(bob)
        assert company.all_employees == [alice, bob]
        assert "Bob has joined the company." in messenger.to(alice)
        assert "Bob has joined the company." in messenger.to(bob)

    def test_join_is_recorded(self, company, alice, bob, services) -> None:
        company.roster.invite(alice, bob)
        company.roster.join(bob)
        events = services.pipeline.event_log.events(EventKind.CITIZEN_JOIN_COMPANY)
        assert len(events) == 1
        assert events[0].payload == {"citizen": "Bob", "company": "Acme Legal Person"}
        assert events[0].actor_id == bob.citizen_id

    def test_join_without_invite(self, company, bob) -> None:
        with pytest.raises(StateConflictError) as exc:
            company.roster.join(bob)
        assert exc.value.code == "NotInvited"
        assert bob not in company.members

    def test_join_while_employed_elsewhere(self, registry, company, alice, bob, carol) -> None:
        globex = registry.create_company("Globex", carol)
        company.roster.invite(alice, bob)
        globex.roster.invite(carol, bob)
        company.roster.join(bob)
        with pytest.raises(StateConflictError) as exc:
            globex.roster.join(bob)
        assert exc.value.code == "AlreadyEmployedElsewhere"
        assert "already employed by Acme" in exc.value.message
        assert bob not in globex.members

    def test_join_with_homestead_blocked(self, company, world, alice, bob) -> None:
        world.create_deed("Bob's Cabin", owner=bob, homestead=True)
        company.roster.invite(alice, bob)
        with pytest.raises(StateConflictError) as exc:
            company.roster.join(bob)
        assert exc.value.code == "PropertyConflict"
        assert "Bob's Cabin" in exc.value.message
        assert company.is_invited(bob)

    def test_join_with_homestead_allowed_without_property_limits(self) -> None:
        config = CompaniesConfig(property_limits_enabled=False)
        services = WorldServices.in_memory(config)
        registry = CompanyRegistry(services, config)
        founder = services.world.create_citizen("Founder")
        joiner = services.world.create_citizen("Joiner")
        services.world.create_deed("Cabin", owner=joiner, homestead=True)
        company = registry.create_company("Acme", founder)
        company.roster.invite(founder, joiner)
        company.roster.join(joiner)
        assert joiner in company.members

    def test_pipeline_rejection_changes_nothing(self, company, services, alice, bob) -> None:
        services.pipeline.register_validator(_reject_joins("Roster is full"))
        company.roster.invite(alice, bob)
        with pytest.raises(ExternalRejection) as exc:
            company.roster.join(bob)
        assert exc.value.message == "Roster is full"
        assert company.is_invited(bob)
        assert bob not in company.members
        assert not services.pipeline.event_log.events(EventKind.CITIZEN_JOIN_COMPANY)


class TestLeaveAndFire:
    def test_leave(self, company, alice, bob, messenger) -> None:
        company.roster.force_join(bob)
        company.roster.leave(bob)
        assert bob not in company.members
        assert "Bob has resigned from the company." in messenger.to(alice)

    def test_leave_not_employed(self, company, bob) -> None:
        with pytest.raises(StateConflictError) as exc:
            company.roster.leave(bob)
        assert exc.value.code == "NotEmployed"

    def test_leader_cannot_leave(self, company, alice, bob) -> None:
        company.roster.force_join(bob)
        with pytest.raises(StateConflictError) as exc:
            company.roster.leave(alice)
        assert exc.value.code == "IsLeader"
        assert company.leader is alice
        assert company.all_employees == [alice, bob]

    def test_fire(self, company, alice, bob, messenger, services) -> None:
        company.roster.force_join(bob)
        company.roster.fire(alice, bob)
        assert bob not in company.members
        assert "Alice has fired Bob from the company." in messenger.to(alice)
        events = services.pipeline.event_log.events(EventKind.CITIZEN_LEAVE_COMPANY)
        assert events[-1].payload["fired"] is True

    def test_fire_requires_leader(self, company, bob, carol) -> None:
        company.roster.force_join(bob)
        company.roster.force_join(carol)
        with pytest.raises(AuthorizationError):
            company.roster.fire(bob, carol)
        assert carol in company.members

    def test_fire_leader_rejected(self, company, alice) -> None:
        with pytest.raises(StateConflictError) as exc:
            company.roster.fire(alice, alice)
        assert exc.value.code == "IsLeader"
        assert company.leader is alice

    def test_fire_non_employee(self, company, alice, bob) -> None:
        with pytest.raises(StateConflictError) as exc:
            company.roster.fire(alice, bob)
        assert exc.value.code == "NotEmployed"

    def test_leave_action_is_voluntary(self, company, bob, services) -> None:
        company.roster.force_join(bob)
        company.roster.leave(bob)
        leaves = [a for a in services.pipeline.performed if isinstance(a, CitizenLeaveCompany)]
        assert leaves[-1].fired is False


# =====================================================================
# Administrative transitions
# =====================================================================


class TestForceJoinAndLeave:
    def test_force_join(self, company, bob) -> None:
        assert company.roster.force_join(bob) is True
        assert bob in company.members
        assert company.roster.force_join(bob) is False

    def test_force_join_clears_invitation(self, company, alice, bob) -> None:
        company.roster.invite(alice, bob)
        company.roster.force_join(bob)
        assert not company.is_invited(bob)

    def test_force_join_moves_from_other_company(self, registry, company, bob, carol, messenger) -> None:
        globex = registry.create_company("Globex", carol)
        globex.roster.force_join(bob)
        company.roster.force_join(bob)
        assert bob in company.members
        assert bob not in globex.members
        assert registry.get_employer(bob) is company
        assert "Bob has been ejected from the company." in messenger.to(carol)

    def test_force_join_leaves_other_leader_alone(self, registry, company, carol) -> None:
        globex = registry.create_company("Globex", carol)
        assert company.roster.force_join(carol) is False
        assert globex.leader is carol
        assert carol not in company.members
        assert registry.get_employer(carol) is globex

    def test_invite_join_matches_force_join(self, registry, company, alice, bob, carol, dave) -> None:
        """Both paths converge on the same membership sets."""
        globex = registry.create_company("Globex", carol)
        company.roster.invite(alice, bob)
        company.roster.join(bob)
        globex.roster.force_join(dave)
        assert company.members.snapshot() == [bob]
        assert globex.members.snapshot() == [dave]
        assert not company.invitees and not globex.invitees

    def test_force_leave(self, company, alice, bob, messenger) -> None:
        company.roster.force_join(bob)
        assert company.roster.force_leave(bob) is True
        assert bob not in company.members
        assert "Bob has been ejected from the company." in messenger.to(alice)
        assert company.roster.force_leave(bob) is False

    def test_force_leave_leader_is_noop(self, company, alice, bob) -> None:
        company.roster.force_join(bob)
        assert company.roster.force_leave(alice) is False
        assert company.leader is alice
        assert company.all_employees == [alice, bob]


class TestLeadership:
    def test_promote_member(self, company, alice, bob, messenger) -> None:
        company.roster.force_join(bob)
        assert company.roster.promote(bob) is True
        assert company.leader is bob
        assert alice in company.members
        _assert_leader_not_member(company)
        assert "Bob is now the CEO of Acme!" in messenger.broadcasts()

    def test_promote_current_leader(self, company, alice) -> None:
        assert company.roster.promote(alice) is False

    def test_promote_invitee(self, company, alice, bob) -> None:
        company.roster.invite(alice, bob)
        company.roster.promote(bob)
        assert company.leader is bob
        assert not company.is_invited(bob)
        _assert_leader_not_member(company)

    def test_promote_leader_of_other_company(self, registry, company, alice, carol) -> None:
        globex = registry.create_company("Globex", carol)
        assert company.roster.promote(carol) is False
        assert company.leader is alice
        assert globex.leader is carol

    def test_promote_moves_member_of_other_company(self, registry, company, alice, bob, carol) -> None:
        globex = registry.create_company("Globex", carol)
        globex.roster.force_join(bob)
        assert company.roster.promote(bob) is True
        assert bob not in globex.members
        assert registry.get_employer(bob) is company
        assert alice in company.members

    def test_demote(self, company, alice, messenger) -> None:
        assert company.roster.demote(alice) is True
        assert company.leader is None
        assert alice in company.members
        assert "Alice has been removed as CEO." in messenger.to(alice)

    def test_demote_non_leader(self, company, bob) -> None:
        company.roster.force_join(bob)
        assert company.roster.demote(bob) is False
        assert bob in company.members

    def test_leader_never_member_across_operations(self, company, alice, bob, carol) -> None:
        company.roster.invite(alice, bob)
        company.roster.join(bob)
        _assert_leader_not_member(company)
        company.roster.promote(bob)
        _assert_leader_not_member(company)
        company.roster.force_join(carol)
        company.roster.promote(carol)
        _assert_leader_not_member(company)
        company.roster.force_leave(bob)
        _assert_leader_not_member(company)
        assert company.all_employees == [carol, alice]
