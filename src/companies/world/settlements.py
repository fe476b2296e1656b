"""Settlements, citizen rosters and immigration policy.

The roster is the source of truth for citizenship: adding a citizen to a
settlement's roster sets ``citizen.direct_citizenship`` and leaving clears it,
which in turn publishes a change to anyone watching that attribute.

Extension points (used by the company engine instead of reaching into the
roster's internals):
- ``CitizenRoster.eligibility_hooks``: callables ``(citizen) -> CheckResult``
  consulted by ``can_be_member``. The first failing hook wins.
- ``SettlementCitizenship.homestead_leave_check``: callable
  ``(citizen, notify) -> CheckResult`` deciding whether a citizen holding a
  homestead may leave. ``None`` means the settlement does not expose the
  hook, which callers must treat as an internal lookup failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from companies.models.world import Citizen, Deed


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a side-effect-free policy check."""
    success: bool
    message: str = ""

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls) -> CheckResult:
        return cls(True)

    @classmethod
    def fail(cls, message: str) -> CheckResult:
        return cls(False, message)


EligibilityHook = Callable[[Citizen], CheckResult]
HomesteadLeaveCheck = Callable[[Citizen, bool], CheckResult]


@dataclass(eq=False)
class ImmigrationPolicy:
    """Rules for joining and leaving a settlement.

    approver: citizen who must approve applications, or None for open entry.
    blocked: citizens refused as direct citizens.
    allow_leaving_with_properties: if False, a citizen owning deeds inside
        the settlement cannot leave.
    """
    approver: Optional[Citizen] = None
    blocked: set[Citizen] = field(default_factory=set)
    accepting_applicants: bool = True
    allow_leaving_with_properties: bool = True

    def check_can_join_as_citizen(
        self, citizen: Citizen, join_as_direct_citizen: bool = True,
    ) -> CheckResult:
        if citizen in self.blocked:
            return CheckResult.fail(
                f"{citizen.name} is not permitted to become a citizen"
            )
        return CheckResult.ok()

    def can_leave_with_properties(
        self, citizen: Citizen, deeds_in_settlement: list[Deed],
    ) -> CheckResult:
        if deeds_in_settlement and not self.allow_leaving_with_properties:
            names = ", ".join(d.name for d in deeds_in_settlement)
            return CheckResult.fail(
                f"{citizen.name} cannot leave while owning property in the "
                f"settlement ({names})"
            )
        return CheckResult.ok()


class CitizenRoster:
    """Direct citizen roster of one settlement.

    ``employer_driven`` additions do not count toward immigration limits and
    are tracked so the roster can report them separately.
    """

    def __init__(self, settlement: Settlement) -> None:
        self.settlement = settlement
        self.members: set[Citizen] = set()
        self.applicants: set[Citizen] = set()
        self.invited: set[Citizen] = set()
        self.employer_driven: set[Citizen] = set()
        self.eligibility_hooks: list[EligibilityHook] = []

    def can_be_member(self, citizen: Citizen) -> CheckResult:
        for hook in self.eligibility_hooks:
            result = hook(citizen)
            if not result.success:
                return result
        return CheckResult.ok()

    def can_apply(self, citizen: Citizen) -> bool:
        policy = self.settlement.immigration_policy
        if policy is not None and not policy.accepting_applicants:
            return False
        return (
            citizen not in self.members
            and citizen not in self.applicants
            and citizen not in self.invited
        )

    def can_accept_invitation(self, citizen: Citizen) -> bool:
        return citizen in self.invited

    def can_leave(self, citizen: Citizen) -> bool:
        return citizen in self.members

    def add_to_roster(self, citizen: Citizen, employer_driven: bool = False) -> bool:
        """Add ``citizen``. Returns False if already a member.

        A citizen has one direct citizenship, so any previous roster drops
        them first.
        """
        self.applicants.discard(citizen)
        self.invited.discard(citizen)
        if citizen in self.members:
            return False
        previous = citizen.direct_citizenship
        if previous is not None and previous is not self.settlement:
            old_roster = previous.roster
            if old_roster is not None:
                old_roster.members.discard(citizen)
                old_roster.employer_driven.discard(citizen)
        self.members.add(citizen)
        if employer_driven:
            self.employer_driven.add(citizen)
        citizen.direct_citizenship = self.settlement
        citizen.mark_dirty()
        return True

    def leave(self, citizen: Citizen, employer_driven: bool = False) -> bool:
        """Remove ``citizen``. Returns False if not a member."""
        if citizen not in self.members:
            return False
        self.members.discard(citizen)
        self.employer_driven.discard(citizen)
        if citizen.direct_citizenship is self.settlement:
            citizen.direct_citizenship = None
        citizen.mark_dirty()
        return True

    def force_remove_member(self, citizen: Citizen) -> bool:
        return self.leave(citizen)


@dataclass(eq=False)
class SettlementCitizenship:
    """Citizenship facet of a settlement."""
    roster: Optional[CitizenRoster] = None
    homestead_leave_check: Optional[HomesteadLeaveCheck] = None

    def has_citizen(self, citizen: Citizen) -> bool:
        return self.roster is not None and citizen in self.roster.members


class Settlement:
    """A settlement with its citizenship roster and child settlements."""

    def __init__(
        self,
        settlement_id: str,
        name: str,
        immigration_policy: Optional[ImmigrationPolicy] = None,
        parent: Optional[Settlement] = None,
    ) -> None:
        self.settlement_id = settlement_id
        self.name = name
        self.immigration_policy = immigration_policy or ImmigrationPolicy()
        self.parent = parent
        self.children: list[Settlement] = []
        self.citizenship = SettlementCitizenship()
        self.citizenship.roster = CitizenRoster(self)
        self.citizenship.homestead_leave_check = _allow_homestead_leave
        if parent is not None:
            parent.children.append(self)

    @property
    def roster(self) -> Optional[CitizenRoster]:
        return self.citizenship.roster

    def top_parent(self) -> Settlement:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def self_and_descendants(self) -> Iterator[Settlement]:
        yield self
        for child in self.children:
            yield from child.self_and_descendants()

    def __repr__(self) -> str:
        return f"Settlement({self.name!r})"


def _allow_homestead_leave(citizen: Citizen, notify: bool) -> CheckResult:
    return CheckResult.ok()
