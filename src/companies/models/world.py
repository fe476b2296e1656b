"""World-side records the company engine reads and mutates.

These are the external objects a company references but does not own:
citizens (including the company's synthetic legal identity), deeds and the
world objects that host them, bank accounts, currencies and void storages.
Settlements live in ``companies.world.settlements`` because their rosters
carry behaviour.

Records are deliberately thin. Every mutation the engine performs on one of
them is followed by ``mark_dirty()`` so the (out of scope) save pipeline can
pick it up. Identity is by object, not by value: two citizens with the same
name are different citizens.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from companies.world.subscriptions import Observable

if TYPE_CHECKING:
    from companies.world.settlements import Settlement


class OwnerChangeType(str, enum.Enum):
    """Why a deed changed owner."""
    NORMAL = "normal"
    ADMIN_COMMAND = "admin_command"


class AccountKind(str, enum.Enum):
    """Bank account classification.

    PERSONAL and GOVERNMENT accounts are never company-owned unless the
    account is the company's own treasury.
    """
    PERSONAL = "personal"
    GOVERNMENT = "government"
    SHARED = "shared"


@dataclass(eq=False)
class Citizen(Observable):
    """A citizen of the world. ``synthetic`` marks a company legal identity."""
    OBSERVED = frozenset({"direct_citizenship"})

    citizen_id: str
    name: str
    synthetic: bool = False
    direct_citizenship: Optional[Settlement] = None
    homestead_deed: Optional[Deed] = None
    is_online: bool = False
    logout_time: float = 0.0
    online_time_log: list[tuple[float, float]] = field(default_factory=list)
    dirty: bool = False

    def mark_dirty(self) -> None:
        self.dirty = True

    def active_seconds(self, window: float, now: float) -> float:
        """Seconds of logged online time overlapping ``[now - window, now]``."""
        start = now - window
        total = 0.0
        for begin, end in self.online_time_log:
            overlap = min(end, now) - max(begin, start)
            if overlap > 0:
                total += overlap
        return total

    def __repr__(self) -> str:
        return f"Citizen({self.name!r})"


@dataclass(eq=False)
class HomesteadFoundation:
    """Homestead foundation component of a world object.

    ``citizenship_updated`` is the hook the foundation exposes so that a new
    owner's citizenship can be applied to it.
    """
    citizenship_update_count: int = 0

    def citizenship_updated(self, notify: bool = True) -> None:
        self.citizenship_update_count += 1


@dataclass(eq=False)
class PlotsComponent:
    """Plot sizing record of a claim stake.

    ``allowed_plots`` on the deed is recomputed by ``update_claim_data`` from
    the claim papers stored in the stake plus the base claims. While
    ``base_claims_override`` is set the override supplies the base claims and
    ``auto_resize`` is off.
    """
    deed: Optional[Deed] = None
    claim_papers: int = 0
    base_claims: int = 10
    auto_resize: bool = True
    base_claims_override: Optional[Callable[[], int]] = None
    dirty: bool = False

    def effective_base_claims(self) -> int:
        if self.base_claims_override is not None:
            return self.base_claims_override()
        return self.base_claims

    def update_claim_data(self) -> None:
        if self.deed is None:
            return
        self.deed.allowed_plots = self.claim_papers + self.effective_base_claims()
        self.deed.mark_dirty()

    def mark_dirty(self) -> None:
        self.dirty = True


@dataclass(eq=False)
class WorldObject:
    """The placed object (claim stake, vehicle, ...) a deed is attached to."""
    object_id: str
    name: str
    creator: Optional[Citizen] = None
    owner_name: str = ""
    deed: Optional[Deed] = None
    plots: Optional[PlotsComponent] = None
    foundation: Optional[HomesteadFoundation] = None
    owner_change_type: Optional[OwnerChangeType] = None

    def set_creator(self, creator: Citizen) -> None:
        self.creator = creator

    def update_owner_name(self, change_type: OwnerChangeType = OwnerChangeType.NORMAL) -> None:
        owner = self.deed.owner if self.deed is not None else None
        self.owner_name = owner.name if owner is not None else ""
        self.owner_change_type = change_type


@dataclass(eq=False)
class Residency:
    """Residents of a deed and pending resident invitations."""
    residents: set[Citizen] = field(default_factory=set)
    invitations: set[Citizen] = field(default_factory=set)
    allow_plots_unclaiming: bool = False


@dataclass(eq=False)
class Deed(Observable):
    """A property record. Only ``owner`` changes are published."""
    OBSERVED = frozenset({"owner"})

    deed_id: str
    name: str
    owner: Optional[Citizen] = None
    creator: Optional[Citizen] = None
    is_homestead: bool = False
    is_vehicle: bool = False
    accessors: set[Citizen] = field(default_factory=set)
    residency: Residency = field(default_factory=Residency)
    host_object: Optional[WorldObject] = None
    influencing_settlement: Optional[Settlement] = None
    cached_owning_settlement: Optional[Settlement] = None
    allowed_plots: int = 0
    color: str = ""
    destroyed: bool = False
    dirty: bool = False

    def force_change_owner(
        self,
        new_owner: Optional[Citizen],
        change_type: OwnerChangeType = OwnerChangeType.NORMAL,
    ) -> None:
        self.owner = new_owner
        if self.host_object is not None:
            self.host_object.update_owner_name(change_type)
        self.mark_dirty()

    def update_influencing_settlement(self) -> None:
        self.cached_owning_settlement = self.influencing_settlement

    @property
    def plots(self) -> Optional[PlotsComponent]:
        if self.destroyed or self.host_object is None:
            return None
        return self.host_object.plots

    def mark_dirty(self) -> None:
        self.dirty = True

    def __repr__(self) -> str:
        return f"Deed({self.name!r})"


@dataclass(eq=False)
class BankAccount:
    """A bank account with a dual (manager / user) permission set."""
    account_id: str
    name: str
    kind: AccountKind = AccountKind.SHARED
    account_owner: Optional[Citizen] = None
    managers: set[Citizen] = field(default_factory=set)
    users: set[Citizen] = field(default_factory=set)
    dirty: bool = False

    def can_manage(self, citizen: Citizen) -> bool:
        return citizen in self.managers

    def mark_dirty(self) -> None:
        self.dirty = True

    def __repr__(self) -> str:
        return f"BankAccount({self.name!r})"


@dataclass(eq=False)
class Currency:
    currency_id: str
    name: str
    owner: Optional[Citizen] = None


@dataclass(eq=False)
class VoidStorage:
    """Shared storage; grants are additive."""
    storage_id: str
    name: str
    can_access: list[Citizen] = field(default_factory=list)

    def can_user_access(self, citizen: Citizen) -> bool:
        return citizen in self.can_access

    def grant(self, citizens) -> int:
        """Add citizens not already present. Returns how many were added."""
        added = 0
        for citizen in citizens:
            if citizen not in self.can_access:
                self.can_access.append(citizen)
                added += 1
        return added
