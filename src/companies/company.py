"""Company aggregate.

A company owns a synthetic legal identity, a treasury account and a share
currency, all created once on first ``initialize()``. Everything else it
"owns" (deeds, accounts, void storages, settlement citizenship) is world
state keyed on the legal identity and kept consistent by the components:

- roster: employees, leader and invitations
- ownership: owner-change subscriptions and the HQ designation
- entitlement: HQ plot allowance
- access: authorization lists on owned property
- citizenship: settlement citizenship of the company and its employees
- reputation: averaged reputation of the legal identity
- finance: economic events relayed through the action pipeline
- vehicles: transfer of employees' vehicles

Any change to the set of employees runs one cascade, in a fixed order:
vehicles, HQ entitlement, access lists, reputation, citizenship.

Concurrency: the member and invitee sets are thread-safe and report whether
a mutation changed anything. The owner-change suppression guard and the
relay guards are protected by ``lock`` (one re-entrant lock per company).
Deferred work goes through the injected scheduler and is cancelled by
``destroy()``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

from companies.citizenship.sync import CitizenshipSynchronizer
from companies.config import CompaniesConfig
from companies.finance.relay import FinancialEventRelay
from companies.logging import get_logger
from companies.membership.roster import MembershipRoster
from companies.models.company import (
    AccumulatorKind,
    ConcurrentSet,
    Relationship,
    ReputationAccumulator,
    ShareholderHolding,
)
from companies.models.world import (
    AccountKind,
    BankAccount,
    Citizen,
    Currency,
    Deed,
    PlotsComponent,
)
from companies.persistence.event_log import EventLog
from companies.property.access import AccessListSynchronizer
from companies.property.entitlement import PlotEntitlement
from companies.property.ownership import OwnershipWatcher
from companies.property.vehicles import VehicleTransfer
from companies.reputation.aggregator import ReputationAggregator
from companies.world.actions import ActionPipeline
from companies.world.messaging import (
    InMemoryMessenger,
    LogMessenger,
    Messenger,
    NotificationCategory,
    NotificationStyle,
)
from companies.world.registrar import World
from companies.world.reputation import InMemoryReputation, ReputationSystem
from companies.world.scheduler import (
    ManualScheduler,
    ScheduledTask,
    Scheduler,
    ThreadingScheduler,
)
from companies.world.settlements import Settlement
from companies.world.subscriptions import SubscriptionSet

if TYPE_CHECKING:
    from companies.registry import CompanyRegistry

logger = get_logger(__name__)


def legal_identity_name(company_name: str) -> str:
    return f"{company_name} Legal Person"


def treasury_account_name(company_name: str) -> str:
    return f"{company_name} Account"


def share_currency_name(company_name: str) -> str:
    return f"{company_name} Shares"


@dataclass
class WorldServices:
    """External collaborators a company talks to."""
    world: World
    pipeline: ActionPipeline
    messenger: Messenger
    reputation: ReputationSystem
    scheduler: Scheduler

    @classmethod
    def in_memory(
        cls,
        config: CompaniesConfig,
        event_log: Optional[EventLog] = None,
    ) -> WorldServices:
        """Reference collaborators with a manually driven clock."""
        return cls(
            world=World(config.base_plots_on_homestead_claim_stake),
            pipeline=ActionPipeline(event_log if event_log is not None else EventLog()),
            messenger=InMemoryMessenger(),
            reputation=InMemoryReputation(),
            scheduler=ManualScheduler(),
        )

    @classmethod
    def live(
        cls,
        config: CompaniesConfig,
        event_log_path: Optional[Path] = None,
    ) -> WorldServices:
        """Wall-clock timers; notifications go to the structured log."""
        return cls(
            world=World(config.base_plots_on_homestead_claim_stake),
            pipeline=ActionPipeline(EventLog(event_log_path)),
            messenger=LogMessenger(),
            reputation=InMemoryReputation(),
            scheduler=ThreadingScheduler(),
        )


class Company:
    """The company aggregate root."""

    def __init__(
        self,
        name: str,
        services: WorldServices,
        config: CompaniesConfig,
        registry: Optional[CompanyRegistry] = None,
        creator: Optional[Citizen] = None,
    ) -> None:
        self.name = name
        self.services = services
        self.config = config
        self.registry = registry
        self.creator = creator

        self.leader: Optional[Citizen] = None
        self.members: ConcurrentSet[Citizen] = ConcurrentSet()
        self.invitees: ConcurrentSet[Citizen] = ConcurrentSet()
        self.legal_identity: Optional[Citizen] = None
        self.treasury_account: Optional[BankAccount] = None
        self.share_currency: Optional[Currency] = None
        self.positive_accumulator = ReputationAccumulator(name, AccumulatorKind.POSITIVE)
        self.negative_accumulator = ReputationAccumulator(name, AccumulatorKind.NEGATIVE)

        self.lock = threading.RLock()
        self.ignore_owner_changed = False
        self.subscriptions = SubscriptionSet()
        self._tasks: list[ScheduledTask] = []
        self.destroyed = False

        self.dirty = False
        self.display_dirty = False
        self.per_user_display_dirty: set[Citizen] = set()

        self.roster = MembershipRoster(self)
        self.ownership = OwnershipWatcher(self)
        self.entitlement = PlotEntitlement(self)
        self.access = AccessListSynchronizer(self)
        self.citizenship = CitizenshipSynchronizer(self)
        self.reputation = ReputationAggregator(self)
        self.finance = FinancialEventRelay(self)
        self.vehicles = VehicleTransfer(self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create missing owned records and (re)establish subscriptions."""
        world = self.services.world

        if self.legal_identity is None:
            legal = world.create_citizen(
                world.unique_citizen_name(legal_identity_name(self.name)),
                synthetic=True,
            )
            legal.logout_time = world.time_seconds
            self.legal_identity = legal
            logger.info("legal_identity_created", company=self.name, citizen=legal.name)

        self.subscriptions.watch(
            self.legal_identity,
            "direct_citizenship",
            self.citizenship.on_legal_identity_citizenship_changed,
        )
        for deed in self.owned_deeds:
            self.ownership.watch(deed)

        if self.treasury_account is None:
            account = world.personal_account(self.legal_identity)
            account.name = world.unique_account_name(treasury_account_name(self.name))
            self.treasury_account = account
            self.access.refresh_account(account)

        if self.share_currency is None:
            currency = world.player_currency(self.legal_identity)
            currency.name = world.unique_currency_name(share_currency_name(self.name))
            self.share_currency = currency

    def post_initialize(self) -> None:
        """Repairs that need the whole world loaded."""
        self.entitlement.refresh_hq()
        hq = self.hq_deed
        if hq is not None and hq.creator is not self.legal_identity:
            logger.info("hq_creator_fixed", company=self.name, deed=hq.name)
            hq.creator = self.legal_identity
            hq.mark_dirty()

    def destroy(self) -> None:
        """Release every subscription and cancel every pending task."""
        with self.lock:
            self.destroyed = True
            tasks, self._tasks = self._tasks, []
        cancelled = sum(1 for task in tasks if task.cancel())
        self.subscriptions.release_all()
        logger.info("company_destroyed", company=self.name, cancelled_tasks=cancelled)

    def schedule(self, delay: float, callback: Callable[[], None]) -> Optional[ScheduledTask]:
        """Run ``callback`` later, tied to this company's lifetime."""
        with self.lock:
            if self.destroyed:
                return None
            task = self.services.scheduler.call_later(delay, callback)
            self._tasks = [t for t in self._tasks if not (t.done or t.cancelled)]
            self._tasks.append(task)
            return task

    @property
    def pending_tasks(self) -> list[ScheduledTask]:
        with self.lock:
            return [t for t in self._tasks if not (t.done or t.cancelled)]

    # ------------------------------------------------------------------
    # Roster views
    # ------------------------------------------------------------------

    @property
    def all_employees(self) -> list[Citizen]:
        members = self.members.snapshot()
        leader = self.leader
        if leader is None:
            return members
        return [leader] + [m for m in members if m is not leader]

    def is_employee(self, citizen: Citizen) -> bool:
        return citizen is self.leader or citizen in self.members

    def is_invited(self, citizen: Citizen) -> bool:
        return citizen in self.invitees

    def relationship_of(self, citizen: Citizen) -> Relationship:
        if citizen is self.leader:
            return Relationship.LEADER
        if citizen in self.members:
            return Relationship.EMPLOYEE
        if citizen in self.invitees:
            return Relationship.INVITED
        return Relationship.NONE

    @property
    def shareholders(self) -> list[ShareholderHolding]:
        if self.leader is None:
            return []
        return [ShareholderHolding(self.leader, 1.0)]

    def lookup_employer(self, citizen: Citizen) -> Optional[Company]:
        """The company employing ``citizen``, consulting the registry if wired."""
        if self.registry is not None:
            return self.registry.get_employer(citizen)
        return self if self.is_employee(citizen) else None

    # ------------------------------------------------------------------
    # Property views
    # ------------------------------------------------------------------

    @property
    def hq_deed(self) -> Optional[Deed]:
        return self.legal_identity.homestead_deed if self.legal_identity else None

    @property
    def has_hq_deed(self) -> bool:
        deed = self.hq_deed
        return deed is not None and not deed.destroyed

    @property
    def hq_plots(self) -> Optional[PlotsComponent]:
        deed = self.hq_deed
        return deed.plots if deed is not None else None

    @property
    def hq_size(self) -> int:
        return self.entitlement.hq_size()

    @property
    def direct_citizenship(self) -> Optional[Settlement]:
        return self.legal_identity.direct_citizenship if self.legal_identity else None

    @property
    def owned_deeds(self) -> list[Deed]:
        return self.services.world.deeds_owned_by(self.legal_identity)

    @property
    def owned_accounts(self) -> list[BankAccount]:
        if self.legal_identity is None:
            return []
        return [a for a in self.services.world.accounts if self.does_own_account(a)]

    def does_own_account(self, account: BankAccount) -> bool:
        if account is self.treasury_account:
            return True
        if account.kind in (AccountKind.PERSONAL, AccountKind.GOVERNMENT):
            return False
        return self.legal_identity is not None and account.can_manage(self.legal_identity)

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def on_employees_changed(self) -> None:
        self.vehicles.update_all()
        self.entitlement.refresh_hq()
        self.access.refresh_all()
        self.reputation.update()
        self.citizenship.update_citizenships()
        self.mark_dirty()
        self.mark_display_dirty()

    # ------------------------------------------------------------------
    # Online state
    # ------------------------------------------------------------------

    def update_online_state(self) -> bool:
        """Stamp the legal identity's logout when every employee is offline."""
        if any(e.is_online for e in self.all_employees):
            return False
        legal = self.legal_identity
        legal.logout_time = self.services.world.time_seconds
        legal.mark_dirty()
        self.update_play_time()
        return True

    def update_play_time(self) -> bool:
        """Top the legal identity's online log up to the daily play time."""
        legal = self.legal_identity
        if legal is None:
            return False
        now = self.services.world.time_seconds
        daily = self.config.daily_play_time_seconds
        if legal.active_seconds(self.config.seconds_per_day, now) >= daily:
            return False
        legal.online_time_log.append((now - daily, now))
        legal.mark_dirty()
        return True

    def init_play_time(self) -> None:
        """Rebuild the legal identity's online log with one window per elapsed day."""
        legal = self.legal_identity
        now = self.services.world.time_seconds
        per_day = self.config.seconds_per_day
        legal.online_time_log.clear()
        for day in range(int(now // per_day), 0, -1):
            start = now - per_day * day
            legal.online_time_log.append((start, start + self.config.daily_play_time_seconds))
        legal.mark_dirty()

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def send_company_message(
        self,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        messenger = self.services.messenger
        for employee in self.all_employees:
            messenger.message_citizen(employee, text, category, style)

    def send_global_message(self, text: str) -> None:
        self.services.messenger.broadcast(
            text, NotificationCategory.GOVERNMENT, NotificationStyle.CHAT,
        )

    # ------------------------------------------------------------------
    # Persistence markers
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        self.dirty = True

    def mark_display_dirty(self) -> None:
        self.display_dirty = True

    def mark_per_user_display_dirty(self, citizen: Citizen) -> None:
        self.per_user_display_dirty.add(citizen)

    def to_record(self) -> dict[str, Any]:
        def cid(citizen: Optional[Citizen]) -> Optional[str]:
            return citizen.citizen_id if citizen is not None else None

        return {
            "name": self.name,
            "creator": cid(self.creator),
            "leader": cid(self.leader),
            "members": [m.citizen_id for m in self.members],
            "invitees": [i.citizen_id for i in self.invitees],
            "legal_identity": cid(self.legal_identity),
            "treasury_account": (
                self.treasury_account.account_id if self.treasury_account else None
            ),
            "share_currency": (
                self.share_currency.currency_id if self.share_currency else None
            ),
        }

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        services: WorldServices,
        config: CompaniesConfig,
        registry: Optional[CompanyRegistry] = None,
    ) -> Company:
        """Restore attribute state. Call ``initialize()`` afterwards."""
        world = services.world

        def citizen(citizen_id: Optional[str]) -> Optional[Citizen]:
            if citizen_id is None:
                return None
            found = world.get_citizen(citizen_id)
            if found is None:
                raise ValueError(f"Unknown citizen in company record: {citizen_id}")
            return found

        company = cls(
            record["name"], services, config, registry, creator=citizen(record.get("creator")),
        )
        company.leader = citizen(record.get("leader"))
        for member_id in record.get("members", []):
            company.members.add(citizen(member_id))
        for invitee_id in record.get("invitees", []):
            company.invitees.add(citizen(invitee_id))
        company.legal_identity = citizen(record.get("legal_identity"))
        company.treasury_account = world.get_account(record.get("treasury_account"))
        company.share_currency = world.get_currency(record.get("share_currency"))
        return company

    def __repr__(self) -> str:
        return f"Company({self.name!r})"
