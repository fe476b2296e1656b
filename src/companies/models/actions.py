"""Actions submitted to the action pipeline.

Membership actions are validated system-wide before a roster change is
committed. Economic actions are the structured, company-scoped re-emission of
raw money movements. Each action names its event kind, the acting citizen and
a JSON-safe payload for the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, Optional

from companies.models.world import BankAccount, Citizen, Currency
from companies.persistence.event_log import EventKind


def _name(obj: Any) -> Optional[str]:
    return getattr(obj, "name", None) if obj is not None else None


@dataclass(frozen=True)
class MoneyTransfer:
    """Raw money-movement notification delivered by the economy."""
    source_account: Optional[BankAccount]
    target_account: Optional[BankAccount]
    currency: Optional[Currency]
    amount: Decimal


@dataclass(frozen=True)
class CitizenJoinCompany:
    kind: ClassVar[EventKind] = EventKind.CITIZEN_JOIN_COMPANY

    citizen: Citizen
    company_legal_identity: Citizen

    @property
    def actor(self) -> Citizen:
        return self.citizen

    def payload(self) -> dict[str, Any]:
        return {
            "citizen": self.citizen.name,
            "company": self.company_legal_identity.name,
        }


@dataclass(frozen=True)
class CitizenLeaveCompany:
    kind: ClassVar[EventKind] = EventKind.CITIZEN_LEAVE_COMPANY

    citizen: Citizen
    company_legal_identity: Citizen
    fired: bool = False

    @property
    def actor(self) -> Citizen:
        return self.citizen

    def payload(self) -> dict[str, Any]:
        return {
            "citizen": self.citizen.name,
            "company": self.company_legal_identity.name,
            "fired": self.fired,
        }


@dataclass(frozen=True)
class _MoneyAction:
    source_account: Optional[BankAccount]
    target_account: Optional[BankAccount]
    currency: Optional[Currency]
    amount: Decimal

    def _money_payload(self) -> dict[str, Any]:
        return {
            "source_account": _name(self.source_account),
            "target_account": _name(self.target_account),
            "currency": _name(self.currency),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class CompanyIncome(_MoneyAction):
    kind: ClassVar[EventKind] = EventKind.COMPANY_INCOME

    receiver_legal_identity: Optional[Citizen] = None

    @property
    def actor(self) -> Optional[Citizen]:
        return self.receiver_legal_identity

    def payload(self) -> dict[str, Any]:
        return {**self._money_payload(), "receiver": _name(self.receiver_legal_identity)}


@dataclass(frozen=True)
class CompanyExpense(_MoneyAction):
    kind: ClassVar[EventKind] = EventKind.COMPANY_EXPENSE

    sender_legal_identity: Optional[Citizen] = None

    @property
    def actor(self) -> Optional[Citizen]:
        return self.sender_legal_identity

    def payload(self) -> dict[str, Any]:
        return {**self._money_payload(), "sender": _name(self.sender_legal_identity)}


@dataclass(frozen=True)
class CompanyEmployeeIncome(_MoneyAction):
    kind: ClassVar[EventKind] = EventKind.COMPANY_EMPLOYEE_INCOME

    receiver_citizen: Optional[Citizen] = None
    company_legal_identity: Optional[Citizen] = None

    @property
    def actor(self) -> Optional[Citizen]:
        return self.receiver_citizen

    def payload(self) -> dict[str, Any]:
        return {
            **self._money_payload(),
            "receiver": _name(self.receiver_citizen),
            "company": _name(self.company_legal_identity),
        }


@dataclass(frozen=True)
class CompanyEmployeeExpense(_MoneyAction):
    kind: ClassVar[EventKind] = EventKind.COMPANY_EMPLOYEE_EXPENSE

    sending_citizen: Optional[Citizen] = None
    company_legal_identity: Optional[Citizen] = None

    @property
    def actor(self) -> Optional[Citizen]:
        return self.sending_citizen

    def payload(self) -> dict[str, Any]:
        return {
            **self._money_payload(),
            "sender": _name(self.sending_citizen),
            "company": _name(self.company_legal_identity),
        }


@dataclass(frozen=True)
class CompanyEmployeeWealthChanged:
    kind: ClassVar[EventKind] = EventKind.COMPANY_EMPLOYEE_WEALTH_CHANGED

    target_account: BankAccount
    affected_citizen: Optional[Citizen]
    company_legal_identity: Optional[Citizen] = None

    @property
    def actor(self) -> Optional[Citizen]:
        return self.affected_citizen

    def payload(self) -> dict[str, Any]:
        return {
            "target_account": _name(self.target_account),
            "affected": _name(self.affected_citizen),
            "company": _name(self.company_legal_identity),
        }
