"""Data models: world records, company value types and pipeline actions."""

from companies.models.actions import (
    CitizenJoinCompany,
    CitizenLeaveCompany,
    CompanyEmployeeExpense,
    CompanyEmployeeIncome,
    CompanyEmployeeWealthChanged,
    CompanyExpense,
    CompanyIncome,
    MoneyTransfer,
)
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
    HomesteadFoundation,
    OwnerChangeType,
    PlotsComponent,
    Residency,
    VoidStorage,
    WorldObject,
)

__all__ = [
    "AccountKind",
    "AccumulatorKind",
    "BankAccount",
    "Citizen",
    "CitizenJoinCompany",
    "CitizenLeaveCompany",
    "CompanyEmployeeExpense",
    "CompanyEmployeeIncome",
    "CompanyEmployeeWealthChanged",
    "CompanyExpense",
    "CompanyIncome",
    "ConcurrentSet",
    "Currency",
    "Deed",
    "HomesteadFoundation",
    "MoneyTransfer",
    "OwnerChangeType",
    "PlotsComponent",
    "Relationship",
    "ReputationAccumulator",
    "Residency",
    "ShareholderHolding",
    "VoidStorage",
    "WorldObject",
]
