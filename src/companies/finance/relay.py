"""Financial event relay.

Raw money movements touching the treasury or an employee's personal account
are re-emitted through the action pipeline as company-scoped economic
actions. Emission is fire-and-forget: a rejection or failure is logged and
reported as False, never raised.

Re-emitted actions can loop back into the same relay (a validator moving
money, for instance). Each relay has a guard flag that short-circuits
re-entry; the flags are only touched while holding the company lock, so
deliveries from other threads wait instead of racing the flag.

Wealth changes are coalesced: one pending emission per account, fired after
``task_delay_long_seconds``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from companies.logging import get_logger
from companies.models.actions import (
    CompanyEmployeeExpense,
    CompanyEmployeeIncome,
    CompanyEmployeeWealthChanged,
    CompanyExpense,
    CompanyIncome,
    MoneyTransfer,
)
from companies.models.world import BankAccount
from companies.world.actions import ActionPack
from companies.world.scheduler import ScheduledTask

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)

RECEIVE_MONEY = "receive_money"
GIVE_MONEY = "give_money"
EMPLOYEE_RECEIVE_MONEY = "employee_receive_money"
EMPLOYEE_GIVE_MONEY = "employee_give_money"


def _money_fields(transfer: MoneyTransfer) -> dict[str, Any]:
    return {
        "source_account": transfer.source_account,
        "target_account": transfer.target_account,
        "currency": transfer.currency,
        "amount": transfer.amount,
    }


class FinancialEventRelay:

    def __init__(self, company: Company) -> None:
        self._company = company
        self._active: set[str] = set()
        self._pending_wealth: dict[int, ScheduledTask] = {}

    def is_relaying(self, guard: str) -> bool:
        return guard in self._active

    def on_receive_money(self, transfer: MoneyTransfer) -> bool:
        return self._relay(
            RECEIVE_MONEY,
            lambda: CompanyIncome(
                **_money_fields(transfer),
                receiver_legal_identity=self._company.legal_identity,
            ),
        )

    def on_give_money(self, transfer: MoneyTransfer) -> bool:
        return self._relay(
            GIVE_MONEY,
            lambda: CompanyExpense(
                **_money_fields(transfer),
                sender_legal_identity=self._company.legal_identity,
            ),
        )

    def on_employee_receive_money(self, transfer: MoneyTransfer) -> bool:
        target = transfer.target_account
        return self._relay(
            EMPLOYEE_RECEIVE_MONEY,
            lambda: CompanyEmployeeIncome(
                **_money_fields(transfer),
                receiver_citizen=target.account_owner if target is not None else None,
                company_legal_identity=self._company.legal_identity,
            ),
        )

    def on_employee_give_money(self, transfer: MoneyTransfer) -> bool:
        source = transfer.source_account
        return self._relay(
            EMPLOYEE_GIVE_MONEY,
            lambda: CompanyEmployeeExpense(
                **_money_fields(transfer),
                sending_citizen=source.account_owner if source is not None else None,
                company_legal_identity=self._company.legal_identity,
            ),
        )

    def on_employee_wealth_changed(self, account: BankAccount) -> Optional[ScheduledTask]:
        """Schedule a wealth-changed emission for ``account`` unless one is pending."""
        company = self._company
        with company.lock:
            pending = self._pending_wealth.get(id(account))
            if pending is not None and not (pending.done or pending.cancelled):
                return pending
            task = company.schedule(
                company.config.task_delay_long_seconds,
                lambda: self._emit_wealth_changed(account),
            )
            if task is not None:
                self._pending_wealth[id(account)] = task
            return task

    def _emit_wealth_changed(self, account: BankAccount) -> None:
        company = self._company
        with company.lock:
            self._pending_wealth.pop(id(account), None)
        if company.destroyed:
            return
        logger.debug(
            "wealth_changed",
            company=company.name,
            account=account.name,
        )
        try:
            outcome = company.services.pipeline.perform(
                ActionPack().add_action(
                    CompanyEmployeeWealthChanged(
                        target_account=account,
                        affected_citizen=account.account_owner,
                        company_legal_identity=company.legal_identity,
                    )
                )
            )
            if not outcome.success:
                logger.info("relay_rejected", company=company.name, reason=outcome.message)
        except Exception:
            logger.exception("wealth_relay_failed", company=company.name, account=account.name)

    def _relay(self, guard: str, build) -> bool:
        company = self._company
        with company.lock:
            if guard in self._active:
                return False
            self._active.add(guard)
            try:
                action = build()
                outcome = company.services.pipeline.perform(ActionPack().add_action(action))
                if not outcome.success:
                    logger.info(
                        "relay_rejected",
                        company=company.name,
                        relay=guard,
                        reason=outcome.message,
                    )
                return outcome.success
            except Exception:
                logger.exception("relay_failed", company=company.name, relay=guard)
                return False
            finally:
                self._active.discard(guard)
