"""Tests for the financial event relay — proves money movements are re-emitted once per relay."""

from decimal import Decimal

import pytest

from companies.finance.relay import GIVE_MONEY, RECEIVE_MONEY
from companies.models.actions import (
    CompanyEmployeeExpense,
    CompanyEmployeeIncome,
    CompanyEmployeeWealthChanged,
    CompanyExpense,
    CompanyIncome,
    MoneyTransfer,
)
from companies.persistence.event_log import EventKind
from companies.service import CompanyService


def _transfer(source, target, amount: str = "25", currency=None) -> MoneyTransfer:
    return MoneyTransfer(
        source_account=source,
        target_account=target,
        currency=currency,
        amount=Decimal(amount),
    )


def _performed(services, action_type) -> list:
    return [a for a in services.pipeline.performed if isinstance(a, action_type)]


@pytest.fixture
def service(registry) -> CompanyService:
    return CompanyService(registry)


class TestRelays:
    def test_income(self, company, world, services, dave) -> None:
        transfer = _transfer(world.personal_account(dave), company.treasury_account)
        assert company.finance.on_receive_money(transfer) is True
        [income] = _performed(services, CompanyIncome)
        assert income.receiver_legal_identity is company.legal_identity
        assert income.amount == Decimal("25")
        events = services.pipeline.event_log.events(EventKind.COMPANY_INCOME)
        assert events[0].payload["amount"] == "25"
        assert events[0].payload["receiver"] == "Acme Legal Person"

    def test_expense(self, company, world, services, dave) -> None:
        transfer = _transfer(company.treasury_account, world.personal_account(dave))
        assert company.finance.on_give_money(transfer) is True
        [expense] = _performed(services, CompanyExpense)
        assert expense.sender_legal_identity is company.legal_identity

    def test_employee_income(self, company, world, services, bob, dave) -> None:
        company.roster.force_join(bob)
        transfer = _transfer(world.personal_account(dave), world.personal_account(bob))
        assert company.finance.on_employee_receive_money(transfer) is True
        [income] = _performed(services, CompanyEmployeeIncome)
        assert income.receiver_citizen is bob
        assert income.company_legal_identity is company.legal_identity

    def test_employee_expense_names_the_sender(self, company, world, services, bob, dave) -> None:
        company.roster.force_join(bob)
        transfer = _transfer(world.personal_account(bob), world.personal_account(dave))
        assert company.finance.on_employee_give_money(transfer) is True
        [expense] = _performed(services, CompanyEmployeeExpense)
        assert expense.sending_citizen is bob
        assert expense.sending_citizen is not company.legal_identity
        assert expense.company_legal_identity is company.legal_identity
        [event] = services.pipeline.event_log.events(EventKind.COMPANY_EMPLOYEE_EXPENSE)
        assert event.actor_id == bob.citizen_id
        assert event.payload["sender"] == "Bob"
        assert event.payload["company"] == "Acme Legal Person"


class TestGuards:
    def test_reentry_short_circuited(self, company, world, services, dave) -> None:
        transfer = _transfer(world.personal_account(dave), company.treasury_account)
        nested = []

        def validator(action):
            if isinstance(action, CompanyIncome):
                assert company.finance.is_relaying(RECEIVE_MONEY)
                nested.append(company.finance.on_receive_money(transfer))
            return None

        services.pipeline.register_validator(validator)
        assert company.finance.on_receive_money(transfer) is True
        assert nested == [False]
        assert len(_performed(services, CompanyIncome)) == 1
        assert not company.finance.is_relaying(RECEIVE_MONEY)

    def test_other_relay_not_blocked(self, company, world, services, dave) -> None:
        income = _transfer(world.personal_account(dave), company.treasury_account)
        expense = _transfer(company.treasury_account, world.personal_account(dave))
        nested = []

        def validator(action):
            if isinstance(action, CompanyIncome):
                nested.append(company.finance.on_give_money(expense))
            return None

        services.pipeline.register_validator(validator)
        company.finance.on_receive_money(income)
        assert nested == [True]

    def test_rejection_reported_not_raised(self, company, world, services, dave) -> None:
        services.pipeline.register_validator(
            lambda action: "Account frozen" if isinstance(action, CompanyExpense) else None
        )
        transfer = _transfer(company.treasury_account, world.personal_account(dave))
        assert company.finance.on_give_money(transfer) is False
        assert not company.finance.is_relaying(GIVE_MONEY)
        assert not _performed(services, CompanyExpense)

    def test_failure_logged_not_raised(self, company, world, services, dave) -> None:
        def validator(action):
            raise RuntimeError("validator crashed")

        services.pipeline.register_validator(validator)
        transfer = _transfer(world.personal_account(dave), company.treasury_account)
        assert company.finance.on_receive_money(transfer) is False
        assert not company.finance.is_relaying(RECEIVE_MONEY)


class TestWealthChanged:
    def test_changes_are_coalesced(self, company, world, services, scheduler, bob) -> None:
        company.roster.force_join(bob)
        account = world.personal_account(bob)
        first = company.finance.on_employee_wealth_changed(account)
        second = company.finance.on_employee_wealth_changed(account)
        assert first is second
        scheduler.advance(5.0)
        [changed] = _performed(services, CompanyEmployeeWealthChanged)
        assert changed.affected_citizen is bob
        assert changed.target_account is account

    def test_new_window_after_emission(self, company, world, services, scheduler, bob) -> None:
        company.roster.force_join(bob)
        account = world.personal_account(bob)
        company.finance.on_employee_wealth_changed(account)
        scheduler.advance(5.0)
        company.finance.on_employee_wealth_changed(account)
        scheduler.advance(5.0)
        assert len(_performed(services, CompanyEmployeeWealthChanged)) == 2

    def test_accounts_tracked_separately(self, company, world, services, scheduler, alice, bob) -> None:
        company.roster.force_join(bob)
        company.finance.on_employee_wealth_changed(world.personal_account(alice))
        company.finance.on_employee_wealth_changed(world.personal_account(bob))
        scheduler.advance(5.0)
        assert len(_performed(services, CompanyEmployeeWealthChanged)) == 2

    def test_destroy_cancels_pending(self, company, world, services, scheduler, bob) -> None:
        company.roster.force_join(bob)
        company.finance.on_employee_wealth_changed(world.personal_account(bob))
        company.destroy()
        scheduler.run_all()
        assert not _performed(services, CompanyEmployeeWealthChanged)

    def test_after_destroy_nothing_scheduled(self, company, world, alice) -> None:
        company.destroy()
        account = world.personal_account(alice)
        assert company.finance.on_employee_wealth_changed(account) is None


class TestServiceRouting:
    def test_treasury_income_and_employee_expense(self, service, company, world, services, scheduler, alice) -> None:
        transfer = _transfer(world.personal_account(alice), company.treasury_account)
        assert service.on_money_transfer(transfer) == 2
        assert len(_performed(services, CompanyIncome)) == 1
        assert len(_performed(services, CompanyEmployeeExpense)) == 1
        scheduler.advance(5.0)
        assert len(_performed(services, CompanyEmployeeWealthChanged)) == 1

    def test_unrelated_transfer(self, service, company, world, dave, carol) -> None:
        transfer = _transfer(world.personal_account(dave), world.personal_account(carol))
        assert service.on_money_transfer(transfer) == 0

    def test_between_companies(self, service, registry, company, world, services, carol) -> None:
        globex = registry.create_company("Globex", carol)
        transfer = _transfer(globex.treasury_account, company.treasury_account)
        assert service.on_money_transfer(transfer) == 2
        [income] = _performed(services, CompanyIncome)
        [expense] = _performed(services, CompanyExpense)
        assert income.receiver_legal_identity is company.legal_identity
        assert expense.sender_legal_identity is globex.legal_identity
