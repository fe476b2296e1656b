"""Reputation aggregator.

When the reputation-averages policy is on, the legal identity's reputation
is the average of its employees' reputation, applied through the company's
two accumulators (positive and negative). Each pass:

1. optionally removes reputation employees gave each other, refunding
   same-day gifts
2. subtracts whatever the accumulators currently contribute
3. after a settle delay, sums per employee
   ``relative = (positive - bonus) + negative`` into the positive total and
   ``negative`` into the negative total, where ``negative = total - positive``
4. divides both totals by the employee count, unless the positive total is
   exactly zero
5. applies the two values as the accumulators' new contributions
6. tells the employees if the legal identity's net reputation changed

Step 4 guards the negative total on the positive total. See DESIGN.md.

Everything here runs outside the caller's request, so failures are logged
and never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from companies.logging import get_logger
from companies.models.company import ReputationAccumulator
from companies.world.messaging import NotificationCategory, NotificationStyle
from companies.world.scheduler import ScheduledTask

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)


class ReputationAggregator:

    def __init__(self, company: Company) -> None:
        self._company = company
        self._pending: Optional[ScheduledTask] = None

    @property
    def _books(self):
        return self._company.services.reputation

    def update(self) -> Optional[ScheduledTask]:
        """Start an aggregation pass. Returns the pending settle task, if any.

        A pass started while another is still settling replaces it.
        """
        company = self._company
        if not company.config.reputation_averages_enabled:
            return None
        try:
            self.clean_intra_company_reputation()
            self.remove_accumulator_contributions()
        except Exception:
            logger.exception("reputation_reset_failed", company=company.name)
            return None
        with company.lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = company.schedule(company.config.task_delay_seconds, self.settle)
            return self._pending

    def clean_intra_company_reputation(self) -> int:
        """Zero reputation given between employees. Returns pairs cleaned."""
        if not self._company.config.deny_company_members_reputation_enabled:
            return 0
        books = self._books
        employees = self._company.all_employees
        cleaned = 0
        for source in employees:
            for target in employees:
                if target is source:
                    continue
                given = books.given_total(source, target)
                if given == 0:
                    continue
                books.adjust_relationship(target, source, -given)
                if books.given_today(source, target) != 0:
                    books.replenish(source)
                cleaned += 1
        return cleaned

    def remove_accumulator_contributions(self) -> None:
        legal = self._company.legal_identity
        books = self._books
        for giver, value in books.relationships(legal).items():
            if isinstance(giver, ReputationAccumulator):
                books.adjust_relationship(legal, giver, -value)

    def aggregate(self) -> tuple[float, float]:
        """Averaged (positive, negative) contributions for the current employees."""
        books = self._books
        bonus_enabled = self._company.config.reputation_averages_bonus_enabled
        employees = self._company.all_employees
        positive_total = 0.0
        negative_total = 0.0
        for employee in employees:
            ignored = books.speaks_well_bonus(employee) if bonus_enabled else 0.0
            positive = books.positive_reputation(employee)
            negative = books.reputation(employee) - positive
            positive_total += (positive - ignored) + negative
            negative_total += negative
        if positive_total != 0:
            positive_total /= len(employees)
            negative_total /= len(employees)
        return positive_total, negative_total

    def settle(self) -> None:
        company = self._company
        if company.destroyed or company.legal_identity is None:
            return
        try:
            legal = company.legal_identity
            books = self._books
            # Contributions written since the pass started would be doubled.
            self.remove_accumulator_contributions()
            before = books.reputation(legal)
            positive, negative = self.aggregate()
            books.adjust_relationship(legal, company.negative_accumulator, negative)
            books.adjust_relationship(legal, company.positive_accumulator, positive)
            after = books.reputation(legal)
            logger.debug(
                "reputation_aggregated",
                company=company.name,
                positive=positive,
                negative=negative,
                net=after,
            )
            if after != before:
                company.send_company_message(
                    f"Reputation for {company.name} changed to {after:g}.",
                    NotificationCategory.REPUTATION,
                    NotificationStyle.INFO_BOX,
                )
        except Exception:
            logger.exception("reputation_aggregation_failed", company=company.name)
