"""Headquarters plot entitlement.

The HQ is allowed ``base_plots`` plots per employee when the property-limits
policy is on, otherwise ``base_plots``. The value reaches the world through
the plot sizing record's ``base_claims_override`` hook: while the override is
installed the record asks the company for its base claims and auto-resize is
off. ``update_claim_data`` is only called when the computed allowance
differs from what the deed currently allows.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from companies.logging import get_logger
from companies.models.world import PlotsComponent

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)


def entitlement(employee_count: int, base_plots: int, policy_enabled: bool) -> int:
    """Plots the HQ may claim, before claim papers."""
    if not policy_enabled:
        return base_plots
    return base_plots * max(employee_count, 1)


class PlotEntitlement:
    """Installs, refreshes and removes the HQ plot override."""

    def __init__(self, company: Company) -> None:
        self._company = company

    @property
    def base_plots(self) -> int:
        return self._company.config.base_plots_on_homestead_claim_stake

    def hq_size(self) -> int:
        company = self._company
        return entitlement(
            len(company.all_employees),
            self.base_plots,
            company.config.property_limits_enabled,
        )

    def has_override(self, plots: PlotsComponent) -> bool:
        return plots.base_claims_override == self.hq_size

    def add_override(self, plots: PlotsComponent) -> bool:
        """Install the override. Returns False if it was already installed."""
        if self.has_override(plots):
            return False
        plots.base_claims_override = self.hq_size
        self.refresh(plots, hq=True)
        plots.auto_resize = False
        plots.mark_dirty()
        return True

    def remove_override(self, plots: PlotsComponent) -> None:
        plots.base_claims_override = None
        plots.auto_resize = True
        plots.mark_dirty()
        self.refresh(plots, hq=False)

    def refresh(self, plots: PlotsComponent, hq: bool) -> bool:
        """Push the allowance into the sizing record if it changed."""
        base = self.hq_size() if hq else self.base_plots
        allowed = plots.claim_papers + base
        current = plots.deed.allowed_plots if plots.deed is not None else None
        if allowed == current:
            return False
        plots.update_claim_data()
        logger.debug(
            "plots_resized",
            company=self._company.name,
            deed=plots.deed.name if plots.deed is not None else None,
            allowed=allowed,
        )
        return True

    def refresh_hq(self) -> bool:
        """Make sure the HQ carries the override and an up to date allowance."""
        plots = self._company.hq_plots
        if plots is None:
            return False
        if self.add_override(plots):
            return True
        return self.refresh(plots, hq=True)
