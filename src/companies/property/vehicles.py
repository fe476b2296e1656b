"""Transfer of employees' vehicles to the company.

When enabled, every vehicle deed an employee owns is renamed after the
company, painted in the HQ colour and handed to the legal identity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from companies.logging import get_logger
from companies.models.world import Deed, OwnerChangeType

if TYPE_CHECKING:
    from companies.company import Company

logger = get_logger(__name__)


def vehicle_name(deed: Deed, replacement: str) -> str:
    """Swap the creator's name for ``replacement`` and the counter for the deed id.

    "Alice Truck 2" owned by Alice becomes "Acme Truck <deed id>"; a name
    without a trailing counter gets the deed id appended.
    """
    source = deed.creator or deed.owner
    name = deed.name.replace(source.name, replacement) if source is not None else deed.name
    last = name.split(" ")[-1]
    try:
        counter = int(last)
    except ValueError:
        return f"{name} {deed.deed_id}"
    return name.replace(str(counter), deed.deed_id)


class VehicleTransfer:

    def __init__(self, company: Company) -> None:
        self._company = company

    def update_all(self) -> int:
        """Transfer every employee vehicle. Returns how many changed hands."""
        company = self._company
        config = company.config
        if not config.vehicle_transfers_enabled:
            return 0
        legal = company.legal_identity
        world = company.services.world
        replacement = (
            company.name if config.vehicle_transfers_use_company_name_enabled else legal.name
        )

        moved = 0
        for employee in company.all_employees:
            for deed in world.deeds_owned_by(employee):
                if not deed.is_vehicle:
                    continue
                deed.name = world.unique_deed_name(vehicle_name(deed, replacement), exclude=deed)
                if legal.homestead_deed is not None:
                    deed.color = legal.homestead_deed.color
                deed.force_change_owner(legal, OwnerChangeType.NORMAL)
                deed.mark_dirty()
                company.ownership.on_gained_ownership(deed)
                logger.debug(
                    "vehicle_transferred",
                    company=company.name,
                    deed=deed.name,
                    previous_owner=employee.name,
                )
                moved += 1
            employee.mark_dirty()
            company.mark_per_user_display_dirty(employee)

        legal.mark_dirty()
        company.mark_per_user_display_dirty(legal)
        return moved
