"""Company property: ownership tracking, HQ entitlement, access lists, vehicles."""

from companies.property.entitlement import entitlement

__all__ = ["entitlement"]
