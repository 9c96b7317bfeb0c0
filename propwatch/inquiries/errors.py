"""Errors raised while collecting inquiry events."""

from __future__ import annotations


class InquiryError(Exception):
    """Base class for inquiry aggregation errors."""


class PropertyNotFoundError(InquiryError):
    """Raised when a rule references a property that is missing or deleted."""

    def __init__(self, tenant_id: str, property_id: str) -> None:
        """Initialise with the tenant and the missing property identifier."""
        self.tenant_id = tenant_id
        self.property_id = property_id
        super().__init__(
            f"Property not found: {property_id} (tenant {tenant_id})"
        )
