"""Inquiry events and the aggregator that collects them per reporting window."""

from propwatch.inquiries.aggregator import EventAggregator, SqlAlchemyEventAggregator
from propwatch.inquiries.errors import InquiryError, PropertyNotFoundError
from propwatch.inquiries.models import (
    UNKNOWN_CUSTOMER_NAME,
    InteractionEvent,
    PropertyContext,
    PropertyCounters,
    PropertySnapshot,
)
from propwatch.inquiries.storage import (
    CustomerRecord,
    InquiryCategory,
    InquiryRecord,
    PropertyRecord,
)

__all__ = [
    "UNKNOWN_CUSTOMER_NAME",
    "CustomerRecord",
    "EventAggregator",
    "InquiryCategory",
    "InquiryError",
    "InquiryRecord",
    "InteractionEvent",
    "PropertyContext",
    "PropertyCounters",
    "PropertyNotFoundError",
    "PropertyRecord",
    "PropertySnapshot",
    "SqlAlchemyEventAggregator",
]
