"""Typed records and enums."""

from .models import (
    RECORD_TYPES,
    ApprovalTicket,
    AudienceTarget,
    Collection,
    Decision,
    DispatchStatus,
    Member,
    Proposal,
    Record,
    ServiceStatus,
    with_fields,
)

__all__ = [
    # Enums
    "Collection",
    "AudienceTarget",
    "ServiceStatus",
    "Decision",
    "DispatchStatus",
    # Records
    "Proposal",
    "Member",
    "ApprovalTicket",
    "Record",
    "RECORD_TYPES",
    "with_fields",
]
