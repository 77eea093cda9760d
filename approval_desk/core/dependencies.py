"""FastAPI dependencies: settings, record store, notifier and services."""

import hmac
import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from ..services import (
    DecisionRecorder,
    LineNotifier,
    Notifier,
    ProposalDispatcher,
    RecordingNotifier,
    SequenceAllocator,
    TicketIssuer,
)
from ..store import InMemoryRecordStore, NotionRecordStore, RecordStore
from .config import Settings, get_settings

logger = logging.getLogger(__name__)


SettingsDep = Annotated[Settings, Depends(get_settings)]


# =============================================================================
# FACTORIES (shared with the scheduled job)
# =============================================================================


@lru_cache
def shared_memory_store() -> InMemoryRecordStore:
    """Process-wide in-memory store for the ``memory`` backend."""
    logger.warning("Using in-memory record store; data is lost on restart")
    return InMemoryRecordStore()


def build_store(settings: Settings) -> RecordStore:
    if settings.record_store_backend == "memory":
        return shared_memory_store()
    return NotionRecordStore(settings)


def build_notifier(settings: Settings) -> Notifier:
    if settings.record_store_backend == "memory":
        return RecordingNotifier()
    return LineNotifier(settings)


def build_dispatcher(settings: Settings, store: RecordStore, notifier: Notifier) -> ProposalDispatcher:
    return ProposalDispatcher(
        store,
        SequenceAllocator(store, settings.uncategorized_bucket_policy),
        TicketIssuer(store, notifier, settings.approval_form_base_url),
    )


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_store(settings: SettingsDep) -> RecordStore:
    return build_store(settings)


def get_notifier(settings: SettingsDep) -> Notifier:
    return build_notifier(settings)


StoreDep = Annotated[RecordStore, Depends(get_store)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]


def get_sequence_allocator(settings: SettingsDep, store: StoreDep) -> SequenceAllocator:
    return SequenceAllocator(store, settings.uncategorized_bucket_policy)


def get_ticket_issuer(
    settings: SettingsDep,
    store: StoreDep,
    notifier: NotifierDep,
) -> TicketIssuer:
    return TicketIssuer(store, notifier, settings.approval_form_base_url)


def get_decision_recorder(store: StoreDep) -> DecisionRecorder:
    return DecisionRecorder(store)


def get_dispatcher(
    settings: SettingsDep,
    store: StoreDep,
    notifier: NotifierDep,
) -> ProposalDispatcher:
    return build_dispatcher(settings, store, notifier)


AllocatorDep = Annotated[SequenceAllocator, Depends(get_sequence_allocator)]
IssuerDep = Annotated[TicketIssuer, Depends(get_ticket_issuer)]
RecorderDep = Annotated[DecisionRecorder, Depends(get_decision_recorder)]
DispatcherDep = Annotated[ProposalDispatcher, Depends(get_dispatcher)]


async def require_cron_secret(
    settings: SettingsDep,
    authorization: str | None = Header(default=None),
) -> None:
    """Reject scheduled-trigger calls without the configured bearer secret."""
    if not settings.cron_secret:
        return

    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        logger.warning("Rejected cron trigger with missing or invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
