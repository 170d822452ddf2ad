"""Version and lifecycle manager for stored resources.

Records move through a small state machine::

    CREATED (v=1) --update--> UPDATED (v+1) --update--> UPDATED (v+1) ...
         |                        |
         +--------delete----------+--> DELETED (v+1, terminal)

Every transition refreshes ``last_updated`` (never moving it backwards) and
increments ``version_id`` with a SQL expression, so two writers racing on
the same record still produce distinct versions. Deleted records are kept
physically but accept no further transitions.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from labflow.core.database import ResourceRecordMixin
from labflow.core.errors import ResourceNotFoundError
from labflow.resources.fhir import ensure_utc

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class Transition(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# state -> transition -> next state; a missing entry is not allowed
TRANSITIONS: dict[LifecycleState | None, dict[Transition, LifecycleState]] = {
    None: {Transition.CREATE: LifecycleState.CREATED},
    LifecycleState.CREATED: {
        Transition.UPDATE: LifecycleState.UPDATED,
        Transition.DELETE: LifecycleState.DELETED,
    },
    LifecycleState.UPDATED: {
        Transition.UPDATE: LifecycleState.UPDATED,
        Transition.DELETE: LifecycleState.DELETED,
    },
    LifecycleState.DELETED: {},
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def state_of(record: ResourceRecordMixin) -> LifecycleState:
    """Current lifecycle state of a persisted record."""
    if record.is_deleted:
        return LifecycleState.DELETED
    if record.version_id == 1:
        return LifecycleState.CREATED
    return LifecycleState.UPDATED


class LifecycleManager:
    """Applies lifecycle transitions to records in a session.

    The manager flushes but never commits; the caller owns the transaction.
    """

    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self._session = session
        self._clock = clock

    def create(
        self,
        model: type[ResourceRecordMixin],
        resource_id: str,
        document: dict,
        extract: Callable[[dict], dict[str, Any]],
    ) -> ResourceRecordMixin:
        """Persist a new record at version 1."""
        self.check_transition(None, Transition.CREATE, model.__name__, resource_id)

        now = ensure_utc(self._clock())
        record = model(
            id=resource_id,
            created_at=now,
            last_updated=now,
            version_id=1,
            is_deleted=False,
        )
        record.apply_document(document, extract)

        self._session.add(record)
        self._session.flush()
        return record

    def update(
        self,
        record: ResourceRecordMixin,
        document: dict,
        extract: Callable[[dict], dict[str, Any]],
    ) -> ResourceRecordMixin:
        """Replace the document, re-derive extracted columns and bump the version."""
        self.check_transition(record, Transition.UPDATE)
        record.apply_document(document, extract)
        self._advance(record)
        return record

    def delete(self, record: ResourceRecordMixin) -> ResourceRecordMixin:
        """Soft delete: set the flag and bump the version. The document is kept."""
        self.check_transition(record, Transition.DELETE)
        record.is_deleted = True
        self._advance(record)
        return record

    @staticmethod
    def check_transition(
        record: ResourceRecordMixin | None,
        transition: Transition,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> LifecycleState:
        """Return the state ``transition`` leads to, or raise if it is not allowed.

        Raises:
            ResourceNotFoundError: For any transition out of DELETED
            ValueError: For transitions the state machine does not define
        """
        current = state_of(record) if record is not None else None
        next_state = TRANSITIONS[current].get(transition)
        if next_state is not None:
            return next_state

        if current == LifecycleState.DELETED and record is not None:
            raise ResourceNotFoundError(_type_name(record), record.id)
        raise ValueError(
            f"Transition {transition.value} not allowed from "
            f"{current.value if current else 'new'} for {resource_type}/{resource_id}"
        )

    def _advance(self, record: ResourceRecordMixin) -> None:
        model = type(record)
        now = ensure_utc(self._clock())
        record.last_updated = max(now, ensure_utc(record.last_updated))
        # Incremented in SQL; the attribute is reloaded on next access
        record.version_id = model.version_id + 1
        self._session.flush()
        logger.debug(f"{model.__name__} {record.id} advanced to version {record.version_id}")


def _type_name(record: ResourceRecordMixin) -> str:
    return record.document.get("resourceType") or type(record).__name__
