"""
Reflection registration.

A reflection is recorded at most once per (message, voter). The ledger insert
and the counter increment share one transaction, so either both land or
neither does. The unique constraint on the ledger is the source of truth: the
existence check up front only avoids a doomed insert, and an IntegrityError
from the insert means another request for the same pair won the race.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from reflectboard.metrics import record_reflection_outcome
from reflectboard.models import Message, Reflection
from reflectboard.storage import StorageError, find_reflection, get_message

logger = logging.getLogger(__name__)


class ReflectionStatus(str, Enum):
    REGISTERED = "registered"
    ALREADY_REGISTERED = "already_registered"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ReflectionResult:
    status: ReflectionStatus
    # Post-increment counter; only set when status is REGISTERED
    count: Optional[int] = None

    @property
    def registered(self) -> bool:
        return self.status is ReflectionStatus.REGISTERED


def register_reflection(db: Session, message_id: int, voter_identity: str) -> ReflectionResult:
    """
    Register a reflection on a message for a voter.

    Args:
        db: Database session, owned by the caller
        message_id: Message to reflect on
        voter_identity: Best-effort identity of the requester (client address)

    Returns:
        ReflectionResult with status REGISTERED and the new count, or
        ALREADY_REGISTERED / NOT_FOUND with no count

    Raises:
        StorageError: on any database failure other than a constraint violation
    """
    logger.info(f"Reflection requested: message_id={message_id}, voter={voter_identity}")

    try:
        if get_message(db, message_id) is None:
            return _finish(ReflectionResult(ReflectionStatus.NOT_FOUND), message_id)

        if find_reflection(db, message_id, voter_identity) is not None:
            db.rollback()
            return _finish(ReflectionResult(ReflectionStatus.ALREADY_REGISTERED), message_id)

        db.add(Reflection(message_id=message_id, voter_identity=voter_identity))
        db.flush()

        db.execute(
            update(Message)
            .where(Message.id == message_id)
            .values(reflection_count=Message.reflection_count + 1)
            .execution_options(synchronize_session=False)
        )
        count = db.scalar(select(Message.reflection_count).where(Message.id == message_id))
        db.commit()

    except IntegrityError as e:
        db.rollback()
        # Lost the race to an identical request, or the message was deleted in between
        return _finish(_resolve_lost_race(db, message_id, voter_identity, e), message_id)

    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_failure(message_id, e) from e

    return _finish(ReflectionResult(ReflectionStatus.REGISTERED, count=count), message_id)


def _resolve_lost_race(
    db: Session, message_id: int, voter_identity: str, error: IntegrityError
) -> ReflectionResult:
    try:
        message = get_message(db, message_id)
        winner = find_reflection(db, message_id, voter_identity) if message is not None else None
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_failure(message_id, e) from e

    if message is None:
        return ReflectionResult(ReflectionStatus.NOT_FOUND)
    if winner is None:
        # Constraint violation with no competing ledger row: not a lost race
        raise _storage_failure(message_id, error) from error
    logger.info(f"Concurrent duplicate reflection: message_id={message_id}, voter={voter_identity}")
    return ReflectionResult(ReflectionStatus.ALREADY_REGISTERED)


def _storage_failure(message_id: int, error: SQLAlchemyError) -> StorageError:
    logger.error(f"Failed to register reflection on message {message_id}: {error}")
    record_reflection_outcome("error")
    return StorageError("failed to register reflection")


def _finish(result: ReflectionResult, message_id: int) -> ReflectionResult:
    logger.info(f"Reflection on message {message_id}: {result.status.value}")
    record_reflection_outcome(result.status.value)
    return result
