"""
"Journal entry posted" notifications.

Posting code queues a notification on the session. Nothing is sent
until that session commits; a rollback discards the queue. Delivery
is fire-and-forget: a subscriber that raises is logged and skipped,
and the posting it was told about stays committed.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_journal_notifications"


@dataclass(frozen=True)
class JournalPosted:
    journal_entry_id: int
    source_type: str
    source_ref: str | None


Subscriber = Callable[[JournalPosted], None]

_subscribers: list[Subscriber] = []


def subscribe(callback: Subscriber) -> Subscriber:
    """Register a callback. Returns it so this can be used as a decorator."""
    if callback not in _subscribers:
        _subscribers.append(callback)
    return callback


def unsubscribe(callback: Subscriber) -> None:
    if callback in _subscribers:
        _subscribers.remove(callback)


def clear_subscribers() -> None:
    _subscribers.clear()


def queue_journal_posted(db: Session, entry) -> None:
    """Queue a notification for delivery once ``db`` commits."""
    db.info.setdefault(_PENDING_KEY, []).append(
        JournalPosted(
            journal_entry_id=entry.id,
            source_type=entry.source_type.value,
            source_ref=entry.source_ref,
        )
    )


def _deliver(notification: JournalPosted) -> None:
    for callback in list(_subscribers):
        try:
            callback(notification)
        except Exception:
            logger.exception(
                "Notification subscriber %r failed for journal entry %s",
                callback, notification.journal_entry_id,
            )


@event.listens_for(Session, "after_commit")
def _dispatch_after_commit(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    for notification in pending:
        _deliver(notification)


@event.listens_for(Session, "after_rollback")
def _discard_after_rollback(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
