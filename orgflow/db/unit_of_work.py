"""
Transaction boundary for workflow transitions

A UnitOfWork wraps one database transaction. Everything staged inside the
``with`` block (status writes, ledger appends, balance or score updates,
audit rows) commits together or not at all. Notifications raised inside the
block are buffered and published only after the commit succeeds.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from orgflow.core.exceptions import AlreadyProcessed
from orgflow.services.notification_service import NotificationEvent, Publisher, immediate_publisher

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, db: Session, publish: Optional[Publisher] = None):
        self.db = db
        self._publish = publish or immediate_publisher()
        self._events: List[NotificationEvent] = []
        self.committed = False

    def notify(
        self,
        recipient_id: Optional[int],
        title: str,
        body: str,
        type: str = "GENERIC",
        payload: Optional[Dict[str, Any]] = None,
        actor_id: Optional[int] = None,
    ) -> None:
        """Buffer a notification; dropped if the transaction rolls back"""
        if recipient_id is None:
            return
        self._events.append(NotificationEvent(
            recipient_id=recipient_id,
            title=title,
            body=body,
            type=type,
            payload=payload or {},
            actor_id=actor_id,
        ))

    @property
    def pending_events(self) -> List[NotificationEvent]:
        return list(self._events)

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self._abort()
            if issubclass(exc_type, StaleDataError):
                raise AlreadyProcessed("This record was modified by a concurrent request.") from exc
            return False

        try:
            self.db.commit()
        except StaleDataError as e:
            self._abort()
            logger.info("optimistic lock conflict on commit: %s", e)
            raise AlreadyProcessed("This record was modified by a concurrent request.") from e
        except Exception:
            # Flush-time listener errors are not SQLAlchemyErrors; roll back on any failure
            self._abort()
            raise

        self.committed = True
        events, self._events = self._events, []
        if events:
            self._publish(events)
        return False

    def _abort(self) -> None:
        self._events.clear()
        self.db.rollback()
