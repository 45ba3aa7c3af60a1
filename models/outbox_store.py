# models/outbox_store.py (SQLAlchemy)
from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.base import Database
from models.schema import NotificationOutbox
from services.errors import UpstreamError

log = logging.getLogger(__name__)

OUTBOX_COLUMNS = ("id", "order_id", "kind", "destination", "customer_name", "payment_url",
                  "status", "attempts", "last_error", "provider_message_id",
                  "created_at", "updated_at")

# a row left in 'sending' this long is assumed abandoned by a crashed worker
CLAIM_STALE_AFTER = timedelta(minutes=5)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row(n: NotificationOutbox) -> dict:
    return {c: getattr(n, c) for c in OUTBOX_COLUMNS}


class OutboxStore:
    """
    One row per (order, notification kind). The unique constraint makes
    enqueue() the exactly-once gate: a second enqueue for the same pair
    returns None and nothing gets sent.
    """

    def __init__(self, db: Database):
        self.db = db

    def enqueue(self, *, order_id: str, kind: str, destination: str, customer_name: str,
                payment_url: Optional[str] = None) -> Optional[int]:
        now = _now()
        try:
            with self.db.session_scope() as s:
                n = NotificationOutbox(
                    order_id=order_id, kind=kind, destination=destination,
                    customer_name=customer_name, payment_url=payment_url,
                    status="pending", attempts=0, created_at=now, updated_at=now,
                )
                s.add(n)
                s.flush()
                return n.id
        except IntegrityError:
            log.info("Notification %s for %s already queued; skipping", kind, order_id)
            return None
        except SQLAlchemyError as e:
            log.error("outbox enqueue failed for %s/%s: %s", order_id, kind, e)
            raise UpstreamError("outbox unavailable") from e

    def get(self, notification_id: int) -> Optional[dict]:
        with self.db.session_scope() as s:
            n = s.get(NotificationOutbox, notification_id)
            return _row(n) if n else None

    def for_order(self, order_id: str) -> list[dict]:
        with self.db.session_scope() as s:
            rows = s.execute(
                select(NotificationOutbox)
                .where(NotificationOutbox.order_id == order_id)
                .order_by(NotificationOutbox.id)
            ).scalars().all()
            return [_row(r) for r in rows]

    @staticmethod
    def _claimable(stale_after: timedelta):
        return or_(
            NotificationOutbox.status.in_(("pending", "failed")),
            and_(NotificationOutbox.status == "sending",
                 NotificationOutbox.updated_at < _now() - stale_after),
        )

    def retriable(self, limit: int = 100, stale_after: timedelta = CLAIM_STALE_AFTER) -> list[dict]:
        """Rows a retry pass may pick up; fresh 'sending' rows belong to a live worker."""
        with self.db.session_scope() as s:
            rows = s.execute(
                select(NotificationOutbox)
                .where(self._claimable(stale_after))
                .order_by(NotificationOutbox.id)
                .limit(limit)
            ).scalars().all()
            return [_row(r) for r in rows]

    def claim(self, notification_id: int, stale_after: timedelta = CLAIM_STALE_AFTER) -> bool:
        """
        Move a row to 'sending'. Only the caller that gets True may call the
        notifier; a concurrent worker or retry pass gets False.
        """
        with self.db.session_scope() as s:
            res = s.execute(
                update(NotificationOutbox)
                .where((NotificationOutbox.id == notification_id) & self._claimable(stale_after))
                .values(status="sending", updated_at=_now())
            )
            return res.rowcount == 1

    def mark_sent(self, notification_id: int, provider_message_id: Optional[str]) -> None:
        with self.db.session_scope() as s:
            n = s.get(NotificationOutbox, notification_id)
            if not n:
                return
            n.status = "sent"
            n.attempts = (n.attempts or 0) + 1
            n.last_error = None
            n.provider_message_id = provider_message_id
            n.updated_at = _now()

    def mark_failed(self, notification_id: int, error: str) -> None:
        with self.db.session_scope() as s:
            n = s.get(NotificationOutbox, notification_id)
            if not n:
                return
            n.status = "failed"
            n.attempts = (n.attempts or 0) + 1
            n.last_error = (error or "")[:2000]
            n.updated_at = _now()

    def mark_delivered(self, provider_message_id: str) -> bool:
        if not provider_message_id:
            return False
        with self.db.session_scope() as s:
            res = s.execute(
                update(NotificationOutbox)
                .where(NotificationOutbox.provider_message_id == provider_message_id)
                .values(status="delivered", updated_at=_now())
            )
            return res.rowcount > 0
