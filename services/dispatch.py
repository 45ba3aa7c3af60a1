# services/dispatch.py
"""
Runs queued notifications off the request path.

A notification is first written to the outbox (see models/outbox_store.py),
then submit() hands its id to a bounded thread pool. The worker calls the
notifier exactly once and records the result on the outbox row. When the
pool is saturated the row simply stays 'pending' for retry_pending().
"""

from __future__ import annotations
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from models.outbox_store import OutboxStore
from services.errors import NotifyError
from services.metrics import NOTIFICATIONS

log = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, outbox: OutboxStore, notifier, *, mode: str = "background",
                 max_workers: int = 4, max_queue: int = 100):
        self.outbox = outbox
        self.notifier = notifier
        self.mode = mode
        self._executor: Optional[ThreadPoolExecutor] = None
        self._slots = threading.BoundedSemaphore(max(1, max_workers + max_queue))
        if mode == "background":
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, max_workers), thread_name_prefix="notify")

    def submit(self, notification_id: int) -> bool:
        """Schedule delivery. False if it was left pending for a later retry."""
        if self._executor is None:
            self.deliver(notification_id)
            return True
        if not self._slots.acquire(blocking=False):
            log.warning("Notification queue full; outbox id=%s left pending", notification_id)
            return False
        try:
            self._executor.submit(self._run, notification_id)
        except RuntimeError:
            # executor already shut down
            self._slots.release()
            log.warning("Dispatcher stopped; outbox id=%s left pending", notification_id)
            return False
        return True

    def _run(self, notification_id: int) -> None:
        try:
            self.deliver(notification_id)
        except Exception:
            log.exception("Notification worker crashed for outbox id=%s", notification_id)
        finally:
            self._slots.release()

    def deliver(self, notification_id: int) -> Optional[bool]:
        """
        Send one outbox row. True if sent (now or earlier), False if it
        failed, None if another worker holds the row.
        """
        row = self.outbox.get(notification_id)
        if not row:
            log.warning("Outbox id=%s vanished before delivery", notification_id)
            return False
        if row["status"] in ("sent", "delivered"):
            return True
        if not self.outbox.claim(notification_id):
            log.info("Outbox id=%s is being sent by another worker; skipping", notification_id)
            return None

        try:
            receipt = self.notifier.notify(
                row["order_id"], row["destination"], row["customer_name"], row["kind"],
                payment_url=row.get("payment_url"),
            )
        except NotifyError as e:
            detail = f"{e}: {e.body}" if e.body else str(e)
            self.outbox.mark_failed(notification_id, detail)
            NOTIFICATIONS.labels(kind=row["kind"], outcome="failed").inc()
            log.error("Notification %s for order %s failed (outbox id=%s): %s",
                      row["kind"], row["order_id"], notification_id, e)
            return False

        self.outbox.mark_sent(notification_id, receipt.message_id)
        NOTIFICATIONS.labels(kind=row["kind"], outcome="sent").inc()
        return True

    def retry_pending(self, limit: int = 100) -> dict:
        """Re-attempt every pending/failed (or abandoned) outbox row once, inline."""
        sent = failed = 0
        for row in self.outbox.retriable(limit=limit):
            ok = self.deliver(row["id"])
            if ok is None:
                continue
            if ok:
                sent += 1
            else:
                failed += 1
        log.info("Notification retry pass: %s sent, %s failed", sent, failed)
        return {"sent": sent, "failed": failed}

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
