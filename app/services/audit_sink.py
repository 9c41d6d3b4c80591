# app/services/audit_sink.py
"""
Audit event emission — shared by every lifecycle component.
The engine only emits events; storing and querying them belongs to whatever
sits behind the sink. Emission is best-effort: emit_safely() never lets a sink
failure reach the operation that produced the event.
"""

import json
import queue
import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Optional, Protocol

import requests

from app.config import Settings
from app.utils.clock import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

CHECK_IN = "CHECK_IN"
CHECK_OUT = "CHECK_OUT"
RECOVER_PAYMENT = "RECOVER_PAYMENT"
OPEN_SHIFT = "OPEN_SHIFT"
CLOSE_SHIFT = "CLOSE_SHIFT"
UPDATE_SLOT_STATUS = "UPDATE_SLOT_STATUS"


@dataclass
class AuditEvent:
    actor_id: Optional[int]
    action: str
    entity_type: str          # parking_tickets | payments | shifts | parking_slots
    entity_id: Optional[int]
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    timestamp: datetime = field(default_factory=utcnow)


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Default sink: one log line per event."""

    def emit(self, event: AuditEvent) -> None:
        logger.info(
            f"[AUDIT][{event.action}] {event.entity_type}#{event.entity_id} "
            f"by user {event.actor_id} after={event.after}"
        )


class HttpAuditSink:
    """
    Forwards events as JSON to an external audit service.

    emit() only serializes and enqueues; a background thread does the POST,
    so a slow or unreachable audit service never holds up a request. When
    the queue is full emit() raises queue.Full and emit_safely() drops the
    event. Delivery failures are logged by the worker and the event dropped.
    """

    _STOP = object()

    def __init__(self, url: str, timeout: float = 3.0, session: Optional[requests.Session] = None,
                 max_queue: int = 1000):
        self.url = url
        self.timeout = timeout
        self.http = session or requests.Session()
        self.queue: "queue.Queue" = queue.Queue(maxsize=max_queue)
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @staticmethod
    def serialize(event: AuditEvent) -> str:
        payload = asdict(event)
        payload["timestamp"] = event.timestamp.isoformat()
        # Decimals and datetimes inside before/after are stringified here, at the edge
        return json.dumps(payload, default=str)

    def deliver(self, body: str) -> None:
        resp = self.http.post(
            self.url,
            data=body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()

    def emit(self, event: AuditEvent) -> None:
        self._ensure_worker()
        self.queue.put_nowait(self.serialize(event))

    def _ensure_worker(self):
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._run, name="audit-http-sink", daemon=True)
                self._worker.start()

    def _run(self):
        while True:
            body = self.queue.get()
            try:
                if body is self._STOP:
                    return
                self.deliver(body)
            except Exception as e:
                logger.warning(f"[AUDIT] Delivery to {self.url} failed, event dropped: {e}")
            finally:
                self.queue.task_done()

    def close(self, timeout: float = None) -> None:
        """Deliver what is queued, then stop the worker."""
        with self._lock:
            worker = self._worker
        if worker is None or not worker.is_alive():
            return
        self.queue.put(self._STOP)
        worker.join(timeout if timeout is not None else self.timeout * 2)


def build_audit_sink(settings: Settings) -> AuditSink:
    if settings.AUDIT_SINK == "http":
        if not settings.AUDIT_WEBHOOK_URL:
            raise ValueError("AUDIT_SINK=http requires AUDIT_WEBHOOK_URL")
        return HttpAuditSink(settings.AUDIT_WEBHOOK_URL, timeout=settings.AUDIT_TIMEOUT_SECONDS)
    return LoggingAuditSink()


def emit_safely(sink: AuditSink, event: AuditEvent) -> None:
    """Hand the event to the sink. Failures are logged and the event dropped."""
    try:
        sink.emit(event)
    except Exception as e:
        logger.warning(
            f"[AUDIT] Dropped {event.action} event for {event.entity_type}#{event.entity_id}: {e}",
            exc_info=True,
        )
