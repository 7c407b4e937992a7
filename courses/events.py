"""
Domain events emitted by the completion cascade and the submission ledger.

Events are plain Django signals carrying a :class:`DomainEvent`. They are
only dispatched once the surrounding transaction commits, and by default
they are handled on a small background worker pool so that notification or
certificate failures never slow down or unwind a progress write.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from threading import Lock
from typing import Optional

from django.conf import settings
from django.db import close_old_connections, transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

MODULE_COMPLETED = "module_completed"
COURSE_COMPLETED = "course_completed"
PROGRAM_COMPLETED = "program_completed"
ASSESSMENT_GRADED = "assessment_graded"

module_completed = Signal()
course_completed = Signal()
program_completed = Signal()
assessment_graded = Signal()

_SIGNALS = {
    MODULE_COMPLETED: module_completed,
    COURSE_COMPLETED: course_completed,
    PROGRAM_COMPLETED: program_completed,
    ASSESSMENT_GRADED: assessment_graded,
}


@dataclass(frozen=True)
class DomainEvent:
    kind: str
    student_id: int
    entity_id: int
    title: str
    score: Optional[int] = None
    extra: dict = field(default_factory=dict)

    def as_payload(self):
        return asdict(self)


_executor = None
_executor_lock = Lock()


def _get_executor():
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=getattr(settings, "PROGRESS_EVENT_WORKERS", 4),
                thread_name_prefix="progress-events",
            )
        return _executor


def deliver(sender, event):
    """Run every receiver for ``event``; receiver errors are logged, not raised."""
    signal = _SIGNALS[event.kind]
    for receiver, response in signal.send_robust(sender=sender, event=event):
        if isinstance(response, Exception):
            logger.error(
                f"Handler {getattr(receiver, '__name__', receiver)} failed for "
                f"{event.kind} (student={event.student_id}, entity={event.entity_id}): {response}",
                exc_info=(type(response), response, response.__traceback__),
            )


def _deliver_in_worker(sender, event):
    close_old_connections()
    try:
        deliver(sender, event)
    finally:
        close_old_connections()


def emit(sender, event):
    """Queue ``event`` for delivery after the current transaction commits."""
    def _dispatch():
        if getattr(settings, "PROGRESS_EVENTS_ASYNC", True):
            _get_executor().submit(_deliver_in_worker, sender, event)
        else:
            deliver(sender, event)

    logger.debug(f"Queued {event.kind} for student {event.student_id} (entity {event.entity_id})")
    transaction.on_commit(_dispatch)
