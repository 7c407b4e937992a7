"""
Receivers for the progress engine's domain events.

These run after the triggering transaction commits (on a worker thread
unless ``PROGRESS_EVENTS_ASYNC`` is off) and may fail without affecting the
progress or grading write that produced the event.
"""
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from courses import events
from courses.choices import NotificationType
from courses.models import Certificate
from courses.services.certificate_service import issue_certificate
from courses.services.email_service import send_certificate_issued_email
from courses.services.notification_service import notify, send_certificate_issued_notification

logger = logging.getLogger(__name__)


@receiver(events.module_completed)
def _module_completed_handler(sender, event, **kwargs):
    notify(event.student_id, NotificationType.MODULE_COMPLETED, event.as_payload())


@receiver(events.course_completed)
def _course_completed_handler(sender, event, **kwargs):
    notify(event.student_id, NotificationType.COURSE_COMPLETED, event.as_payload())


@receiver(events.program_completed)
def _program_completed_handler(sender, event, **kwargs):
    notify(event.student_id, NotificationType.PROGRAM_COMPLETED, event.as_payload())


@receiver(events.program_completed)
def _issue_certificate_handler(sender, event, **kwargs):
    result = issue_certificate(event.student_id, event.entity_id)
    if not result.success:
        logger.error(
            f"Certificate issuance failed for student {event.student_id}, program {event.entity_id}: "
            f"{result.message}"
        )


@receiver(events.assessment_graded)
def _assessment_graded_handler(sender, event, **kwargs):
    notify(event.student_id, NotificationType.GRADE_POSTED, event.as_payload())


@receiver(post_save, sender=Certificate)
def _certificate_issued_handler(sender, instance: Certificate, created: bool, **kwargs):
    if not created:
        return
    send_certificate_issued_notification(instance)
    try:
        send_certificate_issued_email(instance)
    except Exception as e:
        # Email delivery is non-blocking
        logger.error(f"Failed to send certificate email for {instance.certificate_number}: {str(e)}", exc_info=True)
