"""
Notification service for creating and managing user notifications.

``notify`` is the best-effort entry point used by the event handlers: it
renders a title/message for the event kind and stores an in-app
notification. Failures are logged and swallowed.
"""
import logging

from django.contrib.contenttypes.models import ContentType
from django.utils import timezone

from courses.choices import NotificationType
from courses.models import Notification

logger = logging.getLogger(__name__)


NOTIFICATION_TEMPLATES = {
    NotificationType.MODULE_COMPLETED: {
        "title": "Module Completed",
        "message": "Great work! You have completed the module '{title}'.",
        "action_url": "/courses/{course_id}",
        "icon": "module",
    },
    NotificationType.COURSE_COMPLETED: {
        "title": "Course Completed!",
        "message": "Congratulations! You have completed '{title}'.",
        "action_url": "/courses/{entity_id}",
        "icon": "course",
    },
    NotificationType.PROGRAM_COMPLETED: {
        "title": "Program Completed!",
        "message": "Congratulations! You have completed the program '{title}'. Your certificate is on its way.",
        "action_url": "/programs/{entity_id}",
        "icon": "certificate",
    },
    NotificationType.GRADE_POSTED: {
        "title": "Assessment Graded",
        "message": "Your assessment '{title}' has been graded. Score: {score}%",
        "action_url": "/assessments/{entity_id}",
        "icon": "assessment",
    },
}


def create_notification(user_id, notification_type, title, message, related_object=None,
                        action_url=None, icon=None):
    """
    Store one in-app notification for ``user_id``.

    ``related_object`` is linked through the generic relation (a certificate,
    a submission). Returns the notification, or None if it could not be
    stored; the error is logged and never propagated to the caller.
    """
    link = {}
    try:
        if related_object is not None:
            link = {
                "content_type": ContentType.objects.get_for_model(related_object),
                "object_id": related_object.pk,
            }
        return Notification.objects.create(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            action_url=action_url,
            icon=icon,
            **link,
        )
    except Exception as e:
        logger.error(f"Failed to create {notification_type} notification for user {user_id}: {e}", exc_info=True)
        return None


class _Defaults(dict):
    def __missing__(self, key):
        return ""


def notify(user_id, event_kind, payload):
    """Render the template for ``event_kind`` with ``payload`` and store it."""
    template = NOTIFICATION_TEMPLATES.get(event_kind)
    if template is None:
        logger.warning(f"No notification template for {event_kind}")
        return None
    context = _Defaults(payload)
    context.update(payload.get("extra") or {})
    return create_notification(
        user_id=user_id,
        notification_type=event_kind,
        title=template["title"].format_map(context),
        message=template["message"].format_map(context),
        action_url=template["action_url"].format_map(context),
        icon=template["icon"],
    )


def send_certificate_issued_notification(certificate):
    """Send notification when certificate is issued."""
    return create_notification(
        user_id=certificate.student_id,
        notification_type=NotificationType.CERTIFICATE_ISSUED,
        title="Certificate Issued",
        message=f"Your certificate for '{certificate.program_name}' has been issued. "
                f"Certificate number: {certificate.certificate_number}",
        related_object=certificate,
        action_url=f"/certificates/{certificate.certificate_number}",
        icon="certificate"
    )


def get_user_notifications(user, is_read=None):
    """Newest first; ``is_read`` filters by read state when given."""
    notifications = Notification.objects.filter(user=user)
    if is_read is not None:
        notifications = notifications.filter(is_read=is_read)
    return notifications


def mark_notification_as_read(notification_id, user):
    """Returns ``(found, message)``; notifications of other users are not found."""
    notification = Notification.objects.filter(id=notification_id, user=user).first()
    if notification is None:
        return False, "Notification not found."
    notification.mark_as_read()
    return True, "Notification marked as read."


def mark_all_notifications_as_read(user):
    return Notification.objects.filter(user=user, is_read=False).update(is_read=True, read_at=timezone.now())


def get_unread_notification_count(user):
    return Notification.objects.filter(user=user, is_read=False).count()
