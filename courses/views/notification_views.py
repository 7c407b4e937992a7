"""
In-app notifications produced by completion, grading and certificate events.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from courses.choices import NotificationType
from courses.serializers import NotificationSerializer
from courses.services.notification_service import (
    get_unread_notification_count,
    get_user_notifications,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)

from .base import validation_error_response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_notifications_view(request):
    """
    Query parameters:
    - is_read: true/false
    - notification_type: one of module_completed, course_completed,
      program_completed, grade_posted, certificate_issued
    - limit: positive integer
    """
    params = request.query_params
    notification_type = params.get('notification_type')
    if notification_type and notification_type not in NotificationType.values:
        return validation_error_response({'notification_type': [f'Unknown type "{notification_type}".']})

    is_read = params.get('is_read')
    notifications = get_user_notifications(
        request.user,
        is_read=is_read.lower() == 'true' if is_read else None,
    )
    if notification_type:
        notifications = notifications.filter(notification_type=notification_type)

    total = notifications.count()
    limit = params.get('limit', '')
    if limit.isdigit() and int(limit) > 0:
        notifications = notifications[:int(limit)]

    return Response({
        "success": True,
        "data": NotificationSerializer(notifications, many=True).data,
        "count": total,
    }, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_unread_count_view(request):
    return Response({
        "success": True,
        "data": {"unread_count": get_unread_notification_count(request.user)},
    }, status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_notification_read_view(request, notification_id):
    """Only the owner can mark a notification; anyone else gets a 404."""
    found, message = mark_notification_as_read(notification_id, request.user)
    return Response(
        {"success": found, "message": message},
        status=status.HTTP_200_OK if found else status.HTTP_404_NOT_FOUND,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_all_notifications_read_view(request):
    marked = mark_all_notifications_as_read(request.user)
    return Response({
        "success": True,
        "message": f"Marked {marked} notification(s) as read.",
        "data": {"marked_count": marked},
    }, status=status.HTTP_200_OK)
