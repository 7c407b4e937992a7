from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from courses.models import Enrollment
from courses.serializers import CompleteLessonSerializer, EnrollmentSerializer, ProgressSerializer
from courses.services import progress_service

from .base import service_response, validation_error_response


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def start_lesson_view(request, lesson_id):
    """Start a lesson, creating the course progress (and program enrollment) on first use."""
    result = progress_service.start_lesson(request.user, lesson_id)
    return service_response(result, ProgressSerializer)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def complete_lesson_view(request, lesson_id):
    """
    Mark a started lesson as completed.
    Body: {"time_spent": int seconds (optional)}
    """
    serializer = CompleteLessonSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    result = progress_service.complete_lesson(
        request.user, lesson_id, serializer.validated_data["time_spent"]
    )
    return service_response(result, ProgressSerializer)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def start_assessment_view(request, assessment_id):
    result = progress_service.start_assessment(request.user, assessment_id)
    return service_response(result, ProgressSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_course_progress_view(request, course_id):
    """
    Get detailed progress for a course including module, lesson and assessment progress.
    Only returns progress for the authenticated user.
    """
    result = progress_service.get_course_progress(request.user, course_id)
    return service_response(result, ProgressSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_program_enrollment_view(request, program_id):
    """Get the authenticated user's program enrollment with per-course status."""
    enrollment = (
        Enrollment.objects.select_related("program")
        .prefetch_related("course_progress__course")
        .filter(student=request.user, program_id=program_id)
        .first()
    )
    if enrollment is None:
        return Response({
            "success": False,
            "message": "You are not enrolled in this program."
        }, status=status.HTTP_404_NOT_FOUND)

    return Response({
        "success": True,
        "data": EnrollmentSerializer(enrollment).data,
        "message": "Program enrollment retrieved successfully."
    }, status=status.HTTP_200_OK)
