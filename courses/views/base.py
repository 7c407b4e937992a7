# views/base.py
from rest_framework import status
from rest_framework.response import Response

from courses.services.responses import ErrorCode

ERROR_STATUS = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PROGRESS_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ASSESSMENT_NOT_PUBLISHED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ATTEMPTS_EXCEEDED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.LESSON_NOT_STARTED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
}


def service_response(result, serializer_class=None, success_status=status.HTTP_200_OK):
    """Render a ``ServiceResult`` in the ``{"success", "data", "message"}`` envelope."""
    if not result.success:
        return Response({
            "success": False,
            "message": result.message,
            "error": result.error.value if result.error else None,
        }, status=ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST))

    data = result.data
    if serializer_class is not None and data is not None:
        data = serializer_class(data).data
    return Response({
        "success": True,
        "data": data,
        "message": result.message,
    }, status=success_status)


def validation_error_response(errors):
    return Response({
        "success": False,
        "message": "Invalid request data.",
        "error": ErrorCode.VALIDATION.value,
        "errors": errors,
    }, status=status.HTTP_400_BAD_REQUEST)
