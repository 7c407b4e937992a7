from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from courses.services.pagination import paginate_queryset
from courses.views.base import service_response, validation_error_response

from .models import Submission
from .serializers import (
    DraftSerializer,
    GradeSubmissionSerializer,
    SubmissionSerializer,
    SubmitAssessmentSerializer,
)
from .services import SubmissionService


class SubmitAssessmentView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assessment_id):
        """
        Submit an attempt for an assessment.
        Body: {
            "answers": [{"question_index": int, "answer": any}, ...],
            "time_spent": int (optional, seconds)
        }
        """
        serializer = SubmitAssessmentSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = SubmissionService.submit(
            request.user,
            assessment_id,
            serializer.validated_data["answers"],
            serializer.validated_data["time_spent"],
        )
        return service_response(result, SubmissionSerializer, success_status=status.HTTP_201_CREATED)


class SaveDraftView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assessment_id):
        serializer = DraftSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = SubmissionService.save_draft(
            request.user, assessment_id, serializer.validated_data["answers"]
        )
        return service_response(result, SubmissionSerializer)


class StudentSubmissionsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, assessment_id):
        """List the authenticated student's attempts, newest first."""
        submissions = SubmissionService.list_submissions(request.user, assessment_id)
        return Response({
            "success": True,
            "data": SubmissionSerializer(submissions, many=True).data,
            "message": "Submissions retrieved successfully."
        }, status=status.HTTP_200_OK)


class GradeSubmissionView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, submission_id):
        """
        Grade or re-grade a submission.
        Body: {"score": float (raw points), "feedback": string (optional)}
        """
        serializer = GradeSubmissionSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = SubmissionService.grade_manually(
            submission_id,
            serializer.validated_data["score"],
            serializer.validated_data["feedback"],
            request.user,
        )
        return service_response(result, SubmissionSerializer)


class SubmissionDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, submission_id):
        result = SubmissionService.get_submission(submission_id, request.user)
        return service_response(result, SubmissionSerializer)


class AssessmentSubmissionsView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, assessment_id):
        """
        Every student's submissions for an assessment, for graders.
        Query parameters:
        - status: draft, submitted or graded
        - page, page_size
        """
        submission_status = request.query_params.get("status")
        if submission_status and submission_status not in Submission.Status.values:
            return validation_error_response({"status": [f'Unknown status "{submission_status}".']})

        submissions = SubmissionService.submissions_for_assessment(assessment_id, submission_status)
        return paginate_queryset(request, submissions, SubmissionSerializer, "Submissions retrieved successfully.")


class StudentLedgerView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, student_id):
        """
        All submissions of one student.
        Query parameters:
        - course_id: restrict to one course
        - page, page_size
        """
        course_id = request.query_params.get("course_id")
        if course_id and not course_id.isdigit():
            return validation_error_response({"course_id": ["A valid integer is required."]})

        submissions = SubmissionService.submissions_for_student(student_id, course_id)
        return paginate_queryset(request, submissions, SubmissionSerializer, "Submissions retrieved successfully.")
