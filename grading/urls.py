from django.urls import path
from .views import (
    AssessmentSubmissionsView,
    GradeSubmissionView,
    SaveDraftView,
    StudentLedgerView,
    StudentSubmissionsView,
    SubmissionDetailView,
    SubmitAssessmentView,
)

urlpatterns = [
    path('assessments/<int:assessment_id>/submit/', SubmitAssessmentView.as_view(), name='submit_assessment'),
    path('assessments/<int:assessment_id>/draft/', SaveDraftView.as_view(), name='save_assessment_draft'),
    path('assessments/<int:assessment_id>/submissions/', StudentSubmissionsView.as_view(), name='student_submissions'),
    path('assessments/<int:assessment_id>/all-submissions/', AssessmentSubmissionsView.as_view(), name='assessment_submissions'),
    path('students/<int:student_id>/submissions/', StudentLedgerView.as_view(), name='student_ledger'),
    path('submissions/<int:submission_id>/', SubmissionDetailView.as_view(), name='submission_detail'),
    path('submissions/<int:submission_id>/grade/', GradeSubmissionView.as_view(), name='grade_submission'),
]
