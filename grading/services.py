"""
Submission ledger.

Owns the lifecycle of an assessment attempt (draft -> submitted -> graded),
enforces attempt limits and computes score/percentage. The submission row
is written in one transaction; progress and cascade updates follow as a
separate step, so a failure there never rolls back a stored submission and
is repaired later by ``reconcile_progress``.
"""
import logging
import math

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from courses import events
from courses.events import DomainEvent
from courses.models import Assessment
from courses.services import progress_service
from courses.services.responses import ErrorCode, fail, ok

from .grader import grade_answers, score_percentage
from .models import Submission

logger = logging.getLogger(__name__)


def _validate_answers(answers):
    if not isinstance(answers, (list, tuple)):
        return "answers must be a list."
    seen = set()
    for item in answers:
        if not isinstance(item, dict) or "question_index" not in item:
            return "Each answer needs a question_index."
        index = item["question_index"]
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            return "question_index must be a non-negative integer."
        if index in seen:
            return f"Question {index} was answered more than once."
        seen.add(index)
    return None


class SubmissionService:

    @staticmethod
    def non_draft_count(student, assessment):
        return Submission.objects.filter(
            student=student, assessment=assessment
        ).exclude(status=Submission.Status.DRAFT).count()

    @staticmethod
    def _get_assessment(assessment_id):
        try:
            return Assessment.objects.select_related("course", "module").get(id=assessment_id)
        except Assessment.DoesNotExist:
            return None

    @staticmethod
    def submit(student, assessment_id, answers, time_spent=0):
        """
        Submit an attempt.

        Rejects unpublished assessments and students who used all their
        attempts without writing anything. The attempt number is always
        computed here; a pending draft is promoted in place. Fully
        auto-gradable submissions are graded immediately, others wait for
        ``grade_manually`` with the percentage withheld.
        """
        error = _validate_answers(answers)
        if error:
            return fail(ErrorCode.VALIDATION, error)

        assessment = SubmissionService._get_assessment(assessment_id)
        if assessment is None:
            return fail(ErrorCode.NOT_FOUND, "Assessment not found.")
        if not assessment.is_published:
            return fail(ErrorCode.ASSESSMENT_NOT_PUBLISHED, "Assessment is not published.")

        outcome = grade_answers(assessment.ordered_questions(), list(answers))
        max_retries = max(1, getattr(settings, "SUBMISSION_MAX_RETRIES", 3))

        submission = None
        for attempt in range(1, max_retries + 1):
            try:
                with transaction.atomic():
                    used = SubmissionService.non_draft_count(student, assessment)
                    if used >= assessment.attempts:
                        return fail(
                            ErrorCode.ATTEMPTS_EXCEEDED,
                            f"Maximum attempts ({assessment.attempts}) reached for this assessment.",
                        )

                    now = timezone.now()
                    submission = (
                        Submission.objects.select_for_update()
                        .filter(student=student, assessment=assessment, status=Submission.Status.DRAFT)
                        .first()
                    ) or Submission(student=student, assessment=assessment)

                    submission.answers = outcome.answers
                    submission.attempt_number = used + 1
                    submission.submitted_at = now
                    submission.is_late = bool(assessment.end_date and now > assessment.end_date)
                    submission.time_spent = max(0, int(time_spent or 0))
                    if outcome.requires_manual_grading:
                        submission.status = Submission.Status.SUBMITTED
                        submission.score = 0
                        submission.percentage = None
                        submission.graded_at = None
                    else:
                        submission.status = Submission.Status.GRADED
                        submission.score = outcome.score
                        submission.percentage = score_percentage(outcome.score, assessment.total_points)
                        submission.graded_at = now
                    submission.save()
                break
            except IntegrityError:
                submission = None
                logger.warning(
                    f"Attempt number race for student {student.pk} on assessment {assessment.id} "
                    f"(try {attempt}/{max_retries}), retrying"
                )
        if submission is None:
            return fail(ErrorCode.CONFLICT, "Another submission is in progress. Please retry.")

        logger.info(
            f"Student {student.pk} submitted attempt {submission.attempt_number} "
            f"for assessment {assessment.id} ({submission.status})"
        )
        SubmissionService._sync_progress(submission)
        return ok("Assessment submitted successfully.", submission)

    @staticmethod
    def save_draft(student, assessment_id, answers):
        """Create or overwrite the student's single draft; never uses an attempt."""
        error = _validate_answers(answers)
        if error:
            return fail(ErrorCode.VALIDATION, error)

        assessment = SubmissionService._get_assessment(assessment_id)
        if assessment is None:
            return fail(ErrorCode.NOT_FOUND, "Assessment not found.")
        if not assessment.is_published:
            return fail(ErrorCode.ASSESSMENT_NOT_PUBLISHED, "Assessment is not published.")
        if SubmissionService.non_draft_count(student, assessment) >= assessment.attempts:
            return fail(
                ErrorCode.ATTEMPTS_EXCEEDED,
                f"Maximum attempts ({assessment.attempts}) reached for this assessment.",
            )

        draft_answers = [
            {"question_index": item["question_index"], "answer": item.get("answer")}
            for item in answers
        ]
        try:
            with transaction.atomic():
                draft, created = Submission.objects.select_for_update().get_or_create(
                    student=student,
                    assessment=assessment,
                    status=Submission.Status.DRAFT,
                    defaults={"answers": draft_answers},
                )
                if not created:
                    draft.answers = draft_answers
                    draft.save(update_fields=["answers", "updated_at"])
        except IntegrityError:
            return fail(ErrorCode.CONFLICT, "Draft is being saved by another request. Please retry.")
        return ok("Draft saved.", draft)

    @staticmethod
    def grade_manually(submission_id, score, feedback, grader):
        """
        Grade (or re-grade) a submitted attempt.

        Re-grading a GRADED submission is allowed so instructors can correct
        mistakes; the progress tree replaces that submission's earlier result.
        """
        try:
            score = float(score)
        except (TypeError, ValueError):
            return fail(ErrorCode.VALIDATION, "Invalid score format.")
        if not math.isfinite(score):
            return fail(ErrorCode.VALIDATION, "Score must be a finite number.")
        if score < 0:
            return fail(ErrorCode.VALIDATION, "Score cannot be negative.")

        with transaction.atomic():
            try:
                submission = (
                    Submission.objects.select_for_update()
                    .select_related("assessment")
                    .get(id=submission_id)
                )
            except Submission.DoesNotExist:
                return fail(ErrorCode.NOT_FOUND, "Submission not found.")
            if submission.status == Submission.Status.DRAFT:
                return fail(ErrorCode.VALIDATION, "Draft submissions cannot be graded.")

            submission.score = score
            submission.percentage = score_percentage(score, submission.assessment.total_points)
            submission.status = Submission.Status.GRADED
            submission.feedback = feedback or ""
            submission.graded_at = timezone.now()
            submission.graded_by = grader
            submission.save(update_fields=[
                "score", "percentage", "status", "feedback", "graded_at", "graded_by", "updated_at",
            ])

        logger.info(
            f"Submission {submission.id} graded by {getattr(grader, 'pk', None)}: {submission.percentage}%"
        )
        SubmissionService._sync_progress(submission)
        return ok("Submission graded successfully.", submission)

    @staticmethod
    def list_submissions(student, assessment_id):
        return Submission.objects.filter(
            student=student, assessment_id=assessment_id
        ).order_by("-created_at")

    @staticmethod
    def get_submission(submission_id, user):
        """Staff see any submission; students only their own, others are not found."""
        submissions = Submission.objects.select_related("assessment", "student", "graded_by")
        if not user.is_staff:
            submissions = submissions.filter(student=user)
        submission = submissions.filter(id=submission_id).first()
        if submission is None:
            return fail(ErrorCode.NOT_FOUND, "Submission not found.")
        return ok("Submission retrieved successfully.", submission)

    @staticmethod
    def _ledger(**filters):
        return Submission.objects.filter(**filters).select_related("assessment", "student").order_by(
            F("submitted_at").desc(nulls_last=True), "-created_at"
        )

    @staticmethod
    def submissions_for_assessment(assessment_id, status=None):
        """All students' submissions, newest submitted first; ``status`` narrows it."""
        filters = {"assessment_id": assessment_id}
        if status:
            filters["status"] = status
        return SubmissionService._ledger(**filters)

    @staticmethod
    def submissions_for_student(student_id, course_id=None):
        filters = {"student_id": student_id}
        if course_id:
            filters["assessment__course_id"] = course_id
        return SubmissionService._ledger(**filters)

    @staticmethod
    def _sync_progress(submission):
        """Reflect a stored submission in the student's progress and emit events."""
        student = submission.student
        assessment = submission.assessment

        started = progress_service.start_assessment(student, assessment.id)
        if not started.success:
            logger.warning(
                f"Could not start assessment progress for submission {submission.id}: {started.message}"
            )
            return

        if submission.status != Submission.Status.GRADED:
            return

        recorded = progress_service.record_assessment_result(
            student, assessment.id, submission.id, submission.percentage
        )
        if not recorded.success:
            logger.warning(
                f"Progress not updated for submission {submission.id}, "
                f"will be picked up by reconcile_progress: {recorded.message}"
            )

        events.emit(Submission, DomainEvent(
            kind=events.ASSESSMENT_GRADED,
            student_id=student.pk,
            entity_id=assessment.id,
            title=assessment.title,
            score=submission.percentage,
            extra={"submission_id": submission.id, "passed": submission.passed},
        ))
