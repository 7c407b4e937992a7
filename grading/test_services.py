from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from courses.factories import (
    essay,
    make_assessment,
    make_course,
    make_lessons,
    make_module,
    make_program,
    make_user,
    mc,
    sync_events,
)
from courses.models import Notification, Progress
from courses.services import progress_service
from courses.services.responses import ErrorCode, fail
from grading.models import Submission
from grading.services import SubmissionService


def answers(*values):
    return [{"question_index": index, "answer": value} for index, value in enumerate(values)]


@sync_events
class SubmitTests(TestCase):

    def setUp(self):
        self.student = make_user()
        self.course = make_course(make_program())
        self.module = make_module(self.course)
        self.quiz = make_assessment(
            self.course, self.module, questions=[mc(points=5), mc(points=5)], attempts=2
        )

    def test_auto_graded_submission(self):
        result = SubmissionService.submit(self.student, self.quiz.id, answers("1", 0))

        self.assertTrue(result.success)
        submission = result.data
        self.assertEqual(submission.status, Submission.Status.GRADED)
        self.assertEqual(submission.score, 5)
        self.assertEqual(submission.percentage, 50)
        self.assertEqual(submission.attempt_number, 1)
        self.assertFalse(submission.passed)
        self.assertIsNotNone(submission.graded_at)

        progress = Progress.objects.get(student=self.student, course=self.course)
        entry = progress.modules[str(self.module.id)]["assessments"][str(self.quiz.id)]
        self.assertEqual(entry["status"], "in_progress")
        self.assertEqual(entry["score"], 50)
        self.assertEqual(progress.average_score, 50)

    def test_passing_submission_completes_assessment(self):
        result = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))
        self.assertTrue(result.data.passed)
        progress = Progress.objects.get(student=self.student, course=self.course)
        self.assertEqual(progress.completed_assessments, 1)
        self.assertEqual(progress.overall_progress, 100)

    def test_attempt_limit(self):
        SubmissionService.submit(self.student, self.quiz.id, answers("0", "0"))
        SubmissionService.submit(self.student, self.quiz.id, answers("1", "0"))
        result = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))

        self.assertEqual(result.error, ErrorCode.ATTEMPTS_EXCEEDED)
        numbers = list(
            Submission.objects.filter(student=self.student).order_by("attempt_number")
            .values_list("attempt_number", flat=True)
        )
        self.assertEqual(numbers, [1, 2])
        progress = Progress.objects.get(student=self.student, course=self.course)
        entry = progress.modules[str(self.module.id)]["assessments"][str(self.quiz.id)]
        self.assertEqual(entry["attempts"], 2)

    def _stale_count_once(self, stale_value):
        real_count = SubmissionService.non_draft_count
        calls = []

        def count(student, assessment):
            calls.append(assessment.id)
            if len(calls) == 1:
                return stale_value
            return real_count(student, assessment)

        return mock.patch.object(SubmissionService, "non_draft_count", side_effect=count), calls

    def test_stale_attempt_count_is_retried(self):
        SubmissionService.submit(self.student, self.quiz.id, answers("0", "0"))

        patcher, calls = self._stale_count_once(0)
        with patcher:
            result = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))

        self.assertTrue(result.success)
        self.assertEqual(result.data.attempt_number, 2)
        self.assertEqual(len(calls), 2)
        numbers = sorted(Submission.objects.values_list("attempt_number", flat=True))
        self.assertEqual(numbers, [1, 2])

    def test_retry_still_enforces_attempt_limit(self):
        SubmissionService.submit(self.student, self.quiz.id, answers("0", "0"))
        SubmissionService.submit(self.student, self.quiz.id, answers("1", "0"))

        patcher, calls = self._stale_count_once(1)
        with patcher:
            result = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))

        self.assertEqual(result.error, ErrorCode.ATTEMPTS_EXCEEDED)
        self.assertEqual(len(calls), 2)
        self.assertEqual(Submission.objects.count(), 2)

    def test_unpublished_assessment(self):
        hidden = make_assessment(self.course, self.module, questions=[mc()], is_published=False)
        result = SubmissionService.submit(self.student, hidden.id, answers("1"))
        self.assertEqual(result.error, ErrorCode.ASSESSMENT_NOT_PUBLISHED)
        self.assertFalse(Submission.objects.exists())

    def test_unknown_assessment(self):
        self.assertEqual(SubmissionService.submit(self.student, 424242, []).error, ErrorCode.NOT_FOUND)

    def test_duplicate_question_index(self):
        result = SubmissionService.submit(
            self.student, self.quiz.id, [{"question_index": 0, "answer": 1}, {"question_index": 0, "answer": 2}]
        )
        self.assertEqual(result.error, ErrorCode.VALIDATION)

    def test_late_submission_is_flagged(self):
        self.quiz.end_date = timezone.now() - timedelta(days=1)
        self.quiz.save()
        result = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))
        self.assertTrue(result.data.is_late)

    def test_grade_posted_notification(self):
        with self.captureOnCommitCallbacks(execute=True):
            SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))
        notification = Notification.objects.get(user=self.student, notification_type="grade_posted")
        self.assertIn("100%", notification.message)

    def test_progress_failure_is_repaired_by_reconcile(self):
        busy = fail(ErrorCode.CONFLICT, "busy")
        with mock.patch.object(progress_service, "record_assessment_result", return_value=busy):
            submission = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1")).data

        self.assertEqual(submission.status, Submission.Status.GRADED)
        progress = Progress.objects.get(student=self.student, course=self.course)
        self.assertEqual(progress.completed_assessments, 0)

        result = progress_service.reconcile_progress(progress)
        self.assertTrue(result.data.changed)
        progress.refresh_from_db()
        self.assertEqual(progress.completed_assessments, 1)
        self.assertEqual(progress.average_score, 100)


@sync_events
class DraftTests(TestCase):

    def setUp(self):
        self.student = make_user()
        self.course = make_course()
        self.module = make_module(self.course)
        self.quiz = make_assessment(self.course, self.module, questions=[mc(), mc()], attempts=1)

    def test_single_draft_is_overwritten(self):
        first = SubmissionService.save_draft(self.student, self.quiz.id, answers("0")).data
        second = SubmissionService.save_draft(self.student, self.quiz.id, answers("1", "1")).data

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Submission.objects.filter(status=Submission.Status.DRAFT).count(), 1)
        self.assertIsNone(second.attempt_number)
        self.assertEqual(len(second.answers), 2)

    def test_draft_does_not_use_an_attempt(self):
        SubmissionService.save_draft(self.student, self.quiz.id, answers("0"))
        result = SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))

        self.assertTrue(result.success)
        self.assertEqual(result.data.attempt_number, 1)
        self.assertEqual(Submission.objects.count(), 1)
        self.assertFalse(Submission.objects.filter(status=Submission.Status.DRAFT).exists())

    def test_draft_after_attempts_used(self):
        SubmissionService.submit(self.student, self.quiz.id, answers("1", "1"))
        result = SubmissionService.save_draft(self.student, self.quiz.id, answers("0"))
        self.assertEqual(result.error, ErrorCode.ATTEMPTS_EXCEEDED)


@sync_events
class ManualGradingTests(TestCase):

    def setUp(self):
        self.student = make_user()
        self.instructor = make_user("instructor", is_staff=True)
        self.course = make_course(make_program())
        self.module = make_module(self.course)
        make_lessons(self.module, 1)
        # 5 auto-graded points plus a 5 point essay
        self.project = make_assessment(
            self.course, self.module, questions=[essay(points=5), mc(points=5)], attempts=3
        )

    def test_essay_waits_for_grader(self):
        result = SubmissionService.submit(self.student, self.project.id, answers("My essay", "1"))

        submission = result.data
        self.assertEqual(submission.status, Submission.Status.SUBMITTED)
        self.assertIsNone(submission.percentage)
        self.assertEqual(submission.answers[1]["is_correct"], True)
        self.assertIsNone(submission.answers[0]["is_correct"])

        progress = Progress.objects.get(student=self.student, course=self.course)
        entry = progress.modules[str(self.module.id)]["assessments"][str(self.project.id)]
        self.assertEqual(entry["status"], "in_progress")
        self.assertEqual(entry["attempts"], 0)

    def test_manual_grade_updates_progress(self):
        submission = SubmissionService.submit(self.student, self.project.id, answers("Essay", "1")).data
        result = SubmissionService.grade_manually(submission.id, 8, "Well argued", self.instructor)

        graded = result.data
        self.assertEqual(graded.status, Submission.Status.GRADED)
        self.assertEqual(graded.percentage, 80)
        self.assertEqual(graded.graded_by, self.instructor)
        self.assertEqual(graded.feedback, "Well argued")

        progress = Progress.objects.get(student=self.student, course=self.course)
        entry = progress.modules[str(self.module.id)]["assessments"][str(self.project.id)]
        self.assertEqual(entry["status"], "completed")
        self.assertEqual(progress.completed_assessments, 1)
        self.assertEqual(progress.average_score, 80)

    def test_regrade_replaces_result(self):
        submission = SubmissionService.submit(self.student, self.project.id, answers("Essay", "1")).data
        SubmissionService.grade_manually(submission.id, 4, "", self.instructor)
        SubmissionService.grade_manually(submission.id, 9, "Revised", self.instructor)

        progress = Progress.objects.get(student=self.student, course=self.course)
        entry = progress.modules[str(self.module.id)]["assessments"][str(self.project.id)]
        self.assertEqual(entry["attempts"], 1)
        self.assertEqual(entry["score"], 90)
        self.assertEqual(progress.average_score, 90)

    def test_score_above_total_is_clamped(self):
        submission = SubmissionService.submit(self.student, self.project.id, answers("Essay", "1")).data
        result = SubmissionService.grade_manually(submission.id, 12, "", self.instructor)
        self.assertEqual(result.data.percentage, 100)

    def test_invalid_grades(self):
        submission = SubmissionService.submit(self.student, self.project.id, answers("Essay", "1")).data
        self.assertEqual(
            SubmissionService.grade_manually(submission.id, -1, "", self.instructor).error,
            ErrorCode.VALIDATION,
        )
        self.assertEqual(
            SubmissionService.grade_manually(999999, 5, "", self.instructor).error,
            ErrorCode.NOT_FOUND,
        )
        draft = SubmissionService.save_draft(self.student, self.project.id, answers("Later")).data
        self.assertEqual(
            SubmissionService.grade_manually(draft.id, 5, "", self.instructor).error,
            ErrorCode.VALIDATION,
        )


    def test_non_finite_scores_are_rejected(self):
        submission = SubmissionService.submit(self.student, self.project.id, answers("Essay", "1")).data
        for score in ("nan", "inf", float("-inf")):
            result = SubmissionService.grade_manually(submission.id, score, "", self.instructor)
            self.assertEqual(result.error, ErrorCode.VALIDATION)

        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.Status.SUBMITTED)
        self.assertIsNone(submission.percentage)
