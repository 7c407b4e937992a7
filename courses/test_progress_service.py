from unittest import mock

from django.db.models import F
from django.test import TestCase, override_settings

from courses.choices import EnrollmentStatus
from courses.factories import (
    make_assessment,
    make_course,
    make_lessons,
    make_module,
    make_program,
    make_user,
    mc,
    sync_events,
)
from courses.models import Enrollment, Lesson, Progress
from courses.services import progress_service
from courses.services.responses import ErrorCode


@sync_events
class ProgressServiceTests(TestCase):

    def setUp(self):
        self.student = make_user()
        self.program = make_program()
        self.course = make_course(self.program)
        self.module = make_module(self.course)
        self.lessons = make_lessons(self.module, 3)
        self.assessment = make_assessment(self.course, self.module, questions=[mc(points=5)])

    def test_start_lesson_creates_seeded_progress_and_enrollment(self):
        result = progress_service.start_lesson(self.student, self.lessons[0].id)

        self.assertTrue(result.success)
        progress = Progress.objects.get(student=self.student, course=self.course)
        node = progress.modules[str(self.module.id)]
        self.assertEqual(node["total_lessons"], 3)
        self.assertEqual(node["total_assessments"], 1)
        self.assertEqual(node["lessons"][str(self.lessons[0].id)]["status"], "in_progress")
        self.assertEqual(progress.total_lessons, 3)
        self.assertEqual(progress.version, 1)

        enrollment = Enrollment.objects.get(student=self.student, program=self.program)
        self.assertEqual(enrollment.status, EnrollmentStatus.ACTIVE)
        entry = enrollment.course_progress.get()
        self.assertEqual(entry.status, EnrollmentStatus.ACTIVE)
        self.assertEqual(entry.total_lessons, 3)

    def test_unknown_lesson(self):
        result = progress_service.start_lesson(self.student, 999999)
        self.assertFalse(result.success)
        self.assertEqual(result.error, ErrorCode.NOT_FOUND)

    def test_complete_lesson_without_progress(self):
        result = progress_service.complete_lesson(self.student, self.lessons[0].id)
        self.assertEqual(result.error, ErrorCode.PROGRESS_NOT_FOUND)
        self.assertFalse(Progress.objects.exists())

    def test_complete_lesson_not_started(self):
        progress_service.start_lesson(self.student, self.lessons[0].id)
        result = progress_service.complete_lesson(self.student, self.lessons[1].id)
        self.assertEqual(result.error, ErrorCode.LESSON_NOT_STARTED)

    def test_complete_lesson_rejects_negative_time(self):
        progress_service.start_lesson(self.student, self.lessons[0].id)
        result = progress_service.complete_lesson(self.student, self.lessons[0].id, time_spent=-5)
        self.assertEqual(result.error, ErrorCode.VALIDATION)

    def test_complete_lesson_updates_counters(self):
        progress_service.start_lesson(self.student, self.lessons[0].id)
        result = progress_service.complete_lesson(self.student, self.lessons[0].id, time_spent=90)

        progress = result.data
        self.assertEqual(progress.completed_lessons, 1)
        self.assertEqual(progress.overall_progress, 25)
        self.assertEqual(progress.total_time_spent, 90)
        entry = Enrollment.objects.get(student=self.student).course_progress.get()
        self.assertEqual(entry.lessons_completed, 1)

    def test_start_unpublished_assessment(self):
        draft = make_assessment(self.course, self.module, is_published=False)
        result = progress_service.start_assessment(self.student, draft.id)
        self.assertEqual(result.error, ErrorCode.ASSESSMENT_NOT_PUBLISHED)

    def test_record_result_defaults_passed_from_passing_score(self):
        progress_service.start_assessment(self.student, self.assessment.id)
        result = progress_service.record_assessment_result(self.student, self.assessment.id, 1, 70)
        entry = result.data.modules[str(self.module.id)]["assessments"][str(self.assessment.id)]
        self.assertEqual(entry["status"], "completed")
        self.assertEqual(result.data.completed_assessments, 1)
        self.assertEqual(result.data.average_score, 70)

    def test_course_level_assessment_does_not_touch_tree(self):
        final = make_assessment(self.course, module=None, title="Final exam")
        progress_service.start_lesson(self.student, self.lessons[0].id)
        before = Progress.objects.get().modules

        result = progress_service.start_assessment(self.student, final.id)
        self.assertTrue(result.success)
        self.assertEqual(result.data.modules, before)
        self.assertEqual(result.data.total_assessments, 1)

    def test_lesson_added_after_enrollment_lowers_percentage(self):
        progress_service.start_lesson(self.student, self.lessons[0].id)
        progress_service.complete_lesson(self.student, self.lessons[0].id)
        new_module = make_module(self.course)
        late_lesson = Lesson.objects.create(module=new_module, title="Bonus")

        result = progress_service.start_lesson(self.student, late_lesson.id)
        self.assertTrue(result.success)
        node = result.data.modules[str(new_module.id)]
        self.assertEqual(node["total_lessons"], 1)
        self.assertEqual(result.data.total_lessons, 4)
        self.assertEqual(result.data.overall_progress, 20)

    def test_get_course_progress(self):
        self.assertEqual(
            progress_service.get_course_progress(self.student, self.course.id).error,
            ErrorCode.NOT_FOUND,
        )
        progress_service.start_lesson(self.student, self.lessons[0].id)
        result = progress_service.get_course_progress(self.student, self.course.id)
        self.assertTrue(result.success)
        self.assertEqual(result.data.course, self.course)

    def test_course_outside_program_has_no_enrollment(self):
        solo = make_course(title="Standalone")
        lesson = make_lessons(make_module(solo), 1)[0]
        result = progress_service.start_lesson(self.student, lesson.id)
        self.assertTrue(result.success)
        self.assertFalse(Enrollment.objects.exists())


@sync_events
class ConcurrentWriteTests(TestCase):

    def setUp(self):
        self.student = make_user()
        self.course = make_course()
        self.module = make_module(self.course)
        self.lesson = make_lessons(self.module, 1)[0]
        progress_service.start_lesson(self.student, self.lesson.id)
        self.progress = Progress.objects.get()

    def _bump_version_before_write(self):
        """Simulate another writer committing between our read and our write."""
        real_recompute = progress_service.progress_tree.recompute

        def recompute(modules, now=None):
            Progress.objects.filter(pk=self.progress.pk).update(version=F("version") + 1)
            return real_recompute(modules, now)

        return mock.patch.object(progress_service.progress_tree, "recompute", side_effect=recompute)

    @override_settings(PROGRESS_MAX_RETRIES=2)
    def test_conflict_after_retries(self):
        with self._bump_version_before_write():
            result = progress_service.complete_lesson(self.student, self.lesson.id)
        self.assertEqual(result.error, ErrorCode.CONFLICT)
        self.progress.refresh_from_db()
        self.assertEqual(self.progress.completed_lessons, 0)

    def test_version_increments_per_write(self):
        progress_service.complete_lesson(self.student, self.lesson.id)
        progress_service.complete_lesson(self.student, self.lesson.id, time_spent=5)
        self.progress.refresh_from_db()
        self.assertEqual(self.progress.version, 3)
        self.assertEqual(self.progress.total_time_spent, 5)
