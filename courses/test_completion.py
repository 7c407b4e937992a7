from unittest import mock

from django.core import mail
from django.test import TestCase

from courses import events
from courses.choices import EnrollmentStatus, NotificationType
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
from courses.models import Certificate, Enrollment, Notification, Progress
from courses.services import completion_service, progress_service


class EventRecorder:
    """Collects every domain event delivered while connected."""

    def __init__(self):
        self.events = []

    def __call__(self, sender, event, **kwargs):
        self.events.append(event)

    def connect(self):
        for signal in (events.module_completed, events.course_completed, events.program_completed):
            signal.connect(self, weak=False)

    def disconnect(self):
        for signal in (events.module_completed, events.course_completed, events.program_completed):
            signal.disconnect(self)

    def kinds(self, kind):
        return [event for event in self.events if event.kind == kind]


@sync_events
class CompletionCascadeTests(TestCase):

    def setUp(self):
        self.student = make_user(first_name="Ada", last_name="Lovelace")
        self.program = make_program("Analytics")
        self.course_a = make_course(self.program, "Statistics", order=0)
        self.course_b = make_course(self.program, "Visualisation", order=1)

        self.module_a = make_module(self.course_a)
        self.lessons_a = make_lessons(self.module_a, 3)
        self.quiz_a = make_assessment(self.course_a, self.module_a, questions=[mc(points=5)])

        self.module_b = make_module(self.course_b)
        self.lessons_b = make_lessons(self.module_b, 1)

        self.recorder = EventRecorder()
        self.recorder.connect()
        self.addCleanup(self.recorder.disconnect)

    def _finish_lesson(self, lesson):
        progress_service.start_lesson(self.student, lesson.id)
        return progress_service.complete_lesson(self.student, lesson.id, time_spent=60)

    def _pass_quiz(self, assessment, submission_id=1, percentage=100):
        progress_service.start_assessment(self.student, assessment.id)
        return progress_service.record_assessment_result(
            self.student, assessment.id, submission_id, percentage
        )

    def test_module_percentage_then_completion(self):
        with self.captureOnCommitCallbacks(execute=True):
            self._finish_lesson(self.lessons_a[0])
            self._finish_lesson(self.lessons_a[1])
            result = self._pass_quiz(self.quiz_a)

        node = result.data.modules[str(self.module_a.id)]
        self.assertEqual(node["completion_percentage"], 75)
        self.assertEqual(self.recorder.kinds(events.MODULE_COMPLETED), [])

        with self.captureOnCommitCallbacks(execute=True):
            result = self._finish_lesson(self.lessons_a[2])

        node = result.data.modules[str(self.module_a.id)]
        self.assertEqual(node["completion_percentage"], 100)
        module_events = self.recorder.kinds(events.MODULE_COMPLETED)
        self.assertEqual(len(module_events), 1)
        self.assertEqual(module_events[0].entity_id, self.module_a.id)
        self.assertEqual(module_events[0].extra["course_id"], self.course_a.id)

    def test_course_completion_updates_entry_once(self):
        with self.captureOnCommitCallbacks(execute=True):
            for lesson in self.lessons_a:
                self._finish_lesson(lesson)
            self._pass_quiz(self.quiz_a, percentage=90)
            # Repeating the final step must not emit again.
            self._finish_lesson(self.lessons_a[2])

        progress = Progress.objects.get(student=self.student, course=self.course_a)
        self.assertEqual(progress.overall_progress, 100)
        self.assertIsNotNone(progress.completed_at)

        entry = Enrollment.objects.get(student=self.student).course_progress.get(course=self.course_a)
        self.assertEqual(entry.status, EnrollmentStatus.COMPLETED)
        self.assertIsNotNone(entry.completion_date)
        self.assertEqual(entry.lessons_completed, 3)

        course_events = self.recorder.kinds(events.COURSE_COMPLETED)
        self.assertEqual(len(course_events), 1)
        self.assertEqual(course_events[0].entity_id, self.course_a.id)
        self.assertEqual(course_events[0].score, 90)
        self.assertEqual(len(self.recorder.kinds(events.MODULE_COMPLETED)), 1)

        notification_types = set(
            Notification.objects.filter(user=self.student).values_list("notification_type", flat=True)
        )
        self.assertIn(NotificationType.MODULE_COMPLETED, notification_types)
        self.assertIn(NotificationType.COURSE_COMPLETED, notification_types)

        enrollment = Enrollment.objects.get(student=self.student)
        self.assertEqual(enrollment.status, EnrollmentStatus.ACTIVE)
        self.assertFalse(Certificate.objects.exists())

    def _complete_program(self):
        with self.captureOnCommitCallbacks(execute=True):
            for lesson in self.lessons_a:
                self._finish_lesson(lesson)
            self._pass_quiz(self.quiz_a, percentage=80)
            self._finish_lesson(self.lessons_b[0])

    def test_program_completion_issues_one_certificate(self):
        self._complete_program()

        enrollment = Enrollment.objects.get(student=self.student)
        self.assertEqual(enrollment.status, EnrollmentStatus.COMPLETED)
        self.assertIsNotNone(enrollment.completion_date)
        self.assertEqual(len(self.recorder.kinds(events.PROGRAM_COMPLETED)), 1)

        certificate = Certificate.objects.get(student=self.student, program=self.program)
        self.assertEqual(certificate.student_name, "Ada Lovelace")
        self.assertEqual(certificate.program_name, "Analytics")
        self.assertEqual(certificate.metadata["total_courses"], 2)
        self.assertEqual(certificate.metadata["courses_completed"], 2)
        self.assertTrue(certificate.certificate_number.startswith("CERT-"))

        self.assertTrue(
            Notification.objects.filter(
                user=self.student, notification_type=NotificationType.CERTIFICATE_ISSUED
            ).exists()
        )
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(certificate.certificate_number, mail.outbox[0].body)

    def test_repeated_cascade_emits_program_completion_once(self):
        self._complete_program()
        progress = Progress.objects.get(student=self.student, course=self.course_b)
        change = progress_service.ProgressChange(progress, frozenset(), True, False)

        with self.captureOnCommitCallbacks(execute=True):
            completion_service.run_cascade(change)
            completion_service.run_cascade(change)

        self.assertEqual(len(self.recorder.kinds(events.PROGRAM_COMPLETED)), 1)
        self.assertEqual(len(self.recorder.kinds(events.COURSE_COMPLETED)), 2)
        self.assertEqual(Certificate.objects.filter(student=self.student).count(), 1)

    def test_enrollment_does_not_regress_when_course_added(self):
        self._complete_program()
        late_course = make_course(self.program, "Ethics", order=2)
        make_lessons(make_module(late_course), 1)

        enrollment = Enrollment.objects.get(student=self.student)
        completion_service.ensure_enrollment(self.student, late_course)
        enrollment.refresh_from_db()

        self.assertEqual(enrollment.status, EnrollmentStatus.COMPLETED)
        entry = enrollment.course_progress.get(course=late_course)
        self.assertEqual(entry.status, EnrollmentStatus.PENDING)
        self.assertEqual(entry.total_lessons, 1)

    def test_handler_failure_does_not_break_progress(self):
        def broken(sender, event, **kwargs):
            raise RuntimeError("mail server down")

        events.module_completed.connect(broken, weak=False)
        self.addCleanup(events.module_completed.disconnect, broken)

        with self.captureOnCommitCallbacks(execute=True):
            for lesson in self.lessons_b:
                result = self._finish_lesson(lesson)

        self.assertTrue(result.success)
        self.assertEqual(len(self.recorder.kinds(events.COURSE_COMPLETED)), 1)

    def test_enrollment_row_is_locked_before_entries_change(self):
        lock = mock.patch.object(
            Enrollment.objects, "select_for_update", wraps=Enrollment.objects.select_for_update
        )
        with lock as select_for_update, self.captureOnCommitCallbacks(execute=True):
            self._finish_lesson(self.lessons_b[0])

        select_for_update.assert_called()
        entry = Enrollment.objects.get(student=self.student).course_progress.get(course=self.course_b)
        self.assertEqual(entry.status, EnrollmentStatus.COMPLETED)

    def test_empty_module_never_emits_module_completed(self):
        course = make_course(title="Standalone")
        filled = make_module(course)
        lesson = make_lessons(filled, 1)[0]
        make_module(course, title="Coming soon")

        with self.captureOnCommitCallbacks(execute=True):
            self._finish_lesson(lesson)

        module_events = self.recorder.kinds(events.MODULE_COMPLETED)
        self.assertEqual([event.entity_id for event in module_events], [filled.id])
        course_events = self.recorder.kinds(events.COURSE_COMPLETED)
        self.assertEqual([event.entity_id for event in course_events], [course.id])
