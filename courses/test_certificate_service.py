from django.test import TestCase
from django.utils import timezone

from courses.choices import EnrollmentStatus
from courses.factories import make_course, make_program, make_user
from courses.models import Certificate, CourseProgressEntry, Enrollment, Progress
from courses.services import certificate_service
from courses.services.responses import ErrorCode


class CertificateServiceTests(TestCase):

    def setUp(self):
        self.student = make_user(first_name="Grace", last_name="Hopper")
        self.program = make_program("Compilers")
        self.course_a = make_course(self.program, "Parsing", order=0)
        self.course_b = make_course(self.program, "Code Generation", order=1)
        self.enrollment = Enrollment.objects.create(
            student=self.student,
            program=self.program,
            status=EnrollmentStatus.COMPLETED,
            completion_date=timezone.now(),
        )
        for order, course in enumerate((self.course_a, self.course_b)):
            CourseProgressEntry.objects.create(
                enrollment=self.enrollment, course=course, order=order, status=EnrollmentStatus.COMPLETED
            )
        Progress.objects.create(student=self.student, course=self.course_a, average_score=81)
        Progress.objects.create(student=self.student, course=self.course_b, average_score=90)

    def test_issue_builds_certificate_from_enrollment(self):
        result = certificate_service.issue_certificate(self.student.id, self.program.id)

        self.assertTrue(result.success)
        certificate = result.data
        self.assertEqual(certificate.student_name, "Grace Hopper")
        self.assertEqual(certificate.program_name, "Compilers")
        self.assertEqual(certificate.final_score, 86)  # 85.5 rounded
        self.assertEqual(certificate.completion_date, self.enrollment.completion_date)
        self.assertEqual(certificate.metadata, {"total_courses": 2, "courses_completed": 2, "average_score": 86})
        self.assertRegex(certificate.certificate_number, r"^CERT-\d{4}-\d{8}$")
        self.assertRegex(certificate.verification_code, r"^[A-Z0-9]{12}$")

    def test_issue_is_idempotent(self):
        first = certificate_service.issue_certificate(self.student.id, self.program.id).data
        second = certificate_service.issue_certificate(self.student.id, self.program.id)
        self.assertEqual(second.data.pk, first.pk)
        self.assertEqual(second.message, "Certificate already issued.")
        self.assertEqual(Certificate.objects.count(), 1)

    def test_incomplete_program_is_rejected(self):
        Enrollment.objects.filter(pk=self.enrollment.pk).update(status=EnrollmentStatus.ACTIVE)
        result = certificate_service.issue_certificate(self.student.id, self.program.id)
        self.assertEqual(result.error, ErrorCode.VALIDATION)
        self.assertFalse(Certificate.objects.exists())

    def test_missing_enrollment(self):
        other = make_user("other")
        result = certificate_service.issue_certificate(other.id, self.program.id)
        self.assertEqual(result.error, ErrorCode.NOT_FOUND)

    def test_revoked_certificate_can_be_reissued(self):
        first = certificate_service.issue_certificate(self.student.id, self.program.id).data
        revoked = certificate_service.revoke_certificate(first.id, "Issued in error")

        self.assertTrue(revoked.data.revoked)
        self.assertEqual(revoked.data.revocation_reason, "Issued in error")
        self.assertIsNone(certificate_service.get_active_certificate(self.student.id, self.program.id))

        again = certificate_service.issue_certificate(self.student.id, self.program.id)
        self.assertNotEqual(again.data.pk, first.pk)
        self.assertEqual(Certificate.objects.filter(student=self.student).count(), 2)

    def test_find_by_number_or_code(self):
        certificate = certificate_service.issue_certificate(self.student.id, self.program.id).data
        self.assertEqual(certificate_service.find_certificate(certificate.certificate_number), certificate)
        self.assertEqual(certificate_service.find_certificate(certificate.verification_code), certificate)
        self.assertIsNone(certificate_service.find_certificate("NOPE"))
