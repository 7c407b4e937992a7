"""
Certificate issuer.

Issuing is idempotent: at most one non-revoked certificate exists per
(student, program), backed by a partial unique constraint, and asking again
returns the certificate that is already there.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import Avg

from courses.choices import EnrollmentStatus
from courses.models import Certificate, Enrollment, Progress

from .responses import ErrorCode, fail, ok

logger = logging.getLogger(__name__)


def get_active_certificate(student_id, program_id):
    return Certificate.objects.filter(
        student_id=student_id, program_id=program_id, revoked=False
    ).first()


def _certificate_details(enrollment):
    entries = enrollment.course_progress.all()
    course_ids = [entry.course_id for entry in entries]
    average = Progress.objects.filter(
        student_id=enrollment.student_id, course_id__in=course_ids
    ).aggregate(avg=Avg("average_score"))["avg"] or 0
    average = int(Decimal(str(average)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    student = enrollment.student
    return {
        "student_name": student.get_full_name() or student.get_username(),
        "program_name": enrollment.program.title,
        "completion_date": enrollment.completion_date,
        "final_score": average,
        "metadata": {
            "total_courses": len(course_ids),
            "courses_completed": sum(1 for e in entries if e.status == EnrollmentStatus.COMPLETED),
            "average_score": average,
        },
    }


def issue_certificate(student_id, program_id):
    """
    Issue the program certificate for a student who completed the program.

    Returns the existing active certificate when there is one. A concurrent
    issue losing the unique-constraint race also returns the winner's row.
    """
    existing = get_active_certificate(student_id, program_id)
    if existing is not None:
        return ok("Certificate already issued.", existing)

    try:
        enrollment = Enrollment.objects.select_related("student", "program").get(
            student_id=student_id, program_id=program_id
        )
    except Enrollment.DoesNotExist:
        return fail(ErrorCode.NOT_FOUND, "Enrollment not found.")
    if enrollment.status != EnrollmentStatus.COMPLETED:
        return fail(ErrorCode.VALIDATION, "Program has not been completed yet.")

    try:
        with transaction.atomic():
            certificate = Certificate.objects.create(
                student_id=student_id,
                program_id=program_id,
                **_certificate_details(enrollment),
            )
    except IntegrityError:
        existing = get_active_certificate(student_id, program_id)
        if existing is None:
            raise
        return ok("Certificate already issued.", existing)

    logger.info(
        f"Issued certificate {certificate.certificate_number} to student {student_id} for program {program_id}"
    )
    return ok("Certificate issued.", certificate)


def revoke_certificate(certificate_id, reason=""):
    try:
        certificate = Certificate.objects.get(id=certificate_id)
    except Certificate.DoesNotExist:
        return fail(ErrorCode.NOT_FOUND, "Certificate not found.")
    if certificate.revoked:
        return ok("Certificate already revoked.", certificate)
    certificate.revoke(reason)
    logger.info(f"Revoked certificate {certificate.certificate_number}: {reason}")
    return ok("Certificate revoked.", certificate)


def find_certificate(code):
    """Look a certificate up by its number or verification code."""
    return (
        Certificate.objects.select_related("student", "program")
        .filter(certificate_number=code)
        .first()
        or Certificate.objects.select_related("student", "program")
        .filter(verification_code=code)
        .first()
    )
