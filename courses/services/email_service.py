"""
Transactional email for the completion flow.

Each message is rendered from a plain-text and an HTML template under
``courses/emails/`` and sent as a multipart email.
"""
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from courses.models import Certificate

CERTIFICATE_TEMPLATE = "courses/emails/certificate_issued"


def _student_context(student) -> dict:
    sender = getattr(settings, "DEFAULT_FROM_EMAIL", "")
    return {
        "first_name": student.first_name or student.get_username(),
        "full_name": student.get_full_name(),
        "email": student.email,
        "project_name": getattr(settings, "PROJECT_NAME", "Learning Management System"),
        "support_email": getattr(settings, "SUPPORT_EMAIL", sender),
    }


def _send_templated(subject: str, recipient: str, template: str, context: dict) -> None:
    message = EmailMultiAlternatives(
        subject=subject,
        body=render_to_string(f"{template}.txt", context),
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        to=[recipient],
    )
    message.attach_alternative(render_to_string(f"{template}.html", context), "text/html")
    message.send()


def send_certificate_issued_email(certificate: Certificate) -> bool:
    """Returns False when the student has no address to send to."""
    student = certificate.student
    if not student.email:
        return False

    program_title = certificate.program_name or certificate.program.title
    context = {
        **_student_context(student),
        "program_title": program_title,
        "certificate_number": certificate.certificate_number,
        "verification_code": certificate.verification_code,
        "issued_at": certificate.issued_at,
        "final_score": certificate.final_score,
    }
    subject = getattr(
        settings, "CERTIFICATE_ISSUED_EMAIL_SUBJECT", f"Your certificate for {program_title} is ready"
    )
    _send_templated(subject, student.email, CERTIFICATE_TEMPLATE, context)
    return True
