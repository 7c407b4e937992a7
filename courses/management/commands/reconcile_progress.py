"""
Management command that repairs progress drift.

A submission can be stored while the progress update that should follow it
fails (crash, timeout, lost race). Run this periodically to replay graded
submissions into the progress tree, refresh catalog denominators, re-run
the completion cascade and issue certificates that are still missing.
"""
import logging

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from courses.choices import EnrollmentStatus
from courses.models import Certificate, Enrollment, Progress
from courses.services import progress_service
from courses.services.certificate_service import issue_certificate
from grading.models import Submission

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Reconcile course progress with the catalog and graded submissions, and issue missing certificates'

    def add_arguments(self, parser):
        parser.add_argument('--student', type=int, help='Only reconcile this student id')
        parser.add_argument('--course', type=int, help='Only reconcile this course id')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report rows that would change without writing anything',
        )

    def handle(self, *args, **options):
        student_id = options.get('student')
        course_id = options.get('course')
        dry_run = options['dry_run']

        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run: no changes will be written.'))

        created = 0 if dry_run else self._create_missing_progress(student_id, course_id)

        progress_rows = Progress.objects.select_related('course', 'student').order_by('id')
        if student_id:
            progress_rows = progress_rows.filter(student_id=student_id)
        if course_id:
            progress_rows = progress_rows.filter(course_id=course_id)

        changed = failed = 0
        for progress in progress_rows:
            result = progress_service.reconcile_progress(progress, dry_run=dry_run)
            if not result.success:
                failed += 1
                self.stdout.write(self.style.ERROR(f'  Progress {progress.id}: {result.message}'))
                continue
            if result.data.changed:
                changed += 1
                verb = 'would change' if dry_run else 'reconciled'
                self.stdout.write(
                    f'  Progress {progress.id} ({progress.student} / {progress.course.title}) {verb}'
                )

        issued = 0 if dry_run else self._issue_missing_certificates(student_id)

        self.stdout.write(self.style.SUCCESS(
            f'Done. Created {created} progress row(s), '
            f'{"found" if dry_run else "updated"} {changed} drifted row(s), '
            f'{failed} failure(s), issued {issued} certificate(s).'
        ))

    def _create_missing_progress(self, student_id, course_id):
        """Start progress for graded submissions whose course has no progress row yet."""
        graded = Submission.objects.filter(
            status=Submission.Status.GRADED,
            assessment__is_published=True,
        ).values_list('student_id', 'assessment__course_id', 'assessment_id').distinct()
        if student_id:
            graded = graded.filter(student_id=student_id)
        if course_id:
            graded = graded.filter(assessment__course_id=course_id)

        existing = set(Progress.objects.values_list('student_id', 'course_id'))
        User = get_user_model()
        created = 0
        for sid, cid, assessment_id in graded:
            if (sid, cid) in existing:
                continue
            result = progress_service.start_assessment(User.objects.get(pk=sid), assessment_id)
            if result.success:
                existing.add((sid, cid))
                created += 1
            else:
                logger.warning(f'Could not create progress for student {sid} in course {cid}: {result.message}')
        return created

    def _issue_missing_certificates(self, student_id):
        enrollments = Enrollment.objects.filter(status=EnrollmentStatus.COMPLETED)
        if student_id:
            enrollments = enrollments.filter(student_id=student_id)

        issued = 0
        for enrollment in enrollments:
            # Revoked certificates are not re-issued
            if Certificate.objects.filter(student_id=enrollment.student_id, program_id=enrollment.program_id).exists():
                continue
            result = issue_certificate(enrollment.student_id, enrollment.program_id)
            if result.success:
                issued += 1
                self.stdout.write(f'  Issued {result.data.certificate_number} to student {enrollment.student_id}')
            else:
                self.stdout.write(self.style.ERROR(f'  Enrollment {enrollment.id}: {result.message}'))
        return issued
