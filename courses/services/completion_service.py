"""
Completion cascade.

Turns a progress write into enrollment transitions and domain events:

* a module reaching 100% emits ``ModuleCompleted``,
* all modules of a course at 100% stamps ``Progress.completed_at``, moves
  the course entry to COMPLETED and emits ``CourseCompleted``,
* all course entries COMPLETED moves the program enrollment to COMPLETED and
  emits ``ProgramCompleted``.

Every transition is a conditional UPDATE that excludes rows already in the
target state, so only the writer that actually changed a row emits its
event, no matter how many requests race on the final lesson.
"""
import logging

from django.db import transaction
from django.utils import timezone

from courses import events
from courses.choices import EnrollmentStatus
from courses.events import DomainEvent
from courses.models import CourseProgressEntry, Enrollment, Module, Progress

from . import catalog_service

logger = logging.getLogger(__name__)


def ensure_enrollment(student, course):
    """
    Lazily create the program enrollment owning ``course``.

    One PENDING entry is created per program course, including courses added
    to the program after the student enrolled. Courses outside a program
    have no enrollment and ``None`` is returned.
    """
    if not course.program_id:
        return None

    enrollment, created = Enrollment.objects.get_or_create(
        student=student, program_id=course.program_id
    )
    existing = set(enrollment.course_progress.values_list("course_id", flat=True))
    for program_course in catalog_service.program_courses(course.program_id):
        if program_course.id in existing:
            continue
        CourseProgressEntry.objects.get_or_create(
            enrollment=enrollment,
            course=program_course,
            defaults={
                "order": program_course.order,
                "total_lessons": catalog_service.lesson_count(program_course.id),
            },
        )
    if created:
        logger.info(f"Enrolled student {student.pk} in program {course.program_id}")
    return enrollment


def run_cascade(change):
    """
    Evaluate completion thresholds after a progress write.

    Modules without lessons or assessments are seeded at 100% and never
    emit ``ModuleCompleted``; they only count toward course completion.
    """
    progress = change.progress
    course = progress.course
    with transaction.atomic():
        for module_id in sorted(change.newly_completed_modules, key=int):
            module = Module.objects.filter(pk=module_id).first()
            events.emit(Progress, DomainEvent(
                kind=events.MODULE_COMPLETED,
                student_id=progress.student_id,
                entity_id=int(module_id),
                title=module.title if module else "",
                extra={"course_id": course.id, "course_title": course.title},
            ))

        if change.course_complete:
            _complete_course(progress, course)

        if course.program_id:
            _advance_enrollment(progress, course, change.course_complete)


def _complete_course(progress, course):
    now = timezone.now()
    updated = Progress.objects.filter(pk=progress.pk, completed_at__isnull=True).update(completed_at=now)
    if not updated:
        return False
    progress.completed_at = now
    logger.info(f"Student {progress.student_id} completed course {course.id}")
    events.emit(Progress, DomainEvent(
        kind=events.COURSE_COMPLETED,
        student_id=progress.student_id,
        entity_id=course.id,
        title=course.title,
        score=progress.average_score,
        extra={"program_id": course.program_id},
    ))
    return True


def _advance_enrollment(progress, course, course_complete):
    enrollment = ensure_enrollment(progress.student, course)
    # Serializes cascades of sibling courses on the same enrollment.
    enrollment = Enrollment.objects.select_for_update().get(pk=enrollment.pk)
    entries = CourseProgressEntry.objects.filter(enrollment=enrollment, course=course)
    entries.update(lessons_completed=progress.completed_lessons, total_lessons=progress.total_lessons)
    entries.filter(status=EnrollmentStatus.PENDING).update(status=EnrollmentStatus.ACTIVE)
    Enrollment.objects.filter(pk=enrollment.pk, status=EnrollmentStatus.PENDING).update(
        status=EnrollmentStatus.ACTIVE
    )

    if not course_complete:
        return
    entries.exclude(status=EnrollmentStatus.COMPLETED).update(
        status=EnrollmentStatus.COMPLETED, completion_date=timezone.now()
    )
    complete_enrollment(enrollment)


def complete_enrollment(enrollment):
    """Mark the enrollment COMPLETED once every entry is; emits at most once."""
    if not enrollment.all_courses_completed():
        return False
    updated = (
        Enrollment.objects.filter(pk=enrollment.pk)
        .exclude(status=EnrollmentStatus.COMPLETED)
        .update(status=EnrollmentStatus.COMPLETED, completion_date=timezone.now())
    )
    if not updated:
        return False
    program = enrollment.program
    logger.info(f"Student {enrollment.student_id} completed program {program.id}")
    events.emit(Enrollment, DomainEvent(
        kind=events.PROGRAM_COMPLETED,
        student_id=enrollment.student_id,
        entity_id=program.id,
        title=program.title,
    ))
    return True
