"""
Progress aggregator.

Owns the per-student, per-course ``Progress`` row. Every operation loads the
tree, applies one pure mutation from ``courses.progress_tree``, recomputes
the derived fields and writes them back with a compare-and-swap on
``Progress.version``. The completion cascade runs after the write.
"""
import logging
from copy import deepcopy
from typing import NamedTuple

from django.apps import apps
from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from courses import progress_tree
from courses.models import Assessment, Lesson, Progress
from courses.progress_tree import ASSESSMENTS, LESSONS, ProgressError

from . import catalog_service, completion_service
from .responses import ErrorCode, fail, ok

logger = logging.getLogger(__name__)


class ProgressConflict(Exception):
    pass


class ProgressChange(NamedTuple):
    progress: Progress
    newly_completed_modules: frozenset
    course_complete: bool
    changed: bool


def _max_retries():
    return max(1, getattr(settings, "PROGRESS_MAX_RETRIES", 5))


def get_or_create_progress(student, course):
    """Lazily create the progress row, seeded with catalog totals."""
    progress = Progress.objects.filter(student=student, course=course).first()
    if progress is not None:
        return progress, False

    modules = progress_tree.seed_tree(catalog_service.module_totals(course.id))
    summary = progress_tree.recompute(modules, timezone.now())
    progress, created = Progress.objects.get_or_create(
        student=student,
        course=course,
        defaults={"modules": modules, **_summary_fields(summary)},
    )
    if created:
        logger.info(f"Created progress for student {student.pk} in course {course.pk}")
    return progress, created


def _summary_fields(summary):
    return {
        "overall_progress": summary.overall_progress,
        "completed_lessons": summary.completed_lessons,
        "total_lessons": summary.total_lessons,
        "completed_assessments": summary.completed_assessments,
        "total_assessments": summary.total_assessments,
        "average_score": summary.average_score,
        "total_time_spent": summary.total_time_spent,
    }


def write_progress(progress, mutate, commit=True):
    """
    Apply ``mutate(modules, now)`` to a fresh copy of the tree and persist it.

    The row is read under ``select_for_update`` and written only if
    ``version`` is unchanged; on a lost race the whole read-compute-write is
    retried. Raises ``ProgressError`` from the mutation or
    ``ProgressConflict`` when retries run out.
    """
    for attempt in range(1, _max_retries() + 1):
        with transaction.atomic():
            current = Progress.objects.select_for_update().get(pk=progress.pk)
            before = progress_tree.completed_module_ids(current.modules)
            modules = deepcopy(current.modules)
            now = timezone.now()
            changed = mutate(modules, now)
            summary = progress_tree.recompute(modules, now)
            if not commit:
                fields = _summary_fields(summary)
                drifted = any(getattr(current, name) != value for name, value in fields.items())
                current.modules = modules
                for name, value in fields.items():
                    setattr(current, name, value)
                return ProgressChange(current, summary.completed_modules - before,
                                      summary.course_complete, bool(changed) or drifted)

            rows = Progress.objects.filter(pk=current.pk, version=current.version).update(
                modules=modules,
                last_accessed_at=now,
                version=F("version") + 1,
                **_summary_fields(summary),
            )
        if rows:
            current.refresh_from_db()
            return ProgressChange(
                progress=current,
                newly_completed_modules=summary.completed_modules - before,
                course_complete=summary.course_complete,
                changed=bool(changed),
            )
        logger.warning(
            f"Progress {progress.pk} changed concurrently (attempt {attempt}/{_max_retries()}), retrying"
        )
    raise ProgressConflict(f"Could not update progress {progress.pk} after {_max_retries()} attempts")


def _apply(progress, mutate, message):
    try:
        change = write_progress(progress, mutate)
    except ProgressError as e:
        return fail(e.code, e.message)
    except ProgressConflict as e:
        logger.error(str(e))
        return fail(ErrorCode.CONFLICT, "Progress is being updated by another request. Please retry.")

    completion_service.run_cascade(change)
    return ok(message, change.progress)


def _ensure_module_node(progress, module_id):
    """Add a node for a module created after the progress row was seeded."""
    key = str(module_id)
    if key in progress.modules:
        return None
    return catalog_service.module_item_counts(module_id)


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------


def start_lesson(student, lesson_id):
    """Lazily create progress/enrollment and move the lesson to in_progress."""
    try:
        lesson = Lesson.objects.select_related("module__course").get(id=lesson_id)
    except Lesson.DoesNotExist:
        return fail(ErrorCode.NOT_FOUND, "Lesson not found.")

    course = lesson.module.course
    progress, _ = get_or_create_progress(student, course)
    completion_service.ensure_enrollment(student, course)
    totals = _ensure_module_node(progress, lesson.module_id)

    def mutate(modules, now):
        if totals is not None:
            progress_tree.ensure_module(modules, lesson.module_id, totals)
        return progress_tree.start_item(modules, lesson.module_id, LESSONS, lesson.id, now)

    return _apply(progress, mutate, "Lesson started.")


def complete_lesson(student, lesson_id, time_spent=0):
    """
    Mark a started lesson completed and recompute the course tree.

    Completing a lesson that was never started is an error; only start
    operations create progress.
    """
    try:
        time_spent = int(time_spent or 0)
    except (TypeError, ValueError):
        return fail(ErrorCode.VALIDATION, "time_spent must be a whole number of seconds.")
    if time_spent < 0:
        return fail(ErrorCode.VALIDATION, "time_spent cannot be negative.")

    try:
        lesson = Lesson.objects.select_related("module__course").get(id=lesson_id)
    except Lesson.DoesNotExist:
        return fail(ErrorCode.NOT_FOUND, "Lesson not found.")

    progress = Progress.objects.filter(student=student, course=lesson.module.course).first()
    if progress is None:
        return fail(ErrorCode.PROGRESS_NOT_FOUND, "Progress not started for this course.")

    def mutate(modules, now):
        return progress_tree.complete_lesson(modules, lesson.module_id, lesson.id, time_spent, now)

    return _apply(progress, mutate, "Lesson completed.")


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


def start_assessment(student, assessment_id):
    try:
        assessment = Assessment.objects.select_related("course").get(id=assessment_id)
    except Assessment.DoesNotExist:
        return fail(ErrorCode.NOT_FOUND, "Assessment not found.")
    if not assessment.is_published:
        return fail(ErrorCode.ASSESSMENT_NOT_PUBLISHED, "Assessment is not published.")

    progress, _ = get_or_create_progress(student, assessment.course)
    completion_service.ensure_enrollment(student, assessment.course)
    if assessment.module_id is None:
        # Course-level assessments are not part of any module's completion.
        return _apply(progress, lambda modules, now: False, "Assessment started.")

    totals = _ensure_module_node(progress, assessment.module_id)

    def mutate(modules, now):
        if totals is not None:
            progress_tree.ensure_module(modules, assessment.module_id, totals)
        return progress_tree.start_item(modules, assessment.module_id, ASSESSMENTS, assessment.id, now)

    return _apply(progress, mutate, "Assessment started.")


def record_assessment_result(student, assessment_id, submission_id, percentage, passed=None):
    """
    Record the graded percentage of one submission in the progress tree.

    ``passed`` defaults to comparing ``percentage`` with the assessment's
    passing score. Re-recording the same submission replaces its result.
    """
    try:
        assessment = Assessment.objects.select_related("course").get(id=assessment_id)
    except Assessment.DoesNotExist:
        return fail(ErrorCode.NOT_FOUND, "Assessment not found.")

    progress = Progress.objects.filter(student=student, course=assessment.course).first()
    if progress is None:
        return fail(ErrorCode.PROGRESS_NOT_FOUND, "Progress not started for this course.")

    if passed is None:
        passed = percentage >= assessment.passing_score
    if assessment.module_id is None:
        return _apply(progress, lambda modules, now: False, "Assessment result recorded.")

    totals = _ensure_module_node(progress, assessment.module_id)

    def mutate(modules, now):
        if totals is not None:
            progress_tree.ensure_module(modules, assessment.module_id, totals)
        return progress_tree.record_assessment_result(
            modules, assessment.module_id, assessment.id, submission_id, percentage, passed, now
        )

    return _apply(progress, mutate, "Assessment result recorded.")


# ---------------------------------------------------------------------------
# Reads & reconciliation
# ---------------------------------------------------------------------------


def get_course_progress(student, course_id):
    progress = (
        Progress.objects.select_related("course")
        .filter(student=student, course_id=course_id)
        .first()
    )
    if progress is None:
        return fail(ErrorCode.NOT_FOUND, "No progress found for this course.")
    return ok("Course progress retrieved successfully.", progress)


def _graded_results(progress):
    """Graded submissions of this student for the course's module assessments."""
    Submission = apps.get_model("grading", "Submission")
    return (
        Submission.objects.filter(
            student_id=progress.student_id,
            assessment__course_id=progress.course_id,
            assessment__module__isnull=False,
            status=Submission.Status.GRADED,
            percentage__isnull=False,
        )
        .select_related("assessment")
        .order_by("graded_at", "id")
    )


def reconcile_progress(progress, dry_run=False):
    """
    Bring a progress row back in line with the catalog and the submission ledger.

    Module denominators are re-seeded from the catalog and every graded
    submission missing from the tree is replayed. The cascade runs
    afterwards so that enrollments and certificates catch up as well.
    Returns a ``ServiceResult`` whose data is the ``ProgressChange``.
    """
    totals = catalog_service.module_totals(progress.course_id)
    graded = list(_graded_results(progress))

    def mutate(modules, now):
        changed = progress_tree.sync_totals(modules, totals)
        for submission in graded:
            assessment = submission.assessment
            if str(assessment.module_id) not in modules:
                continue
            changed |= progress_tree.record_assessment_result(
                modules,
                assessment.module_id,
                assessment.id,
                submission.id,
                submission.percentage,
                submission.percentage >= assessment.passing_score,
                now,
            )
        return changed

    try:
        change = write_progress(progress, mutate, commit=not dry_run)
    except ProgressError as e:
        return fail(e.code, e.message)
    except ProgressConflict as e:
        logger.error(str(e))
        return fail(ErrorCode.CONFLICT, str(e))

    if not dry_run:
        completion_service.run_cascade(change)
    return ok("Progress reconciled.", change)
