"""
Read-only access to the course catalog.

The progress engine only needs denominators (how many lessons and
assessments a course or module holds) and the ordered course list of a
program. Only published assessments bound to a module are counted.
"""
from django.db.models import Count, Q

from courses.models import Assessment, Course, Lesson, Module


def _countable_assessments():
    return Assessment.objects.filter(is_published=True, module__isnull=False)


def lesson_count(course_id):
    return Lesson.objects.filter(module__course_id=course_id).count()


def module_count(course_id):
    return Module.objects.filter(course_id=course_id).count()


def assessment_count(course_id):
    return _countable_assessments().filter(course_id=course_id).count()


def module_item_counts(module_id):
    """(lessons, assessments) for a single module."""
    return (
        Lesson.objects.filter(module_id=module_id).count(),
        _countable_assessments().filter(module_id=module_id).count(),
    )


def module_totals(course_id):
    """``{module_id: (lessons, assessments)}`` for every module of a course."""
    modules = Module.objects.filter(course_id=course_id).annotate(
        lesson_total=Count("lessons", distinct=True),
        assessment_total=Count(
            "assessments",
            filter=Q(assessments__is_published=True),
            distinct=True,
        ),
    )
    return {m.id: (m.lesson_total, m.assessment_total) for m in modules}


def program_courses(program_id):
    return list(Course.objects.filter(program_id=program_id).order_by("order", "id"))
