"""
Small builders for catalog rows used by the test suites of both apps.
"""
from django.contrib.auth import get_user_model
from django.test import override_settings

from courses.choices import PublishStatus, QuestionType
from courses.models import Assessment, AssessmentQuestion, Course, Lesson, Module, Program

# Deliver domain events inline so tests can observe notifications and certificates.
sync_events = override_settings(PROGRESS_EVENTS_ASYNC=False)


def make_user(username="student", **kwargs):
    kwargs.setdefault("email", f"{username}@example.com")
    kwargs.setdefault("password", "pass1234")
    return get_user_model().objects.create_user(username=username, **kwargs)


def make_program(title="Data Engineering", **kwargs):
    kwargs.setdefault("status", PublishStatus.PUBLISHED)
    return Program.objects.create(title=title, **kwargs)


def make_course(program=None, title="Python Basics", order=0, **kwargs):
    kwargs.setdefault("status", PublishStatus.PUBLISHED)
    return Course.objects.create(program=program, title=title, order=order, **kwargs)


def make_module(course, title=None, order=None):
    if order is None:
        order = course.modules.count()
    return Module.objects.create(course=course, title=title or f"Module {order + 1}", order=order)


def make_lessons(module, count):
    return [
        Lesson.objects.create(module=module, title=f"{module.title} lesson {i + 1}", order=i)
        for i in range(count)
    ]


def make_assessment(course, module=None, questions=(), **kwargs):
    """
    Create an assessment with ``questions`` given as dicts of
    ``AssessmentQuestion`` fields, in answer-index order.
    """
    kwargs.setdefault("title", "Checkpoint quiz")
    kwargs.setdefault("is_published", True)
    assessment = Assessment.objects.create(course=course, module=module, **kwargs)
    for order, fields in enumerate(questions):
        add_question(assessment, order=order, **fields)
    assessment.refresh_from_db()
    return assessment


def add_question(assessment, order=0, **fields):
    fields.setdefault("question_type", QuestionType.MULTIPLE_CHOICE)
    fields.setdefault("question_text", f"Question {order + 1}")
    if fields["question_type"] == QuestionType.MULTIPLE_CHOICE:
        fields.setdefault("options", ["A", "B", "C", "D"])
        fields.setdefault("correct_answer", "1")
    return AssessmentQuestion.objects.create(assessment=assessment, order=order, **fields)


def mc(points=1, correct="1", options=None):
    """Field dict for a multiple-choice question."""
    return {
        "question_type": QuestionType.MULTIPLE_CHOICE,
        "options": options or ["A", "B", "C", "D"],
        "correct_answer": correct,
        "points": points,
    }


def essay(points=10):
    return {"question_type": QuestionType.ESSAY, "correct_answer": None, "points": points}
