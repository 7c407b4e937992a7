# models.py
"""
Domain models for the courses application.

The file is organised in thematic sections:

1.  Catalog (programs, courses, modules, lessons)
2.  Assessments (assessments and their questions)
3.  Progress tracking (per-course progress tree)
4.  Program enrollment (enrollment and per-course entries)
5.  Certificates & notifications
"""

import random
import string

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils import timezone

from .choices import (
    AssessmentType,
    EnrollmentStatus,
    NotificationType,
    PublishStatus,
    QuestionType,
)

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class Program(models.Model):
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=10, choices=PublishStatus.choices, default=PublishStatus.DRAFT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Programs"
        ordering = ["id"]

    def __str__(self):
        return self.title


class Course(models.Model):
    program = models.ForeignKey(
        Program, on_delete=models.SET_NULL, null=True, blank=True, related_name="courses"
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=10, choices=PublishStatus.choices, default=PublishStatus.DRAFT)
    order = models.PositiveIntegerField(default=0, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Courses"
        ordering = ["order", "id"]

    def __str__(self):
        return self.title


class Module(models.Model):
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="modules")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0, blank=True)

    class Meta:
        verbose_name_plural = "Modules"
        ordering = ["order", "id"]
        constraints = [
            models.UniqueConstraint(fields=["course", "order"], name="unique_module_order_per_course")
        ]

    def __str__(self):
        return f"{self.course.title} - {self.title}"


class Lesson(models.Model):
    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name="lessons")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0, blank=True)
    duration = models.DurationField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Lessons"
        ordering = ["module", "order", "created_at"]

    def __str__(self):
        return f"{self.id}: {self.title}"

    @property
    def course_id(self):
        return self.module.course_id


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


class Assessment(models.Model):
    """An assessment attached to a course and, usually, one of its modules."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="assessments")
    module = models.ForeignKey(
        Module, on_delete=models.SET_NULL, null=True, blank=True, related_name="assessments"
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    assessment_type = models.CharField(
        max_length=20, choices=AssessmentType.choices, default=AssessmentType.QUIZ
    )
    passing_score = models.PositiveIntegerField(
        default=70,
        validators=[MaxValueValidator(100)],
        help_text="Passing score percentage",
    )
    attempts = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Maximum number of non-draft submissions per student",
    )
    total_points = models.PositiveIntegerField(default=0, editable=False)
    is_published = models.BooleanField(default=False)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Assessments"
        ordering = ["course", "module", "id"]

    def __str__(self):
        return f"{self.course.title} - {self.title}"

    def recalculate_total_points(self):
        """Keep ``total_points`` equal to the sum of question points."""
        total = self.questions.aggregate(total=Sum("points"))["total"] or 0
        Assessment.objects.filter(pk=self.pk).update(total_points=total)
        self.total_points = total
        return total

    def ordered_questions(self):
        """Questions in answer-index order (index 0 is the first question)."""
        return list(self.questions.order_by("order", "id"))


class AssessmentQuestion(models.Model):
    assessment = models.ForeignKey(Assessment, on_delete=models.CASCADE, related_name="questions")
    question_type = models.CharField(
        max_length=20, choices=QuestionType.choices, default=QuestionType.MULTIPLE_CHOICE
    )
    question_text = models.TextField()
    options = models.JSONField(default=list, blank=True)  # ["Paris", "London", ...]
    # An option index, a text value or a list of acceptable texts.
    correct_answer = models.JSONField(null=True, blank=True)
    points = models.PositiveIntegerField(default=1)
    order = models.PositiveIntegerField(default=0)
    explanation = models.TextField(blank=True)

    class Meta:
        ordering = ["order", "id"]
        verbose_name_plural = "Assessment Questions"

    def __str__(self):
        return f"{self.assessment.title} - Question {self.order + 1}"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        self.assessment.recalculate_total_points()

    def delete(self, *args, **kwargs):
        assessment = self.assessment
        result = super().delete(*args, **kwargs)
        assessment.recalculate_total_points()
        return result


# ---------------------------------------------------------------------------
# Progress Tracking
# ---------------------------------------------------------------------------


class Progress(models.Model):
    """
    Per-student, per-course progress tree.

    ``modules`` maps module ids to their lesson/assessment progress:

        {"<module_id>": {"lessons": {"<lesson_id>": {...}},
                         "assessments": {"<assessment_id>": {...}},
                         "total_lessons": 3, "total_assessments": 1,
                         "completion_percentage": 75, "completed_at": None}}

    All counters and percentages are derived from the tree on every write and
    ``version`` is bumped so that concurrent writers can detect each other.
    """
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="course_progress", db_index=True
    )
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="student_progress", db_index=True)
    modules = models.JSONField(default=dict, blank=True)
    overall_progress = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    completed_lessons = models.PositiveIntegerField(default=0)
    total_lessons = models.PositiveIntegerField(default=0)
    completed_assessments = models.PositiveIntegerField(default=0)
    total_assessments = models.PositiveIntegerField(default=0)
    average_score = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    total_time_spent = models.PositiveIntegerField(default=0, help_text="Seconds")
    version = models.PositiveIntegerField(default=0)
    enrolled_at = models.DateTimeField(auto_now_add=True)
    last_accessed_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "Progress"
        ordering = ["-last_accessed_at"]
        constraints = [
            models.UniqueConstraint(fields=["student", "course"], name="unique_progress_per_course"),
        ]

    def __str__(self):
        return f"{self.student} - {self.course.title} - {self.overall_progress}%"

    @property
    def is_completed(self):
        return self.completed_at is not None


# ---------------------------------------------------------------------------
# Program Enrollment
# ---------------------------------------------------------------------------


class Enrollment(models.Model):
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="program_enrollments", db_index=True
    )
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name="enrollments", db_index=True)
    status = models.CharField(
        max_length=20, choices=EnrollmentStatus.choices, default=EnrollmentStatus.PENDING
    )
    enrolled_at = models.DateTimeField(auto_now_add=True)
    completion_date = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Enrollments"
        ordering = ["-enrolled_at"]
        constraints = [
            models.UniqueConstraint(fields=["student", "program"], name="unique_enrollment_per_program"),
        ]
        indexes = [
            models.Index(fields=["status"], name="enrollment_status_idx"),
        ]

    def __str__(self):
        return f"{self.student} - {self.program.title} ({self.status})"

    def all_courses_completed(self):
        entries = self.course_progress.all()
        return entries.exists() and not entries.exclude(status=EnrollmentStatus.COMPLETED).exists()


class CourseProgressEntry(models.Model):
    enrollment = models.ForeignKey(Enrollment, on_delete=models.CASCADE, related_name="course_progress")
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="enrollment_entries")
    status = models.CharField(
        max_length=20, choices=EnrollmentStatus.choices, default=EnrollmentStatus.PENDING
    )
    lessons_completed = models.PositiveIntegerField(default=0)
    total_lessons = models.PositiveIntegerField(default=0)
    completion_date = models.DateTimeField(null=True, blank=True)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = "Course Progress Entries"
        ordering = ["order", "id"]
        constraints = [
            models.UniqueConstraint(fields=["enrollment", "course"], name="unique_entry_per_enrollment_course"),
        ]

    def __str__(self):
        return f"{self.enrollment} - {self.course.title}: {self.status}"


# ---------------------------------------------------------------------------
# Certificates & Notifications
# ---------------------------------------------------------------------------


def _random_code(length, alphabet=string.ascii_uppercase + string.digits):
    return "".join(random.choices(alphabet, k=length))


class Certificate(models.Model):
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="certificates", db_index=True
    )
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name="certificates", db_index=True)
    certificate_number = models.CharField(max_length=100, unique=True)
    verification_code = models.CharField(max_length=32, unique=True)
    student_name = models.CharField(max_length=255, blank=True)
    program_name = models.CharField(max_length=255, blank=True)
    completion_date = models.DateTimeField(null=True, blank=True)
    final_score = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    metadata = models.JSONField(default=dict, blank=True)
    issued_at = models.DateTimeField(auto_now_add=True)
    revoked = models.BooleanField(default=False)
    revoked_at = models.DateTimeField(null=True, blank=True)
    revocation_reason = models.TextField(blank=True)

    class Meta:
        verbose_name_plural = "Certificates"
        ordering = ["-issued_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["student", "program"],
                condition=models.Q(revoked=False),
                name="unique_active_certificate_per_program",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self.certificate_number:
            prefix = getattr(settings, "CERTIFICATE_PREFIX", "CERT")
            year = timezone.now().year
            self.certificate_number = f"{prefix}-{year}-{_random_code(8, string.digits)}"
        if not self.verification_code:
            self.verification_code = _random_code(12)
        super().save(*args, **kwargs)

    def revoke(self, reason=""):
        self.revoked = True
        self.revoked_at = timezone.now()
        self.revocation_reason = reason
        self.save(update_fields=["revoked", "revoked_at", "revocation_reason"])
        return self

    def __str__(self):
        return f"Certificate {self.certificate_number} - {self.student}"


class Notification(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications", db_index=True
    )
    notification_type = models.CharField(max_length=30, choices=NotificationType.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()
    content_type = models.ForeignKey(ContentType, on_delete=models.SET_NULL, null=True, blank=True)
    object_id = models.PositiveBigIntegerField(null=True, blank=True)
    related_object = GenericForeignKey("content_type", "object_id")
    action_url = models.CharField(max_length=255, null=True, blank=True)
    icon = models.CharField(max_length=50, null=True, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Notifications"
        indexes = [
            models.Index(fields=["user", "is_read"], name="notification_user_read_idx"),
        ]

    def mark_as_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at", "updated_at"])
        return self

    def __str__(self):
        return f"{self.user} - {self.title}"
