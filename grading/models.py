from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from courses.models import Assessment


class Submission(models.Model):
    """
    One attempt of a student at an assessment.

    Drafts carry no attempt number and never consume an attempt slot. Every
    submitted attempt gets the next number for its (assessment, student)
    pair; the unique constraint makes concurrent submissions that computed
    the same number fail instead of both being stored.
    """
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"
        GRADED = "graded", "Graded"

    assessment = models.ForeignKey(Assessment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="submissions"
    )
    # [{"question_index": 0, "answer": "1", "is_correct": True, "points_earned": 5}, ...]
    answers = models.JSONField(default=list, blank=True)
    score = models.FloatField(default=0.0, validators=[MinValueValidator(0.0)])
    # Withheld (null) until the submission is graded
    percentage = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MaxValueValidator(100)]
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    attempt_number = models.PositiveIntegerField(null=True, blank=True)
    is_late = models.BooleanField(default=False)
    feedback = models.TextField(blank=True)
    time_spent = models.PositiveIntegerField(default=0, help_text="Seconds")

    submitted_at = models.DateTimeField(null=True, blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="graded_submissions"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["assessment", "student", "attempt_number"],
                name="unique_submission_attempt",
            ),
            models.UniqueConstraint(
                fields=["assessment", "student"],
                condition=models.Q(status="draft"),
                name="unique_draft_per_assessment",
            ),
        ]
        indexes = [
            models.Index(fields=["assessment", "student", "status"], name="submission_lookup_idx"),
        ]

    def __str__(self):
        attempt = self.attempt_number if self.attempt_number else "draft"
        return f"{self.student} - {self.assessment.title} (attempt {attempt}, {self.status})"

    @property
    def passed(self):
        if self.percentage is None:
            return None
        return self.percentage >= self.assessment.passing_score
