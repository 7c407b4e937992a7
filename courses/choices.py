from django.db import models


class PublishStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    ARCHIVED = "archived", "Archived"


class QuestionType(models.TextChoices):
    MULTIPLE_CHOICE = "multiple_choice", "Multiple Choice"
    TRUE_FALSE = "true_false", "True/False"
    SHORT_ANSWER = "short_answer", "Short Answer"
    ESSAY = "essay", "Essay"
    CODING = "coding", "Coding"


# Question types the grader can score without an instructor.
AUTO_GRADABLE_TYPES = (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


class AssessmentType(models.TextChoices):
    QUIZ = "quiz", "Quiz"
    ASSIGNMENT = "assignment", "Assignment"
    PROJECT = "project", "Project"
    CAPSTONE = "capstone", "Capstone"


class ItemStatus(models.TextChoices):
    """Status of a lesson or assessment inside a progress tree."""
    NOT_STARTED = "not_started", "Not Started"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"


class EnrollmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"


class NotificationType(models.TextChoices):
    MODULE_COMPLETED = "module_completed", "Module Completed"
    COURSE_COMPLETED = "course_completed", "Course Completed"
    PROGRAM_COMPLETED = "program_completed", "Program Completed"
    GRADE_POSTED = "grade_posted", "Grade Posted"
    CERTIFICATE_ISSUED = "certificate_issued", "Certificate Issued"
