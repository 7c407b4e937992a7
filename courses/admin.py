# courses/admin.py
from django.contrib import admin, messages

from .models import (
    Program, Course, Module, Lesson,
    Assessment, AssessmentQuestion,
    Progress, Enrollment, CourseProgressEntry,
    Certificate, Notification,
)
from .services.certificate_service import revoke_certificate
from .services.progress_service import reconcile_progress


# ================================
# CATALOG
# ================================

class CourseInline(admin.TabularInline):
    model = Course
    extra = 0
    fields = ("title", "status", "order")
    show_change_link = True


@admin.register(Program)
class ProgramAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("title",)
    inlines = [CourseInline]


class ModuleInline(admin.TabularInline):
    model = Module
    extra = 0
    fields = ("title", "order")
    show_change_link = True


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "program", "status", "order")
    list_filter = ("status", "program")
    search_fields = ("title", "program__title")
    inlines = [ModuleInline]


class LessonInline(admin.TabularInline):
    model = Lesson
    extra = 0
    fields = ("title", "order", "duration")


@admin.register(Module)
class ModuleAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "course", "order")
    list_filter = ("course",)
    search_fields = ("title", "course__title")
    inlines = [LessonInline]


@admin.register(Lesson)
class LessonAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "module", "order")
    search_fields = ("title", "module__title")


# ================================
# ASSESSMENTS
# ================================

class AssessmentQuestionInline(admin.StackedInline):
    model = AssessmentQuestion
    extra = 0
    fields = ("order", "question_type", "question_text", "options", "correct_answer", "points")


@admin.register(Assessment)
class AssessmentAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "course", "module", "assessment_type", "total_points",
                    "passing_score", "attempts", "is_published")
    list_filter = ("assessment_type", "is_published", "course")
    search_fields = ("title", "course__title")
    readonly_fields = ("total_points",)
    inlines = [AssessmentQuestionInline]


# ================================
# PROGRESS & ENROLLMENT
# ================================

@admin.register(Progress)
class ProgressAdmin(admin.ModelAdmin):
    list_display = ("student", "course", "overall_progress", "completed_lessons", "total_lessons",
                    "completed_assessments", "total_assessments", "average_score", "completed_at")
    list_filter = ("course",)
    search_fields = ("student__username", "student__email", "course__title")
    readonly_fields = [f.name for f in Progress._meta.fields]
    actions = ["reconcile_selected"]

    @admin.action(description="Reconcile selected progress with catalog and submissions")
    def reconcile_selected(self, request, queryset):
        failed = 0
        for progress in queryset:
            if not reconcile_progress(progress).success:
                failed += 1
        if failed:
            self.message_user(request, f"{failed} progress row(s) could not be reconciled.", messages.WARNING)
        else:
            self.message_user(request, f"Reconciled {queryset.count()} progress row(s).")


class CourseProgressEntryInline(admin.TabularInline):
    model = CourseProgressEntry
    extra = 0
    fields = ("course", "status", "lessons_completed", "total_lessons", "completion_date", "order")
    readonly_fields = fields
    can_delete = False


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("student", "program", "status", "enrolled_at", "completion_date")
    list_filter = ("status", "program")
    search_fields = ("student__username", "student__email", "program__title")
    readonly_fields = ("status", "completion_date")
    inlines = [CourseProgressEntryInline]


# ================================
# CERTIFICATES & NOTIFICATIONS
# ================================

@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = ("certificate_number", "student", "program", "final_score", "issued_at", "revoked")
    list_filter = ("revoked", "program")
    search_fields = ("certificate_number", "verification_code", "student__username", "student_name")
    readonly_fields = ("certificate_number", "verification_code", "issued_at", "revoked_at")
    actions = ["revoke_selected"]

    @admin.action(description="Revoke selected certificates")
    def revoke_selected(self, request, queryset):
        for certificate in queryset:
            revoke_certificate(certificate.id, reason=f"Revoked by {request.user}")
        self.message_user(request, f"Revoked {queryset.count()} certificate(s).")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "title", "notification_type", "is_read", "created_at")
    list_filter = ("notification_type", "is_read", "created_at")
    search_fields = ("user__email", "title", "message")
    readonly_fields = ("created_at", "updated_at", "read_at")
    ordering = ("-created_at",)
    date_hierarchy = "created_at"

    fieldsets = (
        ("Notification Information", {
            "fields": ("user", "notification_type", "title", "message")
        }),
        ("Related Content", {
            "fields": ("content_type", "object_id", "action_url", "icon")
        }),
        ("Status", {
            "fields": ("is_read", "read_at")
        }),
        ("Timestamps", {
            "fields": ("created_at", "updated_at")
        }),
    )
