from django.contrib import admin

from .models import Submission


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ('student', 'assessment', 'attempt_number', 'status', 'score', 'percentage',
                    'is_late', 'submitted_at', 'graded_at')
    list_filter = ('status', 'is_late', 'assessment__course')
    search_fields = ('student__username', 'student__email', 'assessment__title')
    readonly_fields = ('attempt_number', 'percentage', 'submitted_at', 'graded_at', 'graded_by',
                       'created_at', 'updated_at')
