from rest_framework import serializers

from courses.models import (
    Certificate,
    CourseProgressEntry,
    Enrollment,
    Notification,
    Progress,
)


class ProgressSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source="course.title", read_only=True)
    is_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = Progress
        fields = [
            "id", "student", "course", "course_title", "modules", "overall_progress",
            "completed_lessons", "total_lessons", "completed_assessments", "total_assessments",
            "average_score", "total_time_spent", "is_completed", "enrolled_at",
            "last_accessed_at", "completed_at", "version",
        ]
        # Every value here is derived server-side
        read_only_fields = fields


class CourseProgressEntrySerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = CourseProgressEntry
        fields = [
            "id", "course", "course_title", "status", "lessons_completed",
            "total_lessons", "completion_date", "order",
        ]
        read_only_fields = fields


class EnrollmentSerializer(serializers.ModelSerializer):
    program_title = serializers.CharField(source="program.title", read_only=True)
    course_progress = CourseProgressEntrySerializer(many=True, read_only=True)

    class Meta:
        model = Enrollment
        fields = [
            "id", "student", "program", "program_title", "status",
            "enrolled_at", "completion_date", "course_progress",
        ]
        read_only_fields = fields


class CertificateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Certificate
        fields = [
            "id", "student", "program", "certificate_number", "verification_code",
            "student_name", "program_name", "completion_date", "final_score",
            "metadata", "issued_at", "revoked", "revoked_at",
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id", "notification_type", "title", "message", "action_url", "icon",
            "is_read", "read_at", "created_at",
        ]
        read_only_fields = fields


class CompleteLessonSerializer(serializers.Serializer):
    time_spent = serializers.IntegerField(min_value=0, required=False, default=0)
