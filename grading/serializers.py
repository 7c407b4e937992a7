from rest_framework import serializers

from .models import Submission


class AnswerSerializer(serializers.Serializer):
    question_index = serializers.IntegerField(min_value=0)
    answer = serializers.JSONField(required=False, allow_null=True)


class SubmitAssessmentSerializer(serializers.Serializer):
    answers = AnswerSerializer(many=True)
    time_spent = serializers.IntegerField(min_value=0, required=False, default=0)
    # Accepted for backwards compatibility and ignored; numbering is server-side.
    attempt_number = serializers.IntegerField(required=False, write_only=True)

    def validate_answers(self, value):
        indexes = [item["question_index"] for item in value]
        if len(indexes) != len(set(indexes)):
            raise serializers.ValidationError("Each question can only be answered once.")
        return value


class DraftSerializer(serializers.Serializer):
    answers = AnswerSerializer(many=True)


class GradeSubmissionSerializer(serializers.Serializer):
    score = serializers.FloatField(min_value=0)
    feedback = serializers.CharField(required=False, allow_blank=True, default="")


class SubmissionSerializer(serializers.ModelSerializer):
    assessment_title = serializers.CharField(source="assessment.title", read_only=True)
    passed = serializers.BooleanField(read_only=True, allow_null=True)

    class Meta:
        model = Submission
        fields = [
            "id", "assessment", "assessment_title", "student", "answers", "score", "percentage",
            "passed", "status", "attempt_number", "is_late", "feedback", "time_spent",
            "submitted_at", "graded_at", "graded_by", "created_at", "updated_at",
        ]
        read_only_fields = fields
