from rest_framework import serializers

from .media import Task
from .models import AssetProgress


# ids become path segments on disk and in object keys
PATH_SEGMENT = r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$"
PATH_SEGMENT_ERROR = "may only contain letters, digits, '.', '_' and '-', and must not start with '.'"


def _path_segment_field(source):
    return serializers.RegexField(
        PATH_SEGMENT,
        source=source,
        max_length=128,
        error_messages={"invalid": PATH_SEGMENT_ERROR},
    )


class TaskSerializer(serializers.Serializer):
    """One entry of a batch, in the camelCase shape producers send."""
    taskId = serializers.CharField(source="task_id")
    userId = _path_segment_field("user_id")
    assetId = _path_segment_field("asset_id")
    inputKey = serializers.CharField(source="input_key")
    outputKey = serializers.CharField(source="output_key")


class BatchSerializer(serializers.Serializer):
    tasks = TaskSerializer(many=True, allow_empty=False)

    def to_tasks(self) -> list[Task]:
        return [Task(**item) for item in self.validated_data["tasks"]]


class AssetProgressSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssetProgress
        fields = [
            "user_id",
            "asset_id",
            "current_stage",
            "progress",
            "metadata",
            "total_files",
            "created_at",
            "updated_at",
        ]
