from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .models import AssetProgress
from .serializers import AssetProgressSerializer, BatchSerializer
from .tasks import process_batch


class BatchCreateView(views.APIView):
    """
    Validates a batch of tasks and enqueues it on the Celery worker.
    Body: {"tasks": [{"taskId", "userId", "assetId", "inputKey", "outputKey"}, ...]}
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = BatchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        # hand the worker the original camelCase records; it re-validates
        result = process_batch.delay(request.data["tasks"])
        return Response(
            {"batch_id": result.id, "task_count": len(ser.validated_data["tasks"])},
            status=status.HTTP_202_ACCEPTED,
        )


class AssetProgressView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, user_id, asset_id):
        try:
            row = AssetProgress.objects.get(user_id=user_id, asset_id=asset_id)
        except AssetProgress.DoesNotExist:
            return Response({"detail": "Not found"}, status=404)
        return Response(AssetProgressSerializer(row).data)
