from django.db import models

from .stages import Stage


class AssetProgress(models.Model):
    """
    Durable per-asset progress, one row per (user_id, asset_id).

    progress holds one sub-record per stage:
        {"download": {"status": "COMPLETED", "startTime": ..., "endTime": ..., "error": "N.A"}, ...}
    """
    user_id = models.CharField(max_length=128)
    asset_id = models.CharField(max_length=128)
    current_stage = models.CharField(max_length=32, choices=Stage.choices, blank=True, default="")
    progress = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)   # technical probe facts
    total_files = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user_id", "asset_id"], name="uniq_asset_progress"),
        ]

    def __str__(self):
        return f"{self.user_id}/{self.asset_id} @ {self.current_stage or '-'}"
