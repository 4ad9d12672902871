from django.urls import path
from .views import AssetProgressView, BatchCreateView

urlpatterns = [
    path("batches/", BatchCreateView.as_view(), name="batch_create"),
    path("assets/<str:user_id>/<str:asset_id>/progress/", AssetProgressView.as_view(), name="asset_progress"),
]
