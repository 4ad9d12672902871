import io
import logging

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from .exceptions import StorageError

logger = logging.getLogger(__name__)


def get_s3_client():
    """
    SDK client for server-side upload/download.
    Falls back to the default AWS credential chain when no keys are configured.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY or None,
        aws_secret_access_key=settings.S3_SECRET_KEY or None,
        region_name=settings.S3_REGION or None,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000 for MinIO
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
            retries={"max_attempts": 5, "mode": "standard"},
            # upload workers share one client
            max_pool_connections=64,
        ),
    )


class ObjectStore:
    """Whole-object download/upload against a single bucket."""

    def __init__(self, bucket: str, client=None, multipart_threshold: int | None = None):
        self.bucket = bucket
        self.client = client or get_s3_client()
        threshold = multipart_threshold or settings.S3_MULTIPART_THRESHOLD
        self.transfer_config = TransferConfig(
            multipart_threshold=threshold,
            multipart_chunksize=threshold,
            use_threads=False,
        )

    def download(self, key: str) -> bytes:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError("download", self.bucket, key, e) from e

    def upload(self, key: str, data: bytes, content_type: str | None = None) -> None:
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self.client.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                key,
                ExtraArgs=extra or None,
                Config=self.transfer_config,
            )
        except (S3UploadFailedError, ClientError, BotoCoreError) as e:
            raise StorageError("upload", self.bucket, key, e) from e
        logger.debug("Uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(data))
