"""Cloudflare R2 storage for payment and refund slips"""

import logging
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_BASE_URL,
    R2_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)

# Longest lifetime S3 v4 signatures allow
PRESIGNED_URL_EXPIRATION = 7 * 24 * 3600

EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


class StorageError(Exception):
    """Raised when an object could not be stored"""


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


class SlipStorage:
    """Stores slip images and hands back a URL the verifier and dashboard can fetch"""

    def __init__(self, client=None, bucket: str = R2_BUCKET_NAME, public_base_url: str = R2_PUBLIC_BASE_URL):
        self._client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def client(self):
        if self._client is None:
            self._client = get_r2_client()
        return self._client

    def build_key(self, prefix: str, order_id: str, content_type: str) -> str:
        extension = EXTENSIONS.get(content_type, "bin")
        return f"{prefix}/{order_id}/{uuid.uuid4().hex}.{extension}"

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key, "ResponseContentDisposition": "inline"},
            ExpiresIn=PRESIGNED_URL_EXPIRATION,
        )

    def upload(self, prefix: str, order_id: str, content: bytes, content_type: str) -> str:
        """Store bytes under ``prefix/order_id/`` and return their URL"""
        key = self.build_key(prefix, order_id, content_type)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
            url = self.public_url(key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Failed to upload {key} to R2: {e}")
            raise StorageError("Could not store the uploaded file") from e

        logger.info(f"✅ Uploaded to R2: {key}")
        return url


def get_slip_storage() -> SlipStorage:
    """Dependency for routers; tests override it"""
    return SlipStorage()
