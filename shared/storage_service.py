"""Object storage for generated character images (Cloudflare R2 / any S3-compatible bucket)"""

import logging
import os
import time
import uuid
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import FunctionError

logger = logging.getLogger(__name__)


class StorageService:
    """Uploads generated PNGs and builds their public URLs"""

    def __init__(self):
        self.account_id = os.getenv("R2_ACCOUNT_ID")
        self.access_key = os.getenv("R2_ACCESS_KEY_ID")
        self.secret_key = os.getenv("R2_SECRET_ACCESS_KEY")
        self.bucket_name = os.getenv("R2_BUCKET_NAME", "generations")
        self.endpoint = os.getenv("R2_ENDPOINT")
        self.public_url = os.getenv("STORAGE_PUBLIC_URL", "").rstrip("/")

        if not all([self.access_key, self.secret_key, self.public_url]):
            raise ValueError("Missing storage configuration. Check R2_* and STORAGE_PUBLIC_URL.")

        self.client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )

    @staticmethod
    def build_object_names(user_id: str) -> tuple[str, str]:
        """(original backup key, final image key) sharing one timestamp and random id"""
        stem = f"{user_id}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        return f"{stem}_original.png", f"{stem}.png"

    async def upload_png(self, key: str, content: bytes, metadata: Optional[dict] = None) -> str:
        """Upload PNG bytes under key and return the public URL"""
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType="image/png",
                CacheControl="public, max-age=31536000",
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ STORAGE: Upload of {key} failed: {e}")
            raise FunctionError(f"Upload failed: {str(e)}", code="STORAGE_ERROR")

        return self.get_public_url(key)

    def get_public_url(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    async def delete_user_assets(self, user_id: str) -> dict:
        """Delete every object stored under the user's prefix, one listing page at a time"""
        summary = {"deleted": 0, "errors": []}

        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=f"{user_id}/"):
                # A listing page holds at most 1000 keys, the delete_objects limit
                objects = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                if not objects:
                    continue

                delete_response = self.client.delete_objects(
                    Bucket=self.bucket_name, Delete={"Objects": objects}
                )
                errors = [
                    f"Failed to delete {error['Key']}: {error['Message']}"
                    for error in delete_response.get("Errors", [])
                ]
                summary["errors"].extend(errors)
                summary["deleted"] += len(objects) - len(errors)

        except (ClientError, BotoCoreError) as e:
            summary["errors"].append(f"Error deleting assets for {user_id}: {str(e)}")

        return summary


_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Dependency returning the process-wide storage client"""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
