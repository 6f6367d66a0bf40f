"""S3-compatible storage provider implementation."""

import logging
from typing import Dict, Optional

import aioboto3
import boto3
from botocore.exceptions import ClientError
from botocore.config import Config

from app.domain.interfaces import IStorageProvider
from app.core.config import settings

logger = logging.getLogger(__name__)


class S3StorageProvider(IStorageProvider):
    """
    S3-compatible storage provider using aioboto3, bound to one bucket.

    Works against AWS S3 and self-hosted gateways (MinIO, Ceph RGW) through
    ``endpoint_url`` with path-style addressing.
    """

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        region_name: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url or settings.S3_ENDPOINT_URL
        self.access_key_id = access_key_id or settings.S3_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.S3_SECRET_ACCESS_KEY
        self.region_name = region_name or settings.S3_REGION

        if not all([self.access_key_id, self.secret_access_key, self.bucket_name]):
            raise ValueError("S3 storage requires S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY and a bucket name")

        self.session = aioboto3.Session()
        self.s3_config = Config(
            signature_version='s3v4',
            region_name=self.region_name,
            s3={'addressing_style': 'path'},
        )

        logger.info(f"S3 storage initialized: endpoint={self.endpoint_url}, bucket={self.bucket_name}")

    def _client(self):
        return self.session.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name=self.region_name,
            config=self.s3_config,
        )

    async def store(
        self,
        key: str,
        content: bytes,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        put_params = {
            'Bucket': self.bucket_name,
            'Key': key,
            'Body': content,
        }
        if metadata and metadata.get('content_type'):
            put_params['ContentType'] = str(metadata['content_type'])

        try:
            async with self._client() as s3:
                await s3.put_object(**put_params)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', 'No message')
            logger.error(f"Failed to store {key} in {self.bucket_name}: {error_code} - {error_message}")
            raise RuntimeError(f"S3 storage error ({error_code}): {error_message}") from e

        logger.info(f"File stored in S3: {self.bucket_name}/{key} ({len(content)} bytes)")
        return key

    async def retrieve(self, key: str) -> bytes:
        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self.bucket_name, Key=key)
                return await response['Body'].read()
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', '')
            if error_code in ('NoSuchKey', '404'):
                raise FileNotFoundError(f"File not found: {key}") from e
            raise RuntimeError(f"S3 storage error: {e}") from e

    async def delete(self, key: str) -> bool:
        if not await self.exists(key):
            return False
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            raise RuntimeError(f"S3 storage error: {e}") from e
        return True

    async def exists(self, key: str) -> bool:
        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket_name, Key=key)
                return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', '')
            if error_code in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise RuntimeError(f"S3 storage error: {e}") from e

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Generate a pre-signed GET URL. Signing is local, so the sync client is fine."""
        s3_client = boto3.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name=self.region_name,
            config=self.s3_config,
        )
        return s3_client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket_name, 'Key': key},
            ExpiresIn=expires_in,
        )
