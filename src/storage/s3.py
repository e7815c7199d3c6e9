"""
S3 Layer Store

Uploads layer files to an S3 bucket, conditionally on the metadata of the
object already stored under the same key.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import boto3
from botocore.exceptions import ClientError

from pipeline.utils import format_file_size

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3LayerStore:
    """Handle conditional S3 uploads of layer files."""

    def __init__(self, bucket_name: str, region: Optional[str] = None, profile: Optional[str] = None, client=None):
        """
        Initialize S3 store.

        Args:
            bucket_name: Name of the S3 bucket
            region: AWS region
            profile: AWS profile name (if None, uses default credentials)
            client: Preconfigured S3 client (for testing)
        """
        self.bucket_name = bucket_name
        self.region = region

        if client is None:
            session = boto3.Session(profile_name=profile) if profile else boto3.Session()
            client = session.client('s3', region_name=self.region)
        self.s3_client = client

        logger.info(f"Initialized S3 store for bucket: {self.bucket_name}")

    def head_metadata(self, key: str) -> Optional[Dict[str, str]]:
        """
        Fetch the user metadata of an existing object.

        Returns:
            Metadata dict, or None if the object does not exist

        Raises:
            ClientError: For any error other than a missing object
        """
        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in NOT_FOUND_CODES:
                return None
            raise
        return response.get('Metadata', {})

    def upload_file(
        self,
        file_path: Union[str, Path],
        key: str,
        metadata: Dict[str, str],
        should_upload: Callable[[Dict[str, str]], bool],
        cache_control: str
    ) -> Dict[str, object]:
        """
        Upload a file unless `should_upload` rejects the existing object's metadata.

        Args:
            file_path: Local file to upload
            key: Destination object key
            metadata: User metadata to store with the object
            should_upload: Called with the existing metadata ({} if absent)
            cache_control: Cache-Control header for the object

        Returns:
            dict with 'key', 'uploaded' and 'reason'
        """
        file_path = Path(file_path)
        existing = self.head_metadata(key)

        if not should_upload(existing or {}):
            return {'key': key, 'uploaded': False, 'reason': 'remote is up to date'}

        extra_args = {
            'Metadata': metadata,
            'CacheControl': cache_control,
            'ContentType': 'application/json',
        }
        logger.info(f"Uploading {file_path.name} ({format_file_size(file_path.stat().st_size)}) to {key}...")

        self.s3_client.upload_file(
            str(file_path),
            self.bucket_name,
            key,
            ExtraArgs=extra_args
        )

        logger.info(f"✓ Uploaded: s3://{self.bucket_name}/{key}")
        return {
            'key': key,
            'uploaded': True,
            'reason': 'new' if existing is None else 'replaced',
        }
