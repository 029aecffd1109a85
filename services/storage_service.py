import logging
import os

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.config import settings
from core.errors import StorageError

logger = logging.getLogger(__name__)

# Cloud Storage is reached through its S3-compatible XML API.
# It rejects the default CRC checksum headers newer botocore versions send.
s3_client = boto3.client(
    "s3",
    region_name=settings.STORAGE_REGION,
    endpoint_url=settings.STORAGE_ENDPOINT,
    aws_access_key_id=settings.GCS_HMAC_ACCESS_KEY,
    aws_secret_access_key=settings.GCS_HMAC_SECRET,
    config=Config(
        signature_version="s3v4",
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
    ),
)

# Invoices never exceed the max size, so keep every upload a single PUT.
transfer_config = TransferConfig(multipart_threshold=settings.MAX_FILE_SIZE_BYTES + 1)

MARKER_CONTENT_TYPE = "application/x-www-form-urlencoded"


def create_directory_marker(bucket: str, key: str) -> None:
    """
    Creates an empty object that stands in for a logical directory.

    :param bucket: Bucket name.
    :param key: Marker key, e.g. '3f2c.../'.
    :raises StorageError: If the write fails.
    """
    try:
        s3_client.put_object(
            Bucket=bucket,
            Key=key,
            Body=b"",
            ContentType=MARKER_CONTENT_TYPE,
        )
        logger.info("Bucket directory %s created in %s.", key, bucket)
    except (ClientError, BotoCoreError) as e:
        logger.error("Error creating bucket directory %s: %s", key, e)
        raise StorageError(f"Error creating bucket directory {key}") from e


def upload_object(bucket: str, local_path: str, remote_key: str, size: int) -> bool:
    """
    Uploads one local file to the given key.

    Files above the max size and directory marker keys are skipped, not failed.

    :return: True if the file was uploaded, False if it was skipped.
    :raises StorageError: If the upload itself fails.
    """
    if size > settings.MAX_FILE_SIZE_BYTES:
        logger.warning(
            "%s is %d bytes. Max file size %d, skipping.",
            remote_key, size, settings.MAX_FILE_SIZE_BYTES,
        )
        return False
    if remote_key.endswith("/"):
        logger.info("Skipping directory marker %s.", remote_key)
        return False

    try:
        s3_client.upload_file(
            local_path,
            bucket,
            remote_key,
            ExtraArgs={"ContentType": "application/pdf"},
            Config=transfer_config,
        )
    except (ClientError, BotoCoreError) as e:
        logger.error("Error uploading file %s to %s: %s", remote_key, bucket, e)
        raise StorageError(f"Error uploading file {remote_key}") from e

    logger.info("%s uploaded to %s.", remote_key, bucket)
    return True


def list_objects(bucket: str, prefix: str) -> list[str]:
    """
    Lists all object keys under a given prefix.

    :param prefix: The prefix to search under (e.g., 'invoices/<run_id>/').
    :return: Keys of actual files, zero-byte directory markers excluded.
    :raises StorageError: If there's an issue with the object store.
    """
    keys = []
    try:
        paginator = s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []) if obj["Size"] > 0)
    except (ClientError, BotoCoreError) as e:
        logger.error("Error listing %s/%s: %s", bucket, prefix, e)
        raise StorageError(f"Error listing objects under {prefix}") from e
    return keys


def download_object(bucket: str, key: str, local_path: str) -> None:
    """
    Downloads an object to a local path, creating parent directories.

    :raises StorageError: If the object is missing or the download fails.
    """
    parent = os.path.dirname(local_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        s3_client.download_file(bucket, key, local_path)
    except (ClientError, BotoCoreError) as e:
        logger.error("Error downloading file %s: %s", key, e)
        raise StorageError(f"Error downloading file {key}") from e


def delete_objects(bucket: str, prefix: str) -> int:
    """Deletes every object under a prefix, markers included. Returns the count."""
    deleted = 0
    try:
        paginator = s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            # Cloud Storage's XML API has no multi-object delete.
            for obj in page.get("Contents", []):
                s3_client.delete_object(Bucket=bucket, Key=obj["Key"])
                deleted += 1
    except (ClientError, BotoCoreError) as e:
        logger.error("Error deleting objects under %s/%s: %s", bucket, prefix, e)
        raise StorageError(f"Error deleting objects under {prefix}") from e
    return deleted
