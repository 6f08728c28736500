"""S3-compatible blob storage for file bytes and folder markers."""

from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from common.constants import FOLDER_CONTENT_TYPE
from common.logging_config import get_logger
from webapp.domain import BlobInfo
from webapp.exceptions import NodeNotFoundError, StoreUnavailableError
from webapp.utils import folder_marker_key

logger = get_logger(__name__)

_MISSING_KEY_CODES = {"404", "NoSuchKey", "NotFound"}
_UNAVAILABLE_CODES = {"NoSuchBucket", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobStore:
    """
    Wraps a boto3 S3 client bound to a single bucket.

    The client is injected so that the application entry point owns its
    lifecycle and tests can hand in a mocked one.
    """

    def __init__(self, client, bucket_name: str):
        self.client = client
        self.bucket_name = bucket_name

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        logger.info(f"Uploading object to storage: {key} ({len(data)} bytes)")
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload object {key}: {e}", exc_info=True)
            raise self._unavailable(e) from e

    def head_object(self, key: str) -> Optional[BlobInfo]:
        """
        Look up an object's size and content type.

        Returns:
            BlobInfo, or None if no object exists under the key
        """
        try:
            response = self.client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in _MISSING_KEY_CODES:
                return None
            raise self._unavailable(e) from e
        except BotoCoreError as e:
            raise self._unavailable(e) from e

        return BlobInfo(
            size_bytes=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType") or "",
        )

    def read_object(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_KEY_CODES:
                logger.warning(f"Object missing from storage: {key}")
                raise NodeNotFoundError("File content not found in storage") from e
            raise self._unavailable(e) from e
        except BotoCoreError as e:
            raise self._unavailable(e) from e

    def delete_object(self, key: str) -> None:
        logger.info(f"Deleting object from storage: {key}")
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete object {key}: {e}", exc_info=True)
            raise self._unavailable(e) from e

    def create_upload_url(self, key: str, content_type: str, expires_in: int) -> str:
        return self._presign("put_object", {"Key": key, "ContentType": content_type}, expires_in)

    def create_download_url(self, key: str, expires_in: int, file_name: Optional[str] = None) -> str:
        params = {"Key": key}
        if file_name:
            params["ResponseContentDisposition"] = f'attachment; filename="{file_name}"'
        return self._presign("get_object", params, expires_in)

    def put_folder_marker(self, prefix: str) -> None:
        self.put_object(folder_marker_key(prefix), b"", FOLDER_CONTENT_TYPE)

    def delete_folder_marker(self, prefix: str) -> None:
        self.delete_object(folder_marker_key(prefix))

    def ping(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable(e) from e

    def _presign(self, client_method: str, params: dict, expires_in: int) -> str:
        try:
            return self.client.generate_presigned_url(
                ClientMethod=client_method,
                Params={"Bucket": self.bucket_name, **params},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to presign {client_method} for {params['Key']}: {e}", exc_info=True)
            raise self._unavailable(e) from e

    def _unavailable(self, error: Exception) -> StoreUnavailableError:
        if isinstance(error, ClientError) and _error_code(error) not in _UNAVAILABLE_CODES:
            return StoreUnavailableError(f"Blob storage request failed: {_error_code(error)}")
        return StoreUnavailableError("Blob storage is unavailable")
