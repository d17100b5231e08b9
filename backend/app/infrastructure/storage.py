import io
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from backend.app.config import Settings
from backend.app.logging_config import get_logger

logger = get_logger("app.infrastructure.storage")

CONTENT_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain; charset=utf-8",
}

MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


def letter_output_key(letter_id: uuid.UUID, version: int, file_format: str) -> str:
    """One object per (letter, version, format); re-rendering overwrites it."""
    return f"letters/{letter_id}/{version}/letter.{file_format}"


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", "Unknown"))


def build_s3_client(
    endpoint_url: str,
    access_key: str,
    secret_key: str,
    region: str = "auto",
):
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=None if region == "auto" else region,
        config=Config(connect_timeout=2, read_timeout=2, retries={"max_attempts": 1}),
    )


class StorageService:
    """Rendered letter files in an S3-compatible bucket."""

    def __init__(self, settings: Settings):
        self.client = build_s3_client(
            settings.s3_endpoint_url,
            settings.s3_access_key,
            settings.s3_secret_key,
            settings.s3_region,
        )
        self.bucket_name = settings.s3_bucket_name

    def upload_letter_output(
        self, letter_id: uuid.UUID, version: int, file_format: str, content: bytes
    ) -> str:
        """Store a rendered letter and return its key. Errors propagate to the caller."""
        key = letter_output_key(letter_id, version, file_format)
        self.client.upload_fileobj(
            io.BytesIO(content),
            self.bucket_name,
            key,
            ExtraArgs={
                "ContentType": CONTENT_TYPES.get(file_format, "application/octet-stream"),
                "Metadata": {"letter-id": str(letter_id), "letter-version": str(version)},
            },
        )
        logger.info(f"Stored rendered letter {letter_id} v{version} at {key} ({len(content)} bytes)")
        return key

    def get_letter_output(
        self, letter_id: uuid.UUID, version: int, file_format: str
    ) -> bytes | None:
        """None when this version was never rendered in that format."""
        return self.get_file(letter_output_key(letter_id, version, file_format))

    def get_file(self, key: str) -> bytes | None:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in MISSING_OBJECT_CODES:
                logger.debug(f"No stored object at {key}")
                return None
            logger.error(f"Failed to read {key}: {e}")
            raise
        return response["Body"].read()


def check_storage_connectivity(
    endpoint_url: str,
    access_key: str,
    secret_key: str,
    bucket_name: str,
) -> bool:
    try:
        build_s3_client(endpoint_url, access_key, secret_key).head_bucket(Bucket=bucket_name)
        logger.info(f"Storage connectivity check passed for bucket: {bucket_name}")
        return True
    except ClientError as e:
        code = _error_code(e)
        if code == "404":
            logger.error(f"Storage bucket not found: {bucket_name}")
        elif code == "403":
            logger.error(f"Storage access denied for bucket: {bucket_name}")
        else:
            logger.error(f"Storage connectivity check failed: {e}")
        return False
    except (EndpointConnectionError, NoCredentialsError) as e:
        logger.error(f"Storage endpoint unreachable or credentials missing: {e}")
        return False
    except Exception as e:
        logger.error(f"Unexpected error during storage connectivity check: {e}")
        return False
