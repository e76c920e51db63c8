"""MinIO object storage wrapper for raw CSV upload artifacts."""
import io
import logging

from minio import Minio
from minio.error import S3Error

from app.core.config import settings

logger = logging.getLogger(__name__)

# ─── Client singleton ───

def _build_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


_client: Minio | None = None


def get_client() -> Minio:
    global _client
    if _client is None:
        _client = _build_client()
    return _client


# ─── Bucket bootstrap ───

def ensure_bucket(bucket: str = settings.MINIO_BUCKET_NAME) -> None:
    """Create bucket if it does not already exist. Called on startup."""
    client = get_client()
    try:
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info("Created MinIO bucket: %s", bucket)
        else:
            logger.debug("MinIO bucket already exists: %s", bucket)
    except S3Error as exc:
        logger.error("Failed to ensure MinIO bucket %s: %s", bucket, exc)
        raise


# ─── Core operations ───

def artifact_key(file_name: str) -> str:
    """Object key for a stored raw upload."""
    return f"csv-uploads/{file_name}"


def upload_file(
    bucket: str,
    object_name: str,
    data: bytes,
    content_type: str = "text/csv",
) -> str:
    """Upload bytes to MinIO. Returns the object path."""
    client = get_client()
    client.put_object(
        bucket_name=bucket,
        object_name=object_name,
        data=io.BytesIO(data),
        length=len(data),
        content_type=content_type,
    )
    logger.info("Uploaded %s/%s (%d bytes)", bucket, object_name, len(data))
    return object_name


def delete_object(bucket: str, object_name: str) -> None:
    """Delete an object from MinIO."""
    client = get_client()
    client.remove_object(bucket_name=bucket, object_name=object_name)
    logger.info("Deleted %s/%s", bucket, object_name)
