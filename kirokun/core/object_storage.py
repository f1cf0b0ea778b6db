import io
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kirokun.core.config import settings

logger = logging.getLogger(__name__)


def _s3_client():
    # S3シークレットキーの取得
    secret_key = None
    if settings.S3_SECRET_KEY:
        secret_key = settings.S3_SECRET_KEY.get_secret_value()

    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=secret_key,
        region_name=settings.S3_REGION
    )


async def upload_document(path: str, data: bytes, content_type: str = "text/csv; charset=utf-8") -> str | None:
    """
    Upload a document to the configured S3 bucket.

    :param path: S3 object name.
    :param data: Document body.
    :param content_type: Content-Type stored with the object.
    :return: S3 URL of the uploaded document, or None if upload fails.
    """
    s3_client = _s3_client()
    try:
        s3_client.upload_fileobj(
            io.BytesIO(data),
            settings.S3_BUCKET_NAME,
            path,
            ExtraArgs={
                'ContentType': content_type,
                'ContentDisposition': 'attachment'
            }
        )
        s3_url = f"s3://{settings.S3_BUCKET_NAME}/{path}"
        logger.info(f"Document {path} uploaded to {s3_url}")
        return s3_url
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to upload {path} to S3: {e}")
        return None
