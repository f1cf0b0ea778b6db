import os
from uuid import uuid4

import boto3
import pytest
from moto import mock_aws

from kirokun.core import object_storage
from kirokun.core.config import settings

pytestmark = pytest.mark.asyncio


@pytest.fixture(scope="function")
def aws_credentials():
    """Mock AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture(scope="function")
def s3_client(aws_credentials, monkeypatch):
    """S3 client fixture wrapped in mock_aws context manager."""
    monkeypatch.setattr(settings, "S3_ENDPOINT_URL", None)
    monkeypatch.setattr(settings, "S3_ACCESS_KEY", None)
    monkeypatch.setattr(settings, "S3_SECRET_KEY", None)
    monkeypatch.setattr(settings, "S3_REGION", "us-east-1")
    with mock_aws():
        conn = boto3.client("s3", region_name="us-east-1")
        yield conn


@pytest.fixture(scope="function")
def s3_bucket(s3_client, monkeypatch):
    """Create a mock S3 bucket."""
    bucket_name = "test-bucket"
    monkeypatch.setattr(settings, "S3_BUCKET_NAME", bucket_name)
    s3_client.create_bucket(Bucket=bucket_name)
    return bucket_name


async def test_upload_document(s3_client, s3_bucket):
    """
    アップロードした内容が保存され、s3:// 形式のURLが返ること
    """
    content = '"ID","発生日時"\r\n'.encode("utf-8")
    path = f"incidents/Beta/{uuid4()}.csv"

    s3_url = await object_storage.upload_document(path, content)

    assert s3_url == f"s3://{s3_bucket}/{path}"
    response = s3_client.get_object(Bucket=s3_bucket, Key=path)
    assert response["Body"].read() == content
    assert response["ContentType"] == "text/csv; charset=utf-8"


async def test_upload_document_missing_bucket(s3_client, monkeypatch):
    """バケットが存在しない場合は None を返すこと"""
    monkeypatch.setattr(settings, "S3_BUCKET_NAME", "missing-bucket")

    assert await object_storage.upload_document("incidents/x.csv", b"data") is None
