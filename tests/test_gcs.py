"""Tests for GCS upload integration (mocked)."""

from unittest.mock import MagicMock

import pytest

from exceptions import StorageProviderError
from storage.gcs import GCSUploader


def _mock_client(uploader: GCSUploader):
    mock_blob = MagicMock()
    mock_bucket = MagicMock()
    mock_bucket.blob.return_value = mock_blob

    mock_client = MagicMock()
    mock_client.bucket.return_value = mock_bucket
    uploader._client = mock_client
    return mock_client, mock_bucket, mock_blob


@pytest.mark.asyncio
async def test_gcs_upload_mock():
    """Upload bytes to mocked GCS -> correct bucket/path."""
    uploader = GCSUploader(bucket="test-bucket")
    mock_client, mock_bucket, mock_blob = _mock_client(uploader)

    url = await uploader.save(b"fake image data", "a.webp", "products", "image/webp")

    mock_client.bucket.assert_called_once_with("test-bucket", user_project=None)
    mock_bucket.blob.assert_called_once_with("products/a.webp")
    mock_blob.upload_from_string.assert_called_once_with(
        b"fake image data", content_type="image/webp"
    )
    mock_blob.make_public.assert_not_called()
    assert url == "gs://test-bucket/products/a.webp"


@pytest.mark.asyncio
async def test_gcs_upload_public():
    """public=True -> blob.make_public() called, https URL returned."""
    uploader = GCSUploader(bucket="test-bucket", public=True)
    _, _, mock_blob = _mock_client(uploader)

    url = await uploader.save(b"data", "a.webp", "banners", "image/webp")

    mock_blob.make_public.assert_called_once()
    assert url == "https://storage.googleapis.com/test-bucket/banners/a.webp"


@pytest.mark.asyncio
async def test_gcs_upload_custom_project():
    """project passed through as user_project."""
    uploader = GCSUploader(bucket="test-bucket", project="my-gcp-project")
    mock_client, _, _ = _mock_client(uploader)

    await uploader.save(b"data", "a.png", "products", "image/png")

    mock_client.bucket.assert_called_once_with("test-bucket", user_project="my-gcp-project")


@pytest.mark.asyncio
async def test_gcs_upload_failure_handling():
    """GCS error -> StorageProviderError with provider name."""
    uploader = GCSUploader(bucket="test-bucket")
    mock_client = MagicMock()
    mock_client.bucket.side_effect = Exception("Bucket not found")
    uploader._client = mock_client

    with pytest.raises(StorageProviderError, match="GCS upload failed") as exc_info:
        await uploader.save(b"data", "a.png", "products", "image/png")
    assert exc_info.value.provider == "gcs"
    assert exc_info.value.details["path"] == "products/a.png"


def test_gcs_configured_only_with_bucket():
    assert GCSUploader().is_configured() is False
    assert GCSUploader(bucket="b").is_configured() is True
