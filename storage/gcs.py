import asyncio

from google.cloud import storage as gcs_lib

from config import Settings, settings
from exceptions import StorageProviderError
from schemas import StorageTarget
from storage.base import StorageProvider
from utils.logging import get_logger

logger = get_logger("storage.gcs")


class GCSUploader(StorageProvider):
    """Google Cloud Storage upload handler.

    Secondary cloud provider, tried after R2. Configured when a bucket is
    set.

    Authentication:
    - Cloud Run (production): Workload identity (automatic)
    - Local development: GOOGLE_APPLICATION_CREDENTIALS env var
    - CI/CD: Service account key or workload identity federation
    """

    name = "gcs"
    target = StorageTarget.CLOUD_SECONDARY

    def __init__(self, bucket: str = "", project: str = "", public: bool = False):
        self.bucket = bucket
        self.project = project or None
        self.public = public
        self._client = None

    @classmethod
    def from_settings(cls, s: Settings) -> "GCSUploader":
        return cls(bucket=s.gcs_bucket, project=s.gcs_project, public=s.gcs_public)

    @property
    def client(self):
        """Lazy-initialized GCS client."""
        if self._client is None:
            self._client = gcs_lib.Client(project=self.project)
        return self._client

    def is_configured(self) -> bool:
        return bool(self.bucket)

    async def save(
        self,
        data: bytes,
        filename: str,
        upload_type: str,
        content_type: str,
    ) -> str:
        """Upload variant bytes to GCS.

        Returns:
            Public https URL when the bucket is public, gs:// URL otherwise.

        Raises:
            StorageProviderError: If upload fails.
        """
        path = f"{upload_type}/{filename}"
        try:
            await asyncio.to_thread(self._upload, data, path, content_type)
        except Exception as e:
            raise StorageProviderError(
                f"GCS upload failed: {e}",
                provider=self.name,
                bucket=self.bucket,
                path=path,
            )

        logger.info(f"Uploaded {path} to gs://{self.bucket}")
        if self.public:
            return f"https://storage.googleapis.com/{self.bucket}/{path}"
        return f"gs://{self.bucket}/{path}"

    def _upload(self, data: bytes, path: str, content_type: str) -> None:
        bucket = self.client.bucket(self.bucket, user_project=self.project)
        blob = bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        if self.public:
            blob.make_public()

    def status(self) -> dict:
        return {
            "configured": self.is_configured(),
            "bucket": self.bucket or "Not set",
            "public": self.public,
        }


# Module-level singleton
gcs_uploader = GCSUploader.from_settings(settings)
