import asyncio

import boto3
from botocore.config import Config

from config import Settings, settings
from exceptions import StorageProviderError
from schemas import StorageTarget
from storage.base import StorageProvider, mask
from utils.logging import get_logger

logger = get_logger("storage.r2")


class R2Uploader(StorageProvider):
    """Cloudflare R2 upload handler (S3-compatible API via boto3).

    Primary cloud provider for ephemeral deployments. Needs all three of
    account id, access key id and secret access key; with any missing the
    provider reports itself unconfigured and is never called.
    """

    name = "r2"
    target = StorageTarget.CLOUD_PRIMARY

    def __init__(
        self,
        account_id: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        bucket: str = "images",
        public_url: str = "",
        max_retries: int = 3,
        timeout_seconds: int = 30,
    ):
        self.account_id = account_id
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self._client = None

    @classmethod
    def from_settings(cls, s: Settings) -> "R2Uploader":
        return cls(
            account_id=s.r2_account_id,
            access_key_id=s.r2_access_key_id,
            secret_access_key=s.r2_secret_access_key,
            bucket=s.r2_bucket,
            public_url=s.r2_public_url,
            max_retries=s.r2_max_retries,
            timeout_seconds=s.r2_timeout_seconds,
        )

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account_id}.r2.cloudflarestorage.com"

    @property
    def client(self):
        """Lazy-initialized S3 client pointed at the R2 endpoint."""
        if self._client is None:
            config = Config(
                retries={"max_attempts": self.max_retries, "mode": "adaptive"},
                connect_timeout=self.timeout_seconds,
                read_timeout=self.timeout_seconds,
                signature_version="s3v4",
            )
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                config=config,
                region_name="auto",
            )
        return self._client

    def is_configured(self) -> bool:
        return bool(self.account_id and self.access_key_id and self.secret_access_key)

    def url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        return f"{self.endpoint_url}/{self.bucket}/{key}"

    async def save(
        self,
        data: bytes,
        filename: str,
        upload_type: str,
        content_type: str,
    ) -> str:
        """Upload variant bytes under <upload_type>/<filename>.

        Raises:
            StorageProviderError: On any failure, including building the
                client from a malformed endpoint.
        """
        key = f"{upload_type}/{filename}"
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl="public, max-age=31536000, immutable",
            )
        except Exception as e:
            raise StorageProviderError(
                f"R2 upload failed: {e}",
                provider=self.name,
                bucket=self.bucket,
                key=key,
            )

        url = self.url_for(key)
        logger.info(
            f"Uploaded {key} to R2",
            extra={"context": {"bucket": self.bucket, "key": key, "size": len(data)}},
        )
        return url

    def status(self) -> dict:
        return {
            "configured": self.is_configured(),
            "accountId": mask(self.account_id),
            "accessKeyId": mask(self.access_key_id),
            "secretAccessKey": "Set" if self.secret_access_key else "Not set",
            "bucket": self.bucket,
        }


# Module-level singleton
r2_uploader = R2Uploader.from_settings(settings)
