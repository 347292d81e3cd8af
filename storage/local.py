import asyncio
from pathlib import Path

from exceptions import StorageProviderError
from schemas import StorageTarget
from storage.base import StorageProvider


class LocalStorage(StorageProvider):
    """Writes variants under <upload_dir>/<upload_type>/ on local disk.

    Only used in persistent deployments; the returned reference is
    relative (<public_prefix>/<upload_type>/<filename>) so the web
    server's static root decides the final URL.
    """

    name = "local"
    target = StorageTarget.LOCAL

    def __init__(self, upload_dir: str | Path, public_prefix: str = "uploads"):
        self.upload_dir = Path(upload_dir)
        self.public_prefix = public_prefix.strip("/")

    def directory_for(self, upload_type: str) -> Path:
        return self.upload_dir / upload_type

    async def ensure_dir(self, upload_type: str) -> Path:
        """Create the upload-type directory if missing.

        Safe when overlapping requests race to create it.
        """
        directory = self.directory_for(upload_type)
        try:
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageProviderError(
                f"Cannot create upload directory {directory}: {e}",
                provider=self.name,
            )
        return directory

    async def save(
        self,
        data: bytes,
        filename: str,
        upload_type: str,
        content_type: str,
    ) -> str:
        directory = await self.ensure_dir(upload_type)
        path = directory / filename
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise StorageProviderError(
                f"Local write failed for {filename}: {e}",
                provider=self.name,
            )
        reference = f"{upload_type}/{filename}"
        if self.public_prefix:
            reference = f"{self.public_prefix}/{reference}"
        return reference

    def status(self) -> dict:
        return {"configured": True, "upload_dir": str(self.upload_dir)}
