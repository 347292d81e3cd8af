from abc import ABC, abstractmethod

from schemas import StorageTarget


class StorageProvider(ABC):
    """One link in the storage fallback chain."""

    name: str
    target: StorageTarget

    def is_configured(self) -> bool:
        """Whether the provider has what it needs to attempt a write.

        An unconfigured provider is skipped without any network call.
        """
        return True

    @abstractmethod
    async def save(
        self,
        data: bytes,
        filename: str,
        upload_type: str,
        content_type: str,
    ) -> str:
        """Persist bytes and return the reference path or URL.

        Args:
            data: Variant bytes.
            filename: Already-uniquified filename.
            upload_type: Storage category ("products", "banners", ...).
            content_type: MIME type of the bytes.

        Raises:
            StorageProviderError: If the write fails.
        """

    def status(self) -> dict:
        """Non-secret configuration summary for the GET endpoints."""
        return {"configured": self.is_configured()}


def mask(value: str) -> str:
    """Show only the last four characters of a credential."""
    return "***" + value[-4:] if value else "Not set"
