from collections.abc import Sequence

from deployment import DeploymentContext
from exceptions import StorageError, StorageProviderError
from schemas import PersistedReference, StorageTarget, Variant
from storage.base import StorageProvider
from storage.gcs import gcs_uploader
from storage.local import LocalStorage
from storage.r2 import r2_uploader
from utils.concurrency import gather_bounded
from utils.filenames import unique_filename
from utils.format_detect import mime_type_for
from utils.logging import get_logger

logger = get_logger("storage.router")


class StorageRouter:
    """Persists variants through the provider chain for a deployment.

    Chains:
    - persistent: [local]
    - ephemeral:  [cloud_primary, cloud_secondary, placeholder]

    Unconfigured cloud providers are skipped without a call. A provider
    failure advances the chain. When the chain is exhausted, strict mode
    raises StorageError; otherwise the variant gets the placeholder path.
    """

    def __init__(
        self,
        context: DeploymentContext,
        *,
        local: StorageProvider | None = None,
        primary: StorageProvider | None = None,
        secondary: StorageProvider | None = None,
    ):
        self.context = context
        self.local = local or LocalStorage(context.upload_dir, context.public_prefix)
        self.primary = primary if primary is not None else r2_uploader
        self.secondary = secondary if secondary is not None else gcs_uploader

    def resolve_chain(self) -> list[StorageTarget]:
        if not self.context.ephemeral:
            return [StorageTarget.LOCAL]
        return [
            StorageTarget.CLOUD_PRIMARY,
            StorageTarget.CLOUD_SECONDARY,
            StorageTarget.PLACEHOLDER,
        ]

    def provider_for(self, target: StorageTarget) -> StorageProvider | None:
        return {
            StorageTarget.LOCAL: self.local,
            StorageTarget.CLOUD_PRIMARY: self.primary,
            StorageTarget.CLOUD_SECONDARY: self.secondary,
        }.get(target)

    async def persist(self, variant: Variant, upload_type: str) -> PersistedReference:
        """Persist one variant, walking the chain until a provider succeeds.

        Raises:
            StorageError: Chain exhausted (always for local, strict mode
                for cloud).
        """
        filename = unique_filename(variant.filename, default_ext=variant.format)
        content_type = mime_type_for(variant.format)
        errors = []

        for target in self.resolve_chain():
            if target == StorageTarget.PLACEHOLDER:
                if self.context.strict_mode:
                    break
                logger.warning(
                    f"Using placeholder for {filename}",
                    extra={"context": {"filename": filename, "errors": errors}},
                )
                return PersistedReference(
                    filename=filename,
                    location=self.context.placeholder_path,
                    target=target,
                )

            provider = self.provider_for(target)
            if provider is None or not provider.is_configured():
                errors.append(f"{target.value}: not configured")
                continue

            try:
                location = await provider.save(variant.data, filename, upload_type, content_type)
            except StorageProviderError as e:
                logger.warning(
                    f"Storage provider {provider.name} failed: {e.message}",
                    extra={"context": {"filename": filename, "provider": provider.name}},
                )
                errors.append(f"{target.value}: {e.message}")
                continue

            logger.info(
                f"Saved {filename} ({round(variant.byte_size / 1024)}KB, "
                f"{variant.width}x{variant.height}) via {provider.name}",
            )
            return PersistedReference(filename=filename, location=location, target=target)

        raise StorageError(
            f"Failed to store {variant.filename}: " + "; ".join(errors),
            filename=variant.filename,
        )

    async def persist_many(
        self,
        variants: Sequence[Variant],
        upload_type: str,
        limit: int,
    ) -> list[PersistedReference]:
        """Persist variants with at most `limit` writes in flight, in order."""

        async def _one(variant: Variant) -> PersistedReference:
            return await self.persist(variant, upload_type)

        return await gather_bounded(variants, _one, limit)

    def status(self) -> dict:
        return {
            "mode": self.context.mode,
            "strictMode": self.context.strict_mode,
            "chain": [t.value for t in self.resolve_chain()],
            "providers": {
                p.name: p.status()
                for p in (self.local, self.primary, self.secondary)
            },
        }
