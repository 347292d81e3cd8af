from abc import ABC, abstractmethod
from collections.abc import Sequence

from exceptions import OptimizationError
from schemas import FileOptimization, OptimizationProfile, RawFile, Variant
from utils.concurrency import gather_bounded
from utils.logging import get_logger

logger = get_logger("optimizers")


class OptimizationStrategy(ABC):
    """Turns validated source files into stored-ready variants.

    Implementations only provide optimize_file; batching, the concurrency
    bound and per-file error isolation live here.
    """

    name: str

    @abstractmethod
    async def optimize_file(
        self,
        raw: RawFile,
        profile: OptimizationProfile,
    ) -> list[Variant]:
        """Produce the variants for one source file.

        Args:
            raw: Validated source file.
            profile: Resolved optimization profile.

        Returns:
            Variants in profile size_specs order.

        Raises:
            OptimizationError: If the file cannot be decoded or encoded.
        """

    async def optimize_batch(
        self,
        files: Sequence[RawFile],
        profile: OptimizationProfile,
        concurrency_limit: int,
    ) -> list[FileOptimization]:
        """Optimize every file with at most concurrency_limit in flight.

        The result list is aligned to `files`. A failing file gets an
        entry with `error` set instead of aborting its siblings.
        """

        async def _one(raw: RawFile) -> FileOptimization:
            try:
                variants = await self.optimize_file(raw, profile)
            except OptimizationError as e:
                logger.warning(
                    f"Optimization failed for {raw.filename}: {e.message}",
                    extra={"context": {"filename": raw.filename, "strategy": self.name}},
                )
                return FileOptimization(
                    source_filename=raw.filename,
                    original_size=raw.size,
                    error=e.message,
                )
            return FileOptimization(
                source_filename=raw.filename,
                original_size=raw.size,
                variants=variants,
            )

        return await gather_bounded(files, _one, concurrency_limit)
