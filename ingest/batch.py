import time
from collections.abc import Iterable, Sequence

from exceptions import BatchSizeError, OptimizationError, ProcessingTimeoutError
from ingest.results import aggregate, elapsed_ms
from optimizers.base import OptimizationStrategy
from schemas import (
    FileFailure,
    FileOptimization,
    OptimizationProfile,
    RawFile,
    UploadOutcome,
    ValidationOutcome,
    Variant,
)
from security.file_validation import validate_file
from storage.router import StorageRouter
from utils.concurrency import gather_bounded
from utils.logging import get_logger

logger = get_logger("ingest.batch")


class BatchProcessor:
    """Runs one upload batch: validate -> optimize -> persist -> aggregate.

    Validation failures abort the batch before any optimization. A file
    that fails to optimize is reported in `failures` while its siblings
    continue. Storage exhaustion follows the router's policy.
    """

    def __init__(
        self,
        strategy: OptimizationStrategy,
        router: StorageRouter,
        *,
        max_files: int = 10,
        max_file_size: int | None = None,
        concurrency_limit: int = 4,
        allowed_extensions: Iterable[str] | None = None,
    ):
        self.strategy = strategy
        self.router = router
        self.max_files = max_files
        self.max_file_size = max_file_size
        self.concurrency_limit = concurrency_limit
        self.allowed_extensions = (
            frozenset(allowed_extensions) if allowed_extensions is not None else None
        )

    def check_batch(self, files: Sequence[RawFile]) -> None:
        """Reject empty or oversized batches.

        Raises:
            BatchSizeError: No files, or more than max_files.
        """
        if not files:
            raise BatchSizeError("No files uploaded")
        if len(files) > self.max_files:
            raise BatchSizeError(
                f"Too many files. Maximum {self.max_files} files allowed",
                file_count=len(files),
                limit=self.max_files,
            )

    async def validate_batch(self, files: Sequence[RawFile]) -> list[ValidationOutcome]:
        """Validate every file concurrently.

        Raises:
            ValidationError: For the first invalid file (in input order).
        """

        async def _one(raw: RawFile) -> ValidationOutcome:
            return validate_file(
                raw,
                max_size=self.max_file_size,
                allowed_extensions=self.allowed_extensions,
            )

        return await gather_bounded(files, _one, self.concurrency_limit)

    async def process(
        self,
        files: Sequence[RawFile],
        profile: OptimizationProfile,
        upload_type: str,
        *,
        started_at: float | None = None,
        deadline: float | None = None,
    ) -> UploadOutcome:
        """Process a batch end to end.

        Args:
            files: Buffered uploads, in request order.
            profile: Resolved optimization profile.
            upload_type: Storage category for every variant.
            started_at: time.monotonic() when the request began.
            deadline: time.monotonic() value after which the batch is
                abandoned between stages. None disables the check.

        Raises:
            BatchSizeError, ValidationError: Before any optimization.
            OptimizationError: Every file failed to optimize.
            StorageError: Storage chain exhausted in strict mode.
            ProcessingTimeoutError: Deadline passed between stages.
        """
        started_at = time.monotonic() if started_at is None else started_at

        self.check_batch(files)
        await self.validate_batch(files)
        logger.info(
            f"Validated {len(files)} files in {elapsed_ms(started_at)}ms",
            extra={"context": {"upload_type": upload_type, "profile": profile.name}},
        )
        self._check_deadline(deadline, "validation")

        optimized = await self.strategy.optimize_batch(files, profile, self.concurrency_limit)
        succeeded = [f for f in optimized if f.ok]
        failures = [
            FileFailure(filename=f.source_filename, message=f.error or "")
            for f in optimized
            if not f.ok
        ]
        if not succeeded:
            raise OptimizationError(
                "No images could be optimized",
                failures=[f.model_dump() for f in failures],
            )
        logger.info(
            f"Optimized {len(succeeded)}/{len(files)} files with {self.strategy.name} "
            f"in {elapsed_ms(started_at)}ms",
        )
        self._check_deadline(deadline, "optimization")

        per_file_references = await self._persist(succeeded, upload_type)
        logger.info(f"Saved all variants in {elapsed_ms(started_at)}ms")

        return aggregate(
            per_file_references,
            original_sizes=[f.original_size for f in succeeded],
            optimized_sizes=[v.byte_size for f in succeeded for v in f.variants],
            started_at=started_at,
            failures=failures,
        )

    async def _persist(
        self,
        optimized: Sequence[FileOptimization],
        upload_type: str,
    ) -> list[list[str]]:
        """Persist every variant of every file, regrouped per file by index."""
        flat: list[Variant] = [v for f in optimized for v in f.variants]
        references = await self.router.persist_many(flat, upload_type, self.concurrency_limit)

        grouped, offset = [], 0
        for f in optimized:
            count = len(f.variants)
            grouped.append([r.location for r in references[offset : offset + count]])
            offset += count
        return grouped

    @staticmethod
    def _check_deadline(deadline: float | None, stage: str) -> None:
        if deadline is not None and time.monotonic() > deadline:
            raise ProcessingTimeoutError(
                f"Processing time budget exceeded after {stage}",
                stage=stage,
            )
