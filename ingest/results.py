import math
import time
from collections.abc import Sequence

from schemas import (
    FileFailure,
    UploadOutcome,
    UploadResponse,
    UploadStats,
    UploadStatsResponse,
)


def compression_ratio(original_bytes: int, optimized_bytes: int) -> int:
    """Percent saved, rounded half-up. 0 when there was nothing to compress.

    Negative when the variants together outweigh the originals (several
    sizes of a small image).
    """
    if original_bytes <= 0:
        return 0
    return math.floor((1 - optimized_bytes / original_bytes) * 100 + 0.5)


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a time.monotonic() reading."""
    return int((time.monotonic() - started_at) * 1000)


def aggregate(
    per_file_references: Sequence[Sequence[str]],
    original_sizes: Sequence[int],
    optimized_sizes: Sequence[int],
    started_at: float,
    failures: Sequence[FileFailure] = (),
) -> UploadOutcome:
    """Collect persisted references and compute batch statistics.

    Args:
        per_file_references: One list of locations per file, in input order,
            each in size-spec order.
        original_sizes: Source byte counts of the files that produced variants.
        optimized_sizes: Byte counts of every persisted variant.
        started_at: time.monotonic() at batch start.
        failures: Files that produced no variants.
    """
    references = [ref for refs in per_file_references for ref in refs]
    original_bytes = sum(original_sizes)
    optimized_bytes = sum(optimized_sizes)

    stats = UploadStats(
        original_bytes=original_bytes,
        optimized_bytes=optimized_bytes,
        elapsed_ms=elapsed_ms(started_at),
        file_count=len(per_file_references) + len(failures),
        variant_count=len(references),
        compression_ratio=compression_ratio(original_bytes, optimized_bytes),
    )
    return UploadOutcome(references=references, stats=stats, failures=list(failures))


def build_upload_response(outcome: UploadOutcome) -> UploadResponse:
    """Render an UploadOutcome as the HTTP success body (sizes in KB)."""
    stats = outcome.stats
    file_count = max(stats.file_count, 1)
    uploaded = stats.file_count - len(outcome.failures)
    message = (
        f"Successfully uploaded {uploaded} files "
        f"({stats.variant_count} variants) in {stats.elapsed_ms}ms"
    )
    if outcome.failures:
        message += f", {len(outcome.failures)} failed"

    return UploadResponse(
        images=outcome.references,
        message=message,
        stats=UploadStatsResponse(
            originalFiles=stats.file_count,
            optimizedVariants=stats.variant_count,
            processingTime=stats.elapsed_ms,
            originalSize=round(stats.original_bytes / 1024),
            optimizedSize=round(stats.optimized_bytes / 1024),
            compressionRatio=f"{stats.compression_ratio}%",
            avgTimePerImage=round(stats.elapsed_ms / file_count),
        ),
        failures=outcome.failures or None,
    )
