from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.format_detect import ImageFormat


class RawFile(BaseModel):
    """One uploaded part, buffered in memory."""

    model_config = ConfigDict(frozen=True)

    filename: str
    data: bytes
    declared_size: int = 0

    @property
    def size(self) -> int:
        return len(self.data)


class ValidationOutcome(BaseModel):
    """Result of magic-byte validation (never persisted)."""

    valid: bool
    reason: Optional[str] = None
    format: Optional[ImageFormat] = None


class TargetFormat(str, Enum):
    ORIGINAL = "original"
    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"


class SizeSpec(BaseModel):
    """One output size: scale down to max_width and tag with suffix."""

    model_config = ConfigDict(frozen=True)

    max_width: int = Field(gt=0)
    suffix: str


class OptimizationProfile(BaseModel):
    """Named optimization level resolved to concrete encode parameters."""

    model_config = ConfigDict(frozen=True)

    name: str
    quality: int = Field(ge=0, le=100)
    target_format: TargetFormat = TargetFormat.WEBP
    size_specs: tuple[SizeSpec, ...]


class Variant(BaseModel):
    """One optimized (or pass-through) rendition of a source image."""

    model_config = ConfigDict(frozen=True)

    source_filename: str
    filename: str
    data: bytes
    format: str
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    suffix: str = ""

    @property
    def byte_size(self) -> int:
        return len(self.data)


class FileOptimization(BaseModel):
    """Per-file optimizer output, aligned to the input batch order."""

    source_filename: str
    original_size: int
    variants: list[Variant] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StorageTarget(str, Enum):
    LOCAL = "local"
    CLOUD_PRIMARY = "cloud_primary"
    CLOUD_SECONDARY = "cloud_secondary"
    PLACEHOLDER = "placeholder"


class PersistedReference(BaseModel):
    """Where a variant ended up."""

    filename: str
    location: str
    target: StorageTarget


class FileFailure(BaseModel):
    filename: str
    message: str


class UploadStats(BaseModel):
    original_bytes: int
    optimized_bytes: int
    elapsed_ms: int
    file_count: int
    variant_count: int
    compression_ratio: int


class UploadOutcome(BaseModel):
    """Terminal batch result handed back to the HTTP layer."""

    references: list[str]
    stats: UploadStats
    failures: list[FileFailure] = Field(default_factory=list)


class UploadStatsResponse(BaseModel):
    """Stats block of the upload response (sizes in KB)."""

    originalFiles: int
    optimizedVariants: int
    processingTime: int
    originalSize: int
    optimizedSize: int
    compressionRatio: str
    avgTimePerImage: int


class UploadResponse(BaseModel):
    """Successful upload response."""

    success: bool = True
    images: list[str]
    message: str
    stats: UploadStatsResponse
    failures: Optional[list[FileFailure]] = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    error: str
    message: str
    processingTime: int
    details: Optional[str] = None


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    strategy: str
    capabilities: dict
    deployment: str
    version: str
