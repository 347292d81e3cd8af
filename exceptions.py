class StrataError(Exception):
    """Base exception for all Strata errors."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, **kwargs):
        self.message = message
        self.details = kwargs
        super().__init__(message)


class BadRequestError(StrataError):
    """Malformed request: missing form fields, unreadable parts."""

    status_code = 400
    error_code = "bad_request"


class BatchSizeError(BadRequestError):
    """Batch has no files or more files than allowed."""

    error_code = "batch_size"


class PayloadTooLargeError(BatchSizeError):
    """Request body exceeds the aggregate size limit."""

    status_code = 413
    error_code = "payload_too_large"


class ValidationError(StrataError):
    """A file failed validation (format, size or extension)."""

    status_code = 400
    error_code = "invalid_image"


class UnsupportedFormatError(ValidationError):
    """File format not recognized via magic bytes."""

    error_code = "unsupported_format"


class OptimizationError(StrataError):
    """Decode or encode failed for a file."""

    status_code = 422
    error_code = "optimization_failed"


class StorageProviderError(StrataError):
    """A single storage provider could not persist a variant."""

    status_code = 502
    error_code = "storage_provider_failed"

    def __init__(self, message: str, provider: str = "", **kwargs):
        self.provider = provider
        super().__init__(message, provider=provider, **kwargs)


class StorageError(StrataError):
    """Every provider in the storage chain failed."""

    status_code = 500
    error_code = "storage_failed"


class AggregateUploadError(StrataError):
    """Unexpected failure anywhere in the upload pipeline."""

    status_code = 500
    error_code = "upload_failed"


class ProcessingTimeoutError(StrataError):
    """Batch exceeded its wall-clock budget."""

    status_code = 504
    error_code = "processing_timeout"


class BackpressureError(StrataError):
    """Optimization queue is full."""

    status_code = 503
    error_code = "service_overloaded"
