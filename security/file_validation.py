from collections.abc import Iterable

from exceptions import UnsupportedFormatError, ValidationError
from schemas import RawFile, ValidationOutcome
from utils.format_detect import detect_format, extension_of


def validate(
    data: bytes,
    filename: str | None = None,
    *,
    max_size: int | None = None,
    allowed_extensions: Iterable[str] | None = None,
) -> ValidationOutcome:
    """Classify a buffer as a supported image without decoding it.

    Args:
        data: Raw file bytes.
        filename: Original filename, only consulted for the extension check.
        max_size: Per-file byte limit. None disables the check.
        allowed_extensions: Extension allow-list for the strict variant.
            None disables the check.

    Returns:
        ValidationOutcome with valid=False and a reason on rejection.
    """
    if max_size is not None and len(data) > max_size:
        return ValidationOutcome(
            valid=False,
            reason=(
                f"File too large ({round(len(data) / 1024 / 1024)}MB > "
                f"{round(max_size / 1024 / 1024)}MB)"
            ),
        )

    if allowed_extensions is not None:
        if extension_of(filename) not in set(allowed_extensions):
            return ValidationOutcome(valid=False, reason="Invalid file type")

    try:
        fmt = detect_format(data)
    except UnsupportedFormatError as e:
        return ValidationOutcome(valid=False, reason=e.message)

    return ValidationOutcome(valid=True, format=fmt)


def validate_file(
    raw: RawFile,
    *,
    max_size: int | None = None,
    allowed_extensions: Iterable[str] | None = None,
) -> ValidationOutcome:
    """Validate an uploaded file, raising on rejection.

    The declared size (from the multipart part) is checked as well as the
    actual byte count, whichever is larger.

    Raises:
        ValidationError: If the file is not an acceptable image.
    """
    if max_size is not None and raw.declared_size > max_size >= len(raw.data):
        outcome = ValidationOutcome(
            valid=False,
            reason=(
                f"File too large ({round(raw.declared_size / 1024 / 1024)}MB > "
                f"{round(max_size / 1024 / 1024)}MB)"
            ),
        )
    else:
        outcome = validate(
            raw.data,
            raw.filename,
            max_size=max_size,
            allowed_extensions=allowed_extensions,
        )

    if not outcome.valid:
        raise ValidationError(
            f"Invalid image {raw.filename}: {outcome.reason}",
            filename=raw.filename,
        )
    return outcome
