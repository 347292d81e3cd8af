import time
import traceback

from fastapi import APIRouter, File, Form, Request, UploadFile

from config import settings
from deployment import DeploymentContext, resolve_deployment_context
from exceptions import AggregateUploadError, PayloadTooLargeError, StrataError
from ingest.batch import BatchProcessor
from ingest.results import build_upload_response, elapsed_ms
from middleware import error_response, jsonable_details
from optimizers.base import OptimizationStrategy
from optimizers.passthrough import PassthroughStrategy
from optimizers.profiles import get_profile
from optimizers.router import get_strategy
from schemas import RawFile
from storage.router import StorageRouter
from utils.concurrency import compression_gate
from utils.format_detect import ALLOWED_EXTENSIONS
from utils.logging import get_logger

logger = get_logger("routers.upload")

router = APIRouter(prefix="/api/upload")


@router.post("/images")
async def upload_images(
    request: Request,
    images: list[UploadFile] | None = File(None),
    upload_type: str | None = Form(None, alias="type"),
    optimization: str | None = Form(None),
):
    """Upload a batch and store optimized variants of every image.

    Uses the process-wide optimization strategy and the configured
    storage failure policy (STRICT_MODE).
    """
    return await _run_upload(
        request,
        images,
        upload_type,
        optimization,
        strategy=get_strategy(),
        strict_mode=None,
        allowed_extensions=None,
    )


@router.post("/simple")
async def upload_simple(
    request: Request,
    images: list[UploadFile] | None = File(None),
    upload_type: str | None = Form(None, alias="type"),
):
    """Store originals unchanged, with an extension allow-list.

    Never optimizes and never fails a batch over storage: an exhausted
    chain yields the placeholder path.
    """
    return await _run_upload(
        request,
        images,
        upload_type,
        None,
        strategy=PassthroughStrategy(),
        strict_mode=False,
        allowed_extensions=ALLOWED_EXTENSIONS,
    )


@router.get("/images")
async def describe_images_endpoint():
    return _describe(
        "Image upload endpoint is available",
        strategy=get_strategy(),
        context=resolve_deployment_context(settings),
    )


@router.get("/simple")
async def describe_simple_endpoint():
    return _describe(
        "Simple image upload endpoint (no optimization)",
        strategy=PassthroughStrategy(),
        context=resolve_deployment_context(settings, strict_mode=False),
    )


async def _run_upload(
    request: Request,
    images: list[UploadFile] | None,
    upload_type: str | None,
    optimization: str | None,
    *,
    strategy: OptimizationStrategy,
    strict_mode: bool | None,
    allowed_extensions,
):
    started_at = time.monotonic()
    try:
        _check_content_length(request)

        context = resolve_deployment_context(settings, strict_mode=strict_mode)
        upload_type = (upload_type or settings.default_upload_type).strip() or settings.default_upload_type
        profile = get_profile(optimization)
        files = [await _buffer(image) for image in images or []]

        logger.info(
            f"Processing {len(files)} files for {upload_type}",
            extra={
                "context": {
                    "strategy": strategy.name,
                    "profile": profile.name,
                    "deployment": context.mode,
                }
            },
        )

        processor = BatchProcessor(
            strategy,
            StorageRouter(context),
            max_files=settings.max_files,
            max_file_size=settings.max_file_size,
            concurrency_limit=settings.concurrency_limit,
            allowed_extensions=allowed_extensions,
        )
        # Shape errors are cheap; report them before queueing for a slot
        processor.check_batch(files)

        deadline = None
        if settings.request_time_budget_seconds > 0:
            deadline = started_at + settings.request_time_budget_seconds

        async with compression_gate:
            outcome = await processor.process(
                files,
                profile,
                _safe_upload_type(upload_type),
                started_at=started_at,
                deadline=deadline,
            )

    except StrataError as exc:
        logger.warning(
            f"Upload failed after {elapsed_ms(started_at)}ms: {exc.message}",
            extra={"context": {"error": exc.error_code, **jsonable_details(exc.details)}},
        )
        return error_response(exc, started_at)
    except Exception as exc:
        logger.error(f"Upload failed after {elapsed_ms(started_at)}ms", exc_info=True)
        wrapped = AggregateUploadError(str(exc) or "Unknown error occurred")
        return error_response(wrapped, started_at, detail=traceback.format_exc())

    return build_upload_response(outcome).model_dump(exclude_none=True)


async def _buffer(image: UploadFile) -> RawFile:
    data = await image.read()
    return RawFile(
        filename=image.filename or "image",
        data=data,
        declared_size=image.size or len(data),
    )


def _check_content_length(request: Request) -> None:
    """Reject bodies above max_files * max_file_size before parsing them."""
    limit = settings.max_file_size * settings.max_files
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > limit:
        raise PayloadTooLargeError(
            "Request too large",
            maxSize=f"{round(limit / 1024 / 1024)}MB",
        )


def _safe_upload_type(upload_type: str) -> str:
    """Keep the storage category to a single safe path segment."""
    cleaned = "".join(c for c in upload_type if c.isalnum() or c in "-_")
    return cleaned or settings.default_upload_type


def _describe(message: str, *, strategy: OptimizationStrategy, context: DeploymentContext) -> dict:
    storage = StorageRouter(context).status()
    return {
        "message": message,
        "methods": ["POST"],
        "maxFileSize": f"{settings.max_file_size_mb}MB",
        "maxFiles": settings.max_files,
        "strategy": strategy.name,
        "environment": "serverless" if context.ephemeral else "local",
        "storage": storage,
    }
