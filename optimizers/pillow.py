import asyncio
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from exceptions import OptimizationError
from optimizers.base import OptimizationStrategy
from schemas import OptimizationProfile, RawFile, SizeSpec, TargetFormat, Variant
from utils.format_detect import EXTENSIONS, ImageFormat

# Pillow format strings for each output format
_PILLOW_FORMATS = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
    ImageFormat.GIF: "GIF",
    ImageFormat.WEBP: "WEBP",
}

# Pillow's img.format for decodable sources; MPO is multi-picture JPEG from cameras
_SOURCE_FORMATS = {
    "JPEG": ImageFormat.JPEG,
    "MPO": ImageFormat.JPEG,
    "PNG": ImageFormat.PNG,
    "GIF": ImageFormat.GIF,
    "WEBP": ImageFormat.WEBP,
}

_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


class PillowStrategy(OptimizationStrategy):
    """Resize + re-encode via Pillow, one variant per size spec.

    Pipeline per file (in a worker thread):
    1. Decode and apply EXIF orientation
    2. For each size spec: downscale to max_width (aspect preserved,
       never upscaled) and encode at the profile quality
    3. Name each output <stem><suffix>.<ext>

    Metadata is not carried over; Pillow only writes EXIF when asked.
    """

    name = "pillow"

    async def optimize_file(self, raw: RawFile, profile: OptimizationProfile) -> list[Variant]:
        return await asyncio.to_thread(self._render_variants, raw, profile)

    def _render_variants(self, raw: RawFile, profile: OptimizationProfile) -> list[Variant]:
        try:
            img = Image.open(io.BytesIO(raw.data))
            img.load()
            pillow_format = img.format or ""
            source_format = _SOURCE_FORMATS.get(pillow_format)
            img = _normalize_mode(ImageOps.exif_transpose(img))
        except _DECODE_ERRORS as e:
            raise OptimizationError(
                f"Could not decode {raw.filename}: {e}",
                filename=raw.filename,
            )
        if source_format is None:
            raise OptimizationError(
                f"Unsupported source format for {raw.filename}: {pillow_format}",
                filename=raw.filename,
            )

        output_format = _output_format(profile.target_format, source_format)
        stem = _stem(raw.filename)

        variants = []
        for spec in profile.size_specs:
            resized = fit_width(img, spec)
            try:
                data = _encode(resized, output_format, profile.quality)
            except (OSError, ValueError) as e:
                raise OptimizationError(
                    f"Could not encode {raw.filename} as {output_format.value}: {e}",
                    filename=raw.filename,
                    suffix=spec.suffix,
                )
            variants.append(
                Variant(
                    source_filename=raw.filename,
                    filename=f"{stem}{spec.suffix}.{EXTENSIONS[output_format]}",
                    data=data,
                    format=output_format.value,
                    width=resized.width,
                    height=resized.height,
                    suffix=spec.suffix,
                )
            )
        return variants


def fit_width(img: Image.Image, spec: SizeSpec) -> Image.Image:
    """Scale down to spec.max_width keeping aspect ratio. Never upscales."""
    if img.width <= spec.max_width:
        return img
    height = max(1, round(img.height * spec.max_width / img.width))
    return img.resize((spec.max_width, height), Image.Resampling.LANCZOS)


def _normalize_mode(img: Image.Image) -> Image.Image:
    """Convert palette/odd modes so resampling and WebP/JPEG encode work."""
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


def _output_format(target: TargetFormat, source: ImageFormat) -> ImageFormat:
    if target == TargetFormat.ORIGINAL:
        return source
    return ImageFormat(target.value)


def _encode(img: Image.Image, fmt: ImageFormat, quality: int) -> bytes:
    output = io.BytesIO()
    save_kwargs = {"format": _PILLOW_FORMATS[fmt]}

    if fmt == ImageFormat.WEBP:
        save_kwargs["quality"] = quality
        save_kwargs["method"] = 4  # Good compression, 2-3x faster than method=6
    elif fmt == ImageFormat.JPEG:
        if img.mode != "RGB":
            img = img.convert("RGB")
        save_kwargs["quality"] = quality
        save_kwargs["optimize"] = True
    else:
        save_kwargs["optimize"] = True

    img.save(output, **save_kwargs)
    return output.getvalue()


def _stem(filename: str) -> str:
    name = filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    stem = name.rsplit(".", 1)[0] if "." in name else name
    return stem or "image"
