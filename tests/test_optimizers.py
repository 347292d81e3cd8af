"""Tests for the Pillow and pass-through optimization strategies."""

import asyncio
import io

import pytest
from PIL import Image

from exceptions import OptimizationError
from optimizers.base import OptimizationStrategy
from optimizers.passthrough import NOMINAL_HEIGHT, NOMINAL_WIDTH, PassthroughStrategy
from optimizers.pillow import PillowStrategy, fit_width
from optimizers.profiles import get_profile
from schemas import OptimizationProfile, RawFile, SizeSpec, TargetFormat, Variant


def _raw(data: bytes, name: str = "photo.png") -> RawFile:
    return RawFile(filename=name, data=data, declared_size=len(data))


# --- PillowStrategy ---


@pytest.mark.asyncio
async def test_pillow_balanced_three_webp_variants(wide_png):
    variants = await PillowStrategy().optimize_file(_raw(wide_png), get_profile("balanced"))

    assert [v.suffix for v in variants] == ["_thumb", "_medium", "_large"]
    assert [v.width for v in variants] == [400, 800, 1200]
    assert [v.height for v in variants] == [200, 400, 600]
    for v in variants:
        assert v.format == "webp"
        assert v.filename == f"photo{v.suffix}.webp"
        assert v.byte_size == len(v.data)
        assert Image.open(io.BytesIO(v.data)).format == "WEBP"


@pytest.mark.asyncio
async def test_pillow_never_upscales(sample_png):
    """100x100 source stays 100x100 for every size spec."""
    variants = await PillowStrategy().optimize_file(_raw(sample_png), get_profile("balanced"))
    assert len(variants) == 3
    assert all((v.width, v.height) == (100, 100) for v in variants)
    assert len({v.filename for v in variants}) == 3


@pytest.mark.asyncio
async def test_pillow_original_target_keeps_format(sample_jpeg):
    profile = OptimizationProfile(
        name="custom",
        quality=70,
        target_format=TargetFormat.ORIGINAL,
        size_specs=(SizeSpec(max_width=640, suffix="_sm"),),
    )
    variants = await PillowStrategy().optimize_file(_raw(sample_jpeg, "cam.jpeg"), profile)
    assert len(variants) == 1
    assert variants[0].format == "jpeg"
    assert variants[0].filename == "cam_sm.jpg"
    assert (variants[0].width, variants[0].height) == (640, 480)


@pytest.mark.asyncio
async def test_pillow_jpeg_target_flattens_alpha(image_bytes):
    data = image_bytes("PNG", (50, 50), mode="RGBA")
    profile = OptimizationProfile(
        name="jpeg",
        quality=80,
        target_format=TargetFormat.JPEG,
        size_specs=(SizeSpec(max_width=50, suffix=""),),
    )
    variants = await PillowStrategy().optimize_file(_raw(data), profile)
    assert Image.open(io.BytesIO(variants[0].data)).mode == "RGB"


@pytest.mark.asyncio
async def test_pillow_palette_gif_to_webp(sample_gif):
    variants = await PillowStrategy().optimize_file(_raw(sample_gif, "anim.gif"), get_profile("fast"))
    assert len(variants) == 1
    assert variants[0].filename == "anim_optimized.webp"


@pytest.mark.asyncio
async def test_pillow_idempotent_dimensions(sample_jpeg):
    """Same input + profile -> same width, height and format."""
    strategy = PillowStrategy()
    profile = get_profile("quality")
    first = await strategy.optimize_file(_raw(sample_jpeg), profile)
    second = await strategy.optimize_file(_raw(sample_jpeg), profile)
    assert [(v.width, v.height, v.format) for v in first] == [
        (v.width, v.height, v.format) for v in second
    ]


@pytest.mark.asyncio
async def test_pillow_corrupt_file_raises():
    corrupt = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
    with pytest.raises(OptimizationError, match="Could not decode broken.png"):
        await PillowStrategy().optimize_file(_raw(corrupt, "broken.png"), get_profile("fast"))


def test_fit_width_rounds_height():
    img = Image.new("RGB", (1000, 333))
    resized = fit_width(img, SizeSpec(max_width=400, suffix=""))
    assert resized.size == (400, 133)


def test_fit_width_keeps_minimum_height():
    img = Image.new("RGB", (5000, 1))
    assert fit_width(img, SizeSpec(max_width=10, suffix="")).size == (10, 1)


# --- optimize_batch ---


@pytest.mark.asyncio
async def test_batch_isolates_failures(sample_png):
    """A corrupt file is reported, its siblings still optimize."""
    corrupt = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
    files = [_raw(sample_png, "a.png"), _raw(corrupt, "b.png"), _raw(sample_png, "c.png")]

    results = await PillowStrategy().optimize_batch(files, get_profile("fast"), 2)

    assert [r.source_filename for r in results] == ["a.png", "b.png", "c.png"]
    assert results[0].ok and results[2].ok
    assert not results[1].ok
    assert results[1].variants == []
    assert "Could not decode" in results[1].error


class _InstrumentedStrategy(OptimizationStrategy):
    """Sleeps inside optimize_file and records peak concurrency."""

    name = "instrumented"

    def __init__(self, delays):
        self.delays = delays
        self.in_flight = 0
        self.peak = 0

    async def optimize_file(self, raw, profile):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays[raw.filename])
        finally:
            self.in_flight -= 1
        return [
            Variant(
                source_filename=raw.filename,
                filename=raw.filename,
                data=raw.data,
                format="png",
                width=1,
                height=1,
            )
        ]


@pytest.mark.asyncio
async def test_batch_concurrency_bound():
    """Bound of 2 over 5 files never has more than 2 in flight."""
    delays = {f"f{i}.png": 0.01 * (5 - i) for i in range(5)}
    strategy = _InstrumentedStrategy(delays)
    files = [_raw(b"x", name) for name in delays]

    results = await strategy.optimize_batch(files, get_profile("fast"), 2)

    assert strategy.peak == 2
    # Slowest first, so completion order differs from input order
    assert [r.source_filename for r in results] == list(delays)


# --- PassthroughStrategy ---


@pytest.mark.asyncio
async def test_passthrough_returns_original_bytes(sample_png):
    variants = await PassthroughStrategy().optimize_file(_raw(sample_png, "shoe.PNG"), get_profile("quality"))
    assert len(variants) == 1
    v = variants[0]
    assert v.data == sample_png
    assert v.format == "png"
    assert (v.width, v.height) == (NOMINAL_WIDTH, NOMINAL_HEIGHT)
    assert v.filename == "shoe.PNG"
    assert v.suffix == ""


@pytest.mark.asyncio
async def test_passthrough_defaults_to_jpg_without_extension():
    variants = await PassthroughStrategy().optimize_file(_raw(b"\xff\xd8\xff", "upload"), get_profile("fast"))
    assert variants[0].format == "jpg"


@pytest.mark.asyncio
async def test_passthrough_replaces_non_image_extension(sample_png):
    variants = await PassthroughStrategy().optimize_file(_raw(sample_png, "x.html"), get_profile("fast"))
    assert variants[0].filename == "x.png"
    assert variants[0].format == "png"
    assert variants[0].source_filename == "x.html"


@pytest.mark.asyncio
async def test_passthrough_names_extensionless_upload(sample_gif):
    variants = await PassthroughStrategy().optimize_file(_raw(sample_gif, "upload"), get_profile("fast"))
    assert variants[0].filename == "upload.gif"


@pytest.mark.asyncio
async def test_passthrough_batch_one_variant_per_file(sample_png, sample_gif):
    files = [_raw(sample_png, "a.png"), _raw(sample_gif, "b.gif")]
    results = await PassthroughStrategy().optimize_batch(files, get_profile("balanced"), 4)
    assert [len(r.variants) for r in results] == [1, 1]
