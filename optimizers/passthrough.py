from optimizers.base import OptimizationStrategy
from schemas import OptimizationProfile, RawFile, Variant
from utils.format_detect import extension_of, stored_extension

# No decode happens, so dimensions are nominal
NOMINAL_WIDTH = 800
NOMINAL_HEIGHT = 600


class PassthroughStrategy(OptimizationStrategy):
    """Stores the original bytes as a single variant.

    Used when Pillow (or its WebP encoder) is missing at startup, and by
    the lightweight upload route. The profile is accepted for interface
    compatibility but ignored: no resizing, no re-encoding.

    The stored extension is always an image extension, so a payload
    named "x.html" is written as "x.png".

    Must not import Pillow.
    """

    name = "passthrough"

    async def optimize_file(self, raw: RawFile, profile: OptimizationProfile) -> list[Variant]:
        ext = stored_extension(raw.filename, raw.data)
        filename = raw.filename
        if extension_of(filename) != ext:
            stem = filename.rsplit(".", 1)[0] if "." in filename else filename
            filename = f"{stem or 'image'}.{ext}"

        return [
            Variant(
                source_filename=raw.filename,
                filename=filename,
                data=raw.data,
                format=ext,
                width=NOMINAL_WIDTH,
                height=NOMINAL_HEIGHT,
            )
        ]
