"""Optimization level -> OptimizationProfile mapping."""

from schemas import OptimizationProfile, SizeSpec, TargetFormat
from utils.logging import get_logger

logger = get_logger("profiles")

DEFAULT_LEVEL = "balanced"

PROFILES = {
    # Single size for speed
    "fast": OptimizationProfile(
        name="fast",
        quality=75,
        target_format=TargetFormat.WEBP,
        size_specs=(SizeSpec(max_width=800, suffix="_optimized"),),
    ),
    "balanced": OptimizationProfile(
        name="balanced",
        quality=85,
        target_format=TargetFormat.WEBP,
        size_specs=(
            SizeSpec(max_width=400, suffix="_thumb"),
            SizeSpec(max_width=800, suffix="_medium"),
            SizeSpec(max_width=1200, suffix="_large"),
        ),
    ),
    "quality": OptimizationProfile(
        name="quality",
        quality=95,
        target_format=TargetFormat.WEBP,
        size_specs=(
            SizeSpec(max_width=400, suffix="_thumb"),
            SizeSpec(max_width=800, suffix="_medium"),
            SizeSpec(max_width=1200, suffix="_large"),
            SizeSpec(max_width=1920, suffix="_xl"),
        ),
    ),
}


def get_profile(level: str | None) -> OptimizationProfile:
    """Resolve an optimization level name to its profile.

    Args:
        level: "fast", "balanced" or "quality" (case-insensitive).

    Returns:
        The matching profile. Unknown or empty levels get "balanced".
    """
    key = (level or DEFAULT_LEVEL).strip().lower()
    if key not in PROFILES:
        logger.warning(
            f"Unknown optimization level '{level}', using '{DEFAULT_LEVEL}'",
            extra={"context": {"level": level}},
        )
        key = DEFAULT_LEVEL
    return PROFILES[key]
