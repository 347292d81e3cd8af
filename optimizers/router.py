from config import settings
from optimizers.base import OptimizationStrategy
from optimizers.passthrough import PassthroughStrategy
from utils.logging import get_logger

logger = get_logger("optimizers.router")

BACKENDS = ("auto", "pillow", "passthrough")

# Selected once per process by get_strategy()
_strategy: OptimizationStrategy | None = None


def probe_capabilities() -> dict[str, bool]:
    """Check which image codecs this process can use."""
    results = {"pillow": False, "webp": False}
    try:
        from PIL import features

        results["pillow"] = True
        results["webp"] = bool(features.check("webp"))
    except ImportError:
        pass
    return results


def select_strategy(backend: str = "auto") -> OptimizationStrategy:
    """Pick the optimization strategy for this process.

    Args:
        backend: "auto" (Pillow when usable, else pass-through),
            "pillow" (required, raises if missing) or "passthrough".

    Raises:
        ValueError: Unknown backend, or "pillow" requested but unavailable.
    """
    backend = backend.lower()
    if backend not in BACKENDS:
        raise ValueError(f"Invalid optimizer backend: '{backend}'. Must be one of {BACKENDS}.")

    if backend == "passthrough":
        return PassthroughStrategy()

    caps = probe_capabilities()
    usable = caps["pillow"] and caps["webp"]

    if usable:
        from optimizers.pillow import PillowStrategy

        return PillowStrategy()

    if backend == "pillow":
        raise ValueError(f"Pillow optimizer requested but unavailable: {caps}")

    logger.warning(
        "Pillow with WebP support not available, storing originals unchanged",
        extra={"context": {"capabilities": caps}},
    )
    return PassthroughStrategy()


def get_strategy() -> OptimizationStrategy:
    """Return the process-wide strategy, probing on first use."""
    global _strategy
    if _strategy is None:
        _strategy = select_strategy(settings.optimizer_backend)
        logger.info(
            f"Optimization strategy: {_strategy.name}",
            extra={"context": {"strategy": _strategy.name}},
        )
    return _strategy
