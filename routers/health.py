from fastapi import APIRouter

from config import settings
from deployment import resolve_deployment_context
from optimizers.router import get_strategy, probe_capabilities
from schemas import HealthResponse

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health():
    strategy = get_strategy()
    context = resolve_deployment_context(settings)
    return HealthResponse(
        status="ok" if strategy.name == "pillow" else "degraded",
        strategy=strategy.name,
        capabilities=probe_capabilities(),
        deployment=context.mode,
        version=VERSION,
    )
