from pydantic import BaseModel, ConfigDict

from config import Settings

DEPLOYMENT_MODES = ("auto", "local", "ephemeral")


class DeploymentContext(BaseModel):
    """Per-request view of where and how variants get persisted.

    Resolved once from Settings at the start of a request and passed down,
    so storage code never reads environment state itself.
    """

    model_config = ConfigDict(frozen=True)

    ephemeral: bool
    strict_mode: bool
    production: bool = False
    upload_dir: str = "public/uploads"
    public_prefix: str = "uploads"
    placeholder_path: str = "/placeholder-image.svg"

    @property
    def mode(self) -> str:
        return "ephemeral" if self.ephemeral else "local"


def is_serverless(settings: Settings) -> bool:
    """True when a serverless platform marker is present.

    Vercel, AWS Lambda, Google Cloud Functions and Cloud Run all give the
    process a filesystem that does not survive the invocation.
    """
    markers = (
        settings.vercel,
        settings.aws_lambda_function_name,
        settings.function_name,
        settings.k_service,
    )
    return any(m.strip() for m in markers)


def resolve_deployment_context(
    settings: Settings,
    *,
    strict_mode: bool | None = None,
) -> DeploymentContext:
    """Build the DeploymentContext for one request.

    Args:
        settings: Process settings.
        strict_mode: Override the configured failure policy (the
            lightweight upload route always runs fail-open).

    Raises:
        ValueError: If deployment_mode is not recognized.
    """
    mode = settings.deployment_mode.lower()
    if mode not in DEPLOYMENT_MODES:
        raise ValueError(
            f"Invalid deployment mode: '{settings.deployment_mode}'. "
            f"Must be one of {DEPLOYMENT_MODES}."
        )

    if mode == "auto":
        ephemeral = is_serverless(settings)
    else:
        ephemeral = mode == "ephemeral"

    return DeploymentContext(
        ephemeral=ephemeral,
        strict_mode=settings.strict_mode if strict_mode is None else strict_mode,
        production=settings.is_production,
        upload_dir=settings.upload_dir,
        public_prefix=settings.upload_public_prefix.strip("/"),
        placeholder_path=settings.placeholder_path,
    )
