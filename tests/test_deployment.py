"""Tests for deployment context resolution."""

import pytest

from config import Settings
from deployment import is_serverless, resolve_deployment_context


def _settings(**overrides) -> Settings:
    base = {
        "deployment_mode": "auto",
        "vercel": "",
        "aws_lambda_function_name": "",
        "function_name": "",
        "k_service": "",
    }
    base.update(overrides)
    return Settings(**base)


def test_no_markers_is_persistent():
    ctx = resolve_deployment_context(_settings())
    assert ctx.ephemeral is False
    assert ctx.mode == "local"


@pytest.mark.parametrize(
    "marker",
    ["vercel", "aws_lambda_function_name", "function_name", "k_service"],
)
def test_serverless_markers(marker):
    s = _settings(**{marker: "1"})
    assert is_serverless(s) is True
    assert resolve_deployment_context(s).ephemeral is True


def test_blank_marker_ignored():
    assert is_serverless(_settings(vercel="  ")) is False


def test_explicit_mode_overrides_markers():
    assert resolve_deployment_context(_settings(deployment_mode="local", vercel="1")).ephemeral is False
    assert resolve_deployment_context(_settings(deployment_mode="EPHEMERAL")).ephemeral is True


def test_invalid_mode():
    with pytest.raises(ValueError, match="Invalid deployment mode"):
        resolve_deployment_context(_settings(deployment_mode="cloud"))


def test_strict_mode_from_settings_and_override():
    s = _settings(strict_mode=True)
    assert resolve_deployment_context(s).strict_mode is True
    assert resolve_deployment_context(s, strict_mode=False).strict_mode is False


def test_context_carries_storage_paths():
    s = _settings(
        upload_dir="/srv/uploads",
        upload_public_prefix="/media/",
        placeholder_path="/missing.svg",
        environment="production",
    )
    ctx = resolve_deployment_context(s)
    assert ctx.upload_dir == "/srv/uploads"
    assert ctx.public_prefix == "media"
    assert ctx.placeholder_path == "/missing.svg"
    assert ctx.production is True
