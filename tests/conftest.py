import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from config import settings
from main import app


def make_image(fmt: str = "PNG", size: tuple[int, int] = (100, 100), mode: str = "RGB") -> bytes:
    """Encode a solid-color image in-memory."""
    img = Image.new(mode, size, color=(100, 150, 200) if mode == "RGB" else None)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def local_uploads(tmp_path, monkeypatch):
    """Point local storage at a temp dir and force persistent mode."""
    upload_dir = tmp_path / "uploads"
    monkeypatch.setattr(settings, "upload_dir", str(upload_dir))
    monkeypatch.setattr(settings, "deployment_mode", "local")
    monkeypatch.setattr(settings, "strict_mode", False)
    return upload_dir


@pytest.fixture
def client():
    """FastAPI test client (does not raise server exceptions)."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def sample_png():
    return make_image("PNG")


@pytest.fixture
def sample_jpeg():
    return make_image("JPEG", (1600, 1200))


@pytest.fixture
def sample_gif():
    return make_image("GIF", (64, 64))


@pytest.fixture
def sample_webp():
    return make_image("WEBP", (64, 64))


@pytest.fixture
def wide_png():
    """2000x1000 PNG: every balanced size spec downscales it."""
    return make_image("PNG", (2000, 1000))


@pytest.fixture
def image_bytes():
    """Factory fixture: image_bytes("JPEG", (w, h)) -> encoded bytes."""
    return make_image
