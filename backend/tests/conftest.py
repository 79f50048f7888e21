"""Shared test fixtures and configuration."""
import base64
import io

import pytest
from PIL import Image


@pytest.fixture(autouse=True)
def set_required_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set required GCP environment variables for all tests."""
    monkeypatch.setenv("GCP_PROJECT_ID", "test-project")
    monkeypatch.setenv("VERTEX_AI_LOCATION", "global")


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (2, 2)) -> bytes:
    """Encode a tiny solid image in the given Pillow format."""
    mode = "RGB" if fmt == "JPEG" else "RGBA" if fmt == "PNG" else "P"
    buf = io.BytesIO()
    Image.new(mode, size).save(buf, format=fmt)
    return buf.getvalue()


def make_data_uri(raw: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def png_data_uri(png_bytes: bytes) -> str:
    return make_data_uri(png_bytes, "image/png")
