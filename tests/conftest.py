"""
Test fixtures for the image_uploader test suite.

Images are generated in memory with Pillow so every test controls the exact
format and dimensions of its uploads.
"""

import io
import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from image_uploader.config import UploadOptions
from image_uploader.core.models import UploadFile


def make_image_bytes(size=(64, 48), fmt="PNG", color="red", mode="RGB") -> bytes:
    """Encode a solid-color image and return its bytes."""
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def dest_dir(temp_dir):
    """Existing, empty destination directory."""
    path = temp_dir / "uploads"
    path.mkdir()
    return path


def _list_dir(path: Path):
    if not path.exists():
        return []
    return sorted(entry.name for entry in path.iterdir())


@pytest.fixture
def list_dir():
    """Sorted entry names of a directory (empty when it does not exist)."""
    return _list_dir


# ============================================================================
# Upload Fixtures
# ============================================================================

@pytest.fixture
def image_factory():
    """Build ``UploadFile`` objects backed by in-memory images."""

    def _factory(size=(64, 48), fmt="PNG", filename="photo.png", color="red", mode="RGB"):
        data = make_image_bytes(size=size, fmt=fmt, color=color, mode=mode)
        return UploadFile(io.BytesIO(data), filename)

    return _factory


@pytest.fixture
def garbage_upload():
    """Upload whose bytes are not an image."""
    return UploadFile(io.BytesIO(b"definitely not an image"), "broken.png")


@pytest.fixture
def base_options(dest_dir):
    """Default options writing into ``dest_dir``."""
    return UploadOptions(dest=str(dest_dir))


@pytest.fixture(autouse=True)
def cleanup_environment(monkeypatch):
    """Keep configuration environment variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("IMAGE_UPLOADER_"):
            monkeypatch.delenv(key, raising=False)
    yield
