"""Unit tests for the aiohttp upload route."""

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import FormData, web
from aiohttp.test_utils import TestClient, TestServer
from PIL import Image

from image_uploader.api.routes import UPLOADER_KEY, UploadHandlers, create_app, setup_uploader
from image_uploader.config import Config, ServerConfig
from image_uploader.core.exceptions import (
    CodecError,
    DimensionError,
    FilesystemError,
    FormatError,
    InputError,
    LimitError,
)
from image_uploader.services.uploader import ImageUploader


def image_bytes(size=(64, 48), fmt="PNG"):
    buffer = io.BytesIO()
    Image.new("RGB", size, color="green").save(buffer, format=fmt)
    return buffer.getvalue()


def stored_size(path):
    """Size of a fully written image, or None while it is missing or partial."""
    try:
        with Image.open(path) as img:
            img.load()
            return img.size
    except (OSError, SyntaxError):
        return None


def build_app(options, server_config=None):
    app = web.Application()
    setup_uploader(app, options, server_config)
    return app


async def post_form(app, form, route="/upload"):
    async with TestClient(TestServer(app)) as client:
        resp = await client.post(route, data=form)
        return resp.status, await resp.json()


class TestStatusMapping:
    """Test error to HTTP status mapping."""

    @pytest.mark.parametrize(
        "error, status",
        [
            (InputError("x"), 400),
            (FormatError("x"), 400),
            (DimensionError("x"), 400),
            (LimitError("x"), 413),
            (CodecError("x"), 422),
            (FilesystemError("x"), 500),
        ],
    )
    def test_status_for(self, error, status):
        assert UploadHandlers.status_for(error) == status


class TestSetup:
    """Test route registration."""

    def test_registers_uploader_and_route(self, dest_dir):
        app = web.Application()
        uploader = setup_uploader(app, {"dest": str(dest_dir)})

        assert isinstance(uploader, ImageUploader)
        assert app[UPLOADER_KEY] is uploader
        routes = [(r.method, r.resource.canonical) for r in app.router.routes()]
        assert ("POST", "/upload") in routes

    def test_custom_route(self, dest_dir):
        app = build_app({"dest": str(dest_dir)}, ServerConfig(route="/images"))
        routes = [r.resource.canonical for r in app.router.routes()]
        assert "/images" in routes

    def test_create_app_from_config(self, temp_dir, dest_dir):
        config = Config(str(temp_dir / "missing.json"))
        config.set("upload.dest", str(dest_dir))
        config.set("logging.level", "OFF")

        app = create_app(config)

        assert app[UPLOADER_KEY].options.dest == str(dest_dir)


class TestUploadEndpoint:
    """Test POST /upload."""

    @pytest.mark.asyncio
    async def test_single_file(self, dest_dir, list_dir):
        form = FormData()
        form.add_field("file", image_bytes(), filename="photo.png", content_type="image/png")

        status, body = await post_form(build_app({"dest": str(dest_dir)}), form)

        assert status == 200
        assert body["success"] is True
        assert body["data"]["filename"] == "photo.png"
        assert body["data"]["path"] == str(dest_dir / "photo.png")
        assert list_dir(dest_dir) == ["photo.png"]

    @pytest.mark.asyncio
    async def test_names_field(self, dest_dir):
        form = FormData()
        form.add_field("file", image_bytes(), filename="a.png", content_type="image/png")
        form.add_field("file", image_bytes(), filename="b.png", content_type="image/png")
        form.add_field("names", "first")
        form.add_field("names", "second")

        status, body = await post_form(build_app({"dest": str(dest_dir)}), form)

        assert status == 200
        assert [item["filename"] for item in body["data"]] == ["first.png", "second.png"]

    @pytest.mark.asyncio
    async def test_versions_nested_in_response(self, dest_dir):
        options = {"dest": str(dest_dir), "versions": [{"width": 32}], "addOriginal": True}
        form = FormData()
        form.add_field("file", image_bytes(), filename="photo.png", content_type="image/png")

        status, body = await post_form(build_app(options), form)

        assert status == 200
        assert [item["filename"] for item in body["data"]] == ["photo.png", "photo-32x24.png"]

    @pytest.mark.asyncio
    async def test_missing_file_part(self, dest_dir):
        form = FormData()
        form.add_field("names", "avatar", content_type="text/plain")

        status, body = await post_form(build_app({"dest": str(dest_dir)}), form)

        assert status == 400
        assert body == {"success": False, "error": "File field required"}

    @pytest.mark.asyncio
    async def test_format_rejected(self, dest_dir, list_dir):
        form = FormData()
        form.add_field("file", image_bytes(fmt="GIF"), filename="anim.gif", content_type="image/gif")

        status, body = await post_form(build_app({"dest": str(dest_dir), "formats": ["png"]}), form)

        assert status == 400
        assert body["type"] == "FormatError"
        assert body["details"]["format"] == "gif"
        assert list_dir(dest_dir) == []

    @pytest.mark.asyncio
    async def test_too_many_files(self, dest_dir):
        form = FormData()
        for name in ("a.png", "b.png"):
            form.add_field("file", image_bytes(), filename=name, content_type="image/png")

        status, body = await post_form(build_app({"dest": str(dest_dir), "maxFiles": 1}), form)

        assert status == 413
        assert body["type"] == "LimitError"
        assert body["details"] == {"files": 2, "max_files": 1}

    @pytest.mark.asyncio
    async def test_undecodable_file(self, dest_dir):
        form = FormData()
        form.add_field("file", b"not an image", filename="broken.png", content_type="image/png")

        status, body = await post_form(build_app({"dest": str(dest_dir)}), form)

        assert status == 422
        assert body["success"] is False
        assert body["type"] == "CodecError"

    @pytest.mark.asyncio
    async def test_safe_name_across_requests(self, dest_dir, list_dir):
        app = build_app({"dest": str(dest_dir), "safeName": True})

        async with TestClient(TestServer(app)) as client:
            filenames = []
            for _ in range(2):
                form = FormData()
                form.add_field("file", image_bytes(), filename="photo.png", content_type="image/png")
                resp = await client.post("/upload", data=form)
                filenames.append((await resp.json())["data"]["filename"])

        assert filenames == ["photo.png", "photo-1.png"]
        assert list_dir(dest_dir) == ["photo-1.png", "photo.png"]

    @pytest.mark.asyncio
    async def test_failed_batch_lets_other_files_finish(self, dest_dir, list_dir):
        app = build_app({"dest": str(dest_dir)})
        form = FormData()
        form.add_field("file", image_bytes(size=(400, 300)), filename="good.png", content_type="image/png")
        form.add_field("file", b"not an image", filename="broken.png", content_type="image/png")

        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/upload", data=form)
            assert resp.status == 422

            for _ in range(200):
                if stored_size(dest_dir / "good.png"):
                    break
                await asyncio.sleep(0.01)

        assert stored_size(dest_dir / "good.png") == (400, 300)
        assert list_dir(dest_dir) == ["good.png"]


class TestReadUploads:
    """Test multipart parsing."""

    @pytest.mark.asyncio
    async def test_spools_closed_when_body_breaks(self, dest_dir):
        handlers = UploadHandlers(ImageUploader({"dest": str(dest_dir)}))
        spool = io.BytesIO(image_bytes())

        part = MagicMock()
        part.name = "file"
        part.filename = "a.png"
        reader = MagicMock()
        reader.next = AsyncMock(side_effect=[part, ValueError("truncated body")])
        request = MagicMock()
        request.multipart = AsyncMock(return_value=reader)

        with patch.object(UploadHandlers, "_spool", AsyncMock(return_value=spool)):
            with pytest.raises(ValueError):
                await handlers.read_uploads(request)

        assert spool.closed

    @pytest.mark.asyncio
    async def test_uploads_handed_over_for_closing(self, dest_dir):
        handlers = UploadHandlers(ImageUploader({"dest": str(dest_dir)}))

        part = MagicMock()
        part.name = "file"
        part.filename = "a.png"
        part.read_chunk = AsyncMock(side_effect=[image_bytes(), b""])
        reader = MagicMock()
        reader.next = AsyncMock(side_effect=[part, None])
        request = MagicMock()
        request.multipart = AsyncMock(return_value=reader)

        uploads, names = await handlers.read_uploads(request)

        assert names == []
        assert [u.filename for u in uploads] == ["a.png"]
        assert uploads[0].close_after_use is True
        assert not uploads[0].stream.closed
        uploads[0].release()
        assert uploads[0].stream.closed
