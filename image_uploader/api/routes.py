"""aiohttp integration for the uploader.

``setup_uploader`` registers an :class:`ImageUploader` on an application and
adds a multipart upload route backed by :class:`UploadHandlers`.
"""

from __future__ import annotations

import json
import tempfile
from functools import partial
from typing import List, Optional, Tuple

from aiohttp import web

from ..config import Config, ServerConfig
from ..core.exceptions import (
    CodecError,
    FilesystemError,
    LimitError,
    UploadError,
)
from ..core.models import UploadFile, release_all, serialize_result
from ..services.batch_dispatcher import OptionsLike
from ..services.uploader import ImageUploader
from ..utils.logging import get_logger, setup_logging

UPLOADER_KEY = web.AppKey("uploader", ImageUploader)

_dumps = partial(json.dumps, default=str)


class UploadHandlers:
    """Handles the multipart upload endpoint."""

    # First match wins, so subclasses come before UploadError
    STATUS_BY_ERROR = (
        (LimitError, 413),
        (CodecError, 422),
        (FilesystemError, 500),
        (UploadError, 400),
    )

    CHUNK_SIZE = 64 * 1024

    def __init__(self, uploader: ImageUploader, server_config: Optional[ServerConfig] = None):
        """Initialize with the uploader requests are delegated to.

        Args:
            uploader: Configured uploader
            server_config: Field names and spooling limits
        """
        self.uploader = uploader
        self.config = server_config or ServerConfig()
        self.logger = get_logger("image_uploader.api.routes")

    @classmethod
    def status_for(cls, error: UploadError) -> int:
        for error_type, status in cls.STATUS_BY_ERROR:
            if isinstance(error, error_type):
                return status
        return 500

    async def _spool(self, part) -> tempfile.SpooledTemporaryFile:
        spool = tempfile.SpooledTemporaryFile(max_size=self.config.spool_max_size)
        try:
            while True:
                chunk = await part.read_chunk(self.CHUNK_SIZE)
                if not chunk:
                    break
                spool.write(chunk)
        except Exception:
            spool.close()
            raise
        spool.seek(0)
        return spool

    async def read_uploads(self, request: web.Request) -> Tuple[List[UploadFile], List[str]]:
        """Collect file parts and requested names from a multipart body.

        Parts carrying a filename (or named like the file field) become
        uploads in body order; ``names`` fields are collected positionally.
        The spools are handed to the pipeline, which closes them; they are
        closed here only if the body cannot be read to the end.
        """
        uploads: List[UploadFile] = []
        names: List[str] = []

        try:
            reader = await request.multipart()
            field = await reader.next()

            while field is not None:
                if field.name == self.config.names_field and not field.filename:
                    names.append(await field.text())
                elif field.filename is not None or field.name == self.config.file_field:
                    spool = await self._spool(field)
                    uploads.append(UploadFile(spool, field.filename, close_after_use=True))
                else:
                    self.logger.debug("[upload] Skipping field '%s'", field.name)
                field = await reader.next()
        except Exception:
            release_all(uploads)
            raise

        return uploads, names

    async def upload(self, request: web.Request) -> web.Response:
        """Upload images from a multipart body.

        POST /upload
        Body: multipart/form-data with one or more file parts and optional
        repeated ``names`` fields
        """
        try:
            uploads, names = await self.read_uploads(request)

            if not uploads:
                self.logger.warning("[upload] No file part found in multipart payload")
                return web.json_response(
                    {"success": False, "error": "File field required"},
                    status=400,
                )

            overrides = {"names": names} if names else {}
            result = await self.uploader.upload(uploads, **overrides)

            self.logger.info("[upload] Stored %d upload(s) from %s", len(uploads), request.remote)
            return web.json_response(
                {"success": True, "data": serialize_result(result)},
                dumps=_dumps,
            )

        except UploadError as e:
            status = self.status_for(e)
            self.logger.warning("[upload] Rejected with %s: %s", type(e).__name__, e.message)
            return web.json_response(
                {
                    "success": False,
                    "error": e.message,
                    "type": type(e).__name__,
                    "details": e.details,
                },
                status=status,
                dumps=_dumps,
            )


def setup_uploader(
    app: web.Application,
    options: Optional[OptionsLike] = None,
    server_config: Optional[ServerConfig] = None,
) -> ImageUploader:
    """Register an uploader on ``app`` and add the upload route.

    The uploader is reachable as ``app[UPLOADER_KEY]`` for handlers that
    want to call it directly.
    """
    uploader = ImageUploader(options)
    handlers = UploadHandlers(uploader, server_config)

    app[UPLOADER_KEY] = uploader
    app.router.add_post(handlers.config.route, handlers.upload)
    return uploader


def create_app(config: Optional[Config] = None) -> web.Application:
    """Build a standalone application from configuration."""
    config = config or Config()
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file or False,
        console=config.logging.console,
    )

    app = web.Application()
    setup_uploader(app, config.upload, config.server)
    return app
