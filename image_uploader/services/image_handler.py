"""Single-image upload processing.

Decodes one incoming stream, validates it, and writes every configured
version (plus the original when requested) under a collision-safe name.
"""

import asyncio
import os
from contextlib import AsyncExitStack
from typing import Awaitable, Dict, List, Optional, Tuple

from PIL import Image

from ..config import UploadOptions, VersionSpec
from ..core.exceptions import DimensionError, FormatError, InputError
from ..core.models import HandlerResult, UploadFile, VersionDetails, unwrap_single
from ..core.validators import Validators
from ..utils.image_processing import ImageInfo, ImageProcessor
from ..utils.logging import get_logger
from .naming_service import NamingResolver

logger = get_logger("image_uploader.image_handler")


class ImageHandler:
    """Processes a single input stream end-to-end."""

    def __init__(self, resolver: Optional[NamingResolver] = None):
        """Initialize the handler.

        Args:
            resolver: Shared naming resolver; reservations only protect
                uploads that go through the same instance
        """
        self.resolver = resolver or NamingResolver()
        self.processor = ImageProcessor

    @staticmethod
    def resolve_name(upload: UploadFile, name: Optional[str]) -> str:
        """Explicit ``name`` if given, else the declared filename's stem."""
        base_name = name if name else upload.stem
        if not base_name:
            raise InputError(
                "No name given and the upload has no declared filename",
                {"filename": upload.filename},
            )
        return Validators.validate_name(base_name)

    @staticmethod
    def check_format(info: ImageInfo, options: UploadOptions) -> None:
        if info.format not in options.formats:
            logger.warning(f"Rejected image format '{info.format}' (allowed: {options.formats})")
            raise FormatError(
                "File type is not valid.",
                {"format": info.format, "allowed": list(options.formats)},
            )

    @staticmethod
    def check_dimensions(info: ImageInfo, options: UploadOptions) -> None:
        pixels = info.pixels
        if pixels < options.min_pixels or pixels > options.max_pixels:
            logger.warning(
                f"Rejected image of {info.width}x{info.height} "
                f"({pixels} pixels, allowed {options.min_pixels}-{options.max_pixels})"
            )
            raise DimensionError(
                "Image pixels count is out of the range.",
                {
                    "pixels": pixels,
                    "min_pixels": options.min_pixels,
                    "max_pixels": options.max_pixels,
                },
            )

    @staticmethod
    def version_filename(
        base_name: str,
        version: VersionSpec,
        size: Tuple[int, int],
        discriminator: str,
        ext: str,
    ) -> str:
        label = version.suffix or f"-{size[0]}x{size[1]}"
        return f"{base_name}{label}{discriminator}.{ext}"

    def plan_filenames(
        self,
        info: ImageInfo,
        base_name: str,
        discriminator: str,
        options: UploadOptions,
    ) -> Tuple[Optional[str], List[str]]:
        """Compute the original and per-version filenames before writing.

        Versions capped to the same size share a filename; the handler
        writes such a file once and reports it for each of them.

        Returns:
            (original filename or None, version filenames in order)
        """
        original = None
        if not options.versions or options.add_original:
            original = f"{base_name}{discriminator}.{info.format}"

        filenames = [
            self.version_filename(
                base_name,
                version,
                self.processor.plan_size(info.size, version),
                discriminator,
                info.format,
            )
            for version in options.versions
        ]

        return original, filenames

    async def _write(self, img: Image.Image, fmt: str, dest: str, filename: str) -> VersionDetails:
        path = os.path.abspath(os.path.join(dest, filename))
        await asyncio.to_thread(self.processor.save, img, path, fmt)
        logger.debug(f"Wrote {path}")
        return VersionDetails(filename=filename, path=path)

    async def _write_version(
        self,
        img: Image.Image,
        fmt: str,
        version: VersionSpec,
        dest: str,
        filename: str,
    ) -> VersionDetails:
        resized = await asyncio.to_thread(self.processor.resize, img, version)
        return await self._write(resized, fmt, dest, filename)

    async def handle(
        self,
        upload: UploadFile,
        options: UploadOptions,
        name: Optional[str] = None,
    ) -> HandlerResult:
        """Process one upload.

        The upload is released when processing ends, whether it succeeded
        or not.

        Args:
            upload: Stream and its declared filename
            options: Validated upload options
            name: Requested base name; falls back to the declared filename

        Returns:
            A single descriptor when only one output was requested, otherwise
            one descriptor per output with the original copy first

        Raises:
            CodecError: If the stream cannot be decoded or resized
            FormatError: If the format is not allowed
            DimensionError: If the pixel count is out of bounds
            FilesystemError: If a file cannot be written
            InputError: If no base name can be determined
        """
        try:
            return await self._process(upload, options, name)
        finally:
            upload.release()

    async def _process(
        self,
        upload: UploadFile,
        options: UploadOptions,
        name: Optional[str],
    ) -> HandlerResult:
        img = await asyncio.to_thread(self.processor.open, upload.stream)
        info = self.processor.info(img)

        base_name = self.resolve_name(upload, name)

        self.check_format(info, options)
        self.check_dimensions(info, options)

        await asyncio.to_thread(self.processor.load, img)
        pil_format = img.format

        async with AsyncExitStack() as stack:
            discriminator = ""
            if options.safe_name:
                discriminator = await stack.enter_async_context(
                    self.resolver.reserve(options.dest, base_name, info.format)
                )

            original, filenames = self.plan_filenames(info, base_name, discriminator, options)

            # One write per distinct filename, first occurrence wins
            writes: Dict[str, Awaitable[VersionDetails]] = {}
            if original:
                writes[original] = self._write(img, pil_format, options.dest, original)
            for version, filename in zip(options.versions, filenames):
                if filename not in writes:
                    writes[filename] = self._write_version(
                        img, pil_format, version, options.dest, filename
                    )

            written = dict(zip(writes, await asyncio.gather(*writes.values())))

        details = [written[original]] if original else []
        details.extend(written[filename] for filename in filenames)

        logger.info(
            f"Processed {base_name}.{info.format} ({info.width}x{info.height}): "
            f"{len(written)} file(s) written"
        )
        return unwrap_single(details)
