"""Image processing utilities for image_uploader.

Thin Pillow layer used by the upload handlers: header decoding, version
resizing and encoding. Every call here is blocking; async callers run them
through ``asyncio.to_thread``.
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import VersionSpec
from ..core.exceptions import CodecError, FilesystemError
from .logging import get_logger

logger = get_logger("image_uploader.image_processing")

# Pillow reports broken chunks as SyntaxError
CODEC_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


@dataclass
class ImageInfo:
    """Header information of a decoded source image."""

    format: str
    width: int
    height: int
    mode: str

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixels(self) -> int:
        return self.width * self.height


class ImageProcessor:
    """Core image operations."""

    # Quality settings
    JPEG_QUALITY = 85
    WEBP_QUALITY = 85
    PNG_COMPRESS_LEVEL = 6

    RESAMPLE = Image.Resampling.LANCZOS

    @classmethod
    def open(cls, stream: BinaryIO) -> Image.Image:
        """Open an image from a stream, reading only the header.

        Pixel data stays undecoded until :meth:`load` is called, so format
        and dimension checks run before the full image is materialized.

        Raises:
            CodecError: If the stream is not a decodable image
        """
        try:
            return Image.open(stream)
        except CODEC_ERRORS as e:
            logger.error(f"Failed to decode image header: {e}")
            raise CodecError(f"Could not decode image: {e}") from e

    @staticmethod
    def info(img: Image.Image) -> ImageInfo:
        return ImageInfo(
            format=(img.format or "").lower(),
            width=img.width,
            height=img.height,
            mode=img.mode,
        )

    @classmethod
    def load(cls, img: Image.Image) -> Image.Image:
        """Decode pixel data once so versions can copy it concurrently.

        Raises:
            CodecError: If the pixel data is truncated or corrupt
        """
        try:
            img.load()
        except CODEC_ERRORS as e:
            logger.error(f"Failed to decode image data: {e}")
            raise CodecError(f"Could not decode image data: {e}") from e
        return img

    @staticmethod
    def plan_size(source: Tuple[int, int], version: VersionSpec) -> Tuple[int, int]:
        """Compute the output dimensions of ``version`` for a source size.

        A missing width or height follows the source aspect ratio. Without
        enlargement each requested dimension is capped to the source.

        Args:
            source: Source (width, height)
            version: Requested version

        Returns:
            Output (width, height)
        """
        src_width, src_height = source
        width, height = version.width, version.height

        if not version.enlargement:
            if width is not None:
                width = min(width, src_width)
            if height is not None:
                height = min(height, src_height)

        if width is not None and height is not None:
            return width, height
        if width is not None:
            return width, max(1, round(src_height * width / src_width))
        if height is not None:
            return max(1, round(src_width * height / src_height)), height
        return src_width, src_height

    @classmethod
    def resize(cls, img: Image.Image, version: VersionSpec) -> Image.Image:
        """Return a resized copy of ``img`` for ``version``.

        When both dimensions are given the image is scaled to cover the box
        and center-cropped. A target equal to the source size is a plain
        copy.

        Raises:
            CodecError: If resampling fails
        """
        size = cls.plan_size(img.size, version)

        try:
            if size == img.size:
                return img.copy()
            if version.width is not None and version.height is not None:
                return ImageOps.fit(img, size, cls.RESAMPLE)
            return img.resize(size, cls.RESAMPLE)
        except CODEC_ERRORS as e:
            logger.error(f"Failed to resize image to {size[0]}x{size[1]}: {e}")
            raise CodecError(f"Could not resize image to {size[0]}x{size[1]}: {e}") from e

    @classmethod
    def _save_params(cls, fmt: str) -> dict:
        if fmt == "JPEG":
            return {"quality": cls.JPEG_QUALITY, "optimize": True}
        if fmt == "WEBP":
            return {"quality": cls.WEBP_QUALITY}
        if fmt == "PNG":
            return {"compress_level": cls.PNG_COMPRESS_LEVEL}
        return {}

    @classmethod
    def encode(cls, img: Image.Image, fmt: str) -> bytes:
        """Encode ``img`` in the given Pillow format name.

        Raises:
            CodecError: If the encoder rejects the image
        """
        fmt = fmt.upper()
        buffer = io.BytesIO()
        try:
            img.save(buffer, format=fmt, **cls._save_params(fmt))
        except CODEC_ERRORS as e:
            logger.error(f"Failed to encode image as {fmt}: {e}")
            raise CodecError(f"Could not encode image as {fmt}: {e}") from e
        return buffer.getvalue()

    @staticmethod
    def write(data: bytes, path: Union[str, Path]) -> int:
        """Write encoded bytes to ``path``.

        Returns:
            Number of bytes written

        Raises:
            FilesystemError: If the file cannot be written
        """
        try:
            with open(path, "wb") as f:
                return f.write(data)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise FilesystemError(f"Could not write {path}: {e}", {"path": str(path)}) from e

    @classmethod
    def save(cls, img: Image.Image, path: Union[str, Path], fmt: Optional[str] = None) -> int:
        """Encode and write ``img``; ``fmt`` defaults to the image's own format."""
        fmt = fmt or img.format
        if not fmt:
            raise CodecError("Cannot determine output format", {"path": str(path)})
        return cls.write(cls.encode(img, fmt), path)
