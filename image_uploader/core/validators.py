"""Shared validators for upload options.

Options are checked once at the batch boundary so the per-file handlers can
trust every field.
"""

from typing import Any

from ..config import UploadOptions, VersionSpec
from ..utils.logging import get_logger
from .exceptions import InputError

logger = get_logger("image_uploader.validators")


class Validators:
    """Validators for upload requests."""

    @staticmethod
    def _require_int(value: Any, field_name: str, minimum: int = 0) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InputError(f"{field_name}: Must be an integer", {"field": field_name, "value": value})
        if value < minimum:
            raise InputError(
                f"{field_name}: Must be at least {minimum}",
                {"field": field_name, "value": value},
            )
        return value

    @staticmethod
    def validate_version(version: VersionSpec, index: int) -> VersionSpec:
        """Validate a single version spec.

        Args:
            version: The version to validate
            index: Position in the versions list, for error messages

        Returns:
            The validated version

        Raises:
            InputError: If a dimension is not a positive integer or the
                suffix is not a string
        """
        field_name = f"versions[{index}]"
        for attr in ("width", "height"):
            value = getattr(version, attr)
            if value is not None:
                Validators._require_int(value, f"{field_name}.{attr}", minimum=1)

        if version.suffix is not None and not isinstance(version.suffix, str):
            raise InputError(f"{field_name}.suffix: Must be a string", {"field": field_name})

        if version.suffix and ("/" in version.suffix or "\\" in version.suffix):
            raise InputError(
                f"{field_name}.suffix: Must not contain path separators",
                {"field": field_name, "value": version.suffix},
            )

        return version

    @staticmethod
    def validate_options(options: UploadOptions) -> UploadOptions:
        """Validate upload options before any file is touched.

        Args:
            options: The resolved options

        Returns:
            The same options

        Raises:
            InputError: If validation fails
        """
        if not options.dest:
            raise InputError("dest: Destination directory is required", {"field": "dest"})

        if not options.formats:
            raise InputError("formats: At least one format must be allowed", {"field": "formats"})

        Validators._require_int(options.max_files, "max_files", minimum=1)
        Validators._require_int(options.min_pixels, "min_pixels")
        Validators._require_int(options.max_pixels, "max_pixels")

        if options.min_pixels > options.max_pixels:
            raise InputError(
                "min_pixels: Must not exceed max_pixels",
                {"min_pixels": options.min_pixels, "max_pixels": options.max_pixels},
            )

        for index, version in enumerate(options.versions):
            Validators.validate_version(version, index)

        logger.debug(
            "Validated options: dest=%s versions=%d safe_name=%s",
            options.dest,
            len(options.versions),
            options.safe_name,
        )
        return options

    @staticmethod
    def validate_name(name: Any, field_name: str = "name") -> str:
        """Validate a base name used to build output filenames.

        Raises:
            InputError: If the name is empty or would escape the destination
        """
        if not isinstance(name, str) or not name.strip():
            raise InputError(f"{field_name}: Cannot be empty", {"field": field_name, "value": name})

        if "/" in name or "\\" in name or name in (".", ".."):
            raise InputError(
                f"{field_name}: Must not contain path separators",
                {"field": field_name, "value": name},
            )

        return name
