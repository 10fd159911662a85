"""Configuration management for image_uploader.

This module holds the upload options the pipeline runs with, plus the
logging and HTTP settings of the optional aiohttp integration. Values come
from dataclass defaults, then an optional JSON file, then environment
variables.
"""

import json
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Union

from .core.exceptions import InputError

DEFAULT_FORMATS = ["jpeg", "png", "gif", "webp"]

# Original option spellings mapped to attribute names
_OPTION_ALIASES = {
    "safeName": "safe_name",
    "maxFiles": "max_files",
    "minPixels": "min_pixels",
    "maxPixels": "max_pixels",
    "addOriginal": "add_original",
}


@dataclass(frozen=True)
class VersionSpec:
    """One resize target.

    ``width`` or ``height`` may be ``None`` to keep the source aspect ratio.
    Without ``enlargement`` the output never exceeds the source dimensions.
    ``suffix`` replaces the default ``-<width>x<height>`` filename part.
    """

    width: Optional[int] = None
    height: Optional[int] = None
    enlargement: bool = False
    suffix: Optional[str] = None

    @classmethod
    def from_value(cls, value: Union["VersionSpec", Mapping[str, Any]]) -> "VersionSpec":
        if isinstance(value, VersionSpec):
            return value
        if not isinstance(value, Mapping):
            raise InputError(
                f"Version must be a mapping or VersionSpec, got {type(value).__name__}",
                {"value": value},
            )
        known = {f.name for f in fields(cls)}
        unknown = set(value) - known
        if unknown:
            raise InputError(
                f"Unknown version fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )
        return cls(**dict(value))


@dataclass(frozen=True)
class UploadOptions:
    """Options every upload runs with.

    Defaults:
        dest: ``None``, must be set before processing
        names: ``None``, names come from the declared filenames
        safe_name: ``False``, existing files with the same name are overwritten
        formats: ``jpeg``, ``png``, ``gif``, ``webp``
        max_files: 10
        min_pixels: 1
        max_pixels: 100 000 000
        versions: none, only the original is written
        add_original: ``False``
    """

    dest: Optional[str] = None
    names: Union[None, str, List[Optional[str]]] = None
    safe_name: bool = False
    formats: List[str] = field(default_factory=lambda: list(DEFAULT_FORMATS))
    max_files: int = 10
    min_pixels: int = 1
    max_pixels: int = 100_000_000
    versions: List[VersionSpec] = field(default_factory=list)
    add_original: bool = False

    def __post_init__(self):
        # Normalize collections once so downstream code never re-checks
        object.__setattr__(
            self, "formats", [str(fmt).lower() for fmt in self.formats or []]
        )
        object.__setattr__(
            self, "versions", [VersionSpec.from_value(v) for v in self.versions or []]
        )
        if isinstance(self.dest, os.PathLike):
            object.__setattr__(self, "dest", os.fspath(self.dest))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadOptions":
        """Build options from a mapping using snake_case or original keys.

        Args:
            data: Option values; unknown keys are rejected

        Returns:
            Resolved options

        Raises:
            InputError: If an unknown option is supplied
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _OPTION_ALIASES.get(key, key)
            if attr not in known:
                raise InputError(f"Unknown upload option: {key}", {"option": key})
            values[attr] = value
        return cls(**values)

    def replace(self, **overrides: Any) -> "UploadOptions":
        """Return a copy with ``overrides`` applied (original keys accepted)."""
        if not overrides:
            return self
        merged = self.to_dict()
        merged.update(overrides)
        return UploadOptions.from_dict(merged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dest": self.dest,
            "names": self.names,
            "safe_name": self.safe_name,
            "formats": list(self.formats),
            "max_files": self.max_files,
            "min_pixels": self.min_pixels,
            "max_pixels": self.max_pixels,
            "versions": [v.__dict__.copy() for v in self.versions],
            "add_original": self.add_original,
        }


@dataclass
class LoggingConfig:
    """Logging configuration settings."""

    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True


@dataclass
class ServerConfig:
    """Settings for the aiohttp upload route."""

    route: str = "/upload"
    file_field: str = "file"
    names_field: str = "names"
    spool_max_size: int = 1024 * 1024  # spill to disk above 1MB


class Config:
    """Main configuration class."""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration.

        Args:
            config_file: Path to configuration file
        """
        self.config_file = config_file or self._find_config_file()

        self.upload = UploadOptions()
        self.logging = LoggingConfig()
        self.server = ServerConfig()

        if self.config_file and os.path.exists(self.config_file):
            self.load(self.config_file)

        self._load_from_env()

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in standard locations.

        Returns:
            Path to config file or None
        """
        search_paths = [
            "image_uploader.json",
            "config.json",
            os.path.expanduser("~/.image_uploader/config.json"),
        ]

        for path in search_paths:
            if os.path.exists(path):
                return path

        return None

    def load(self, config_file: str):
        """Load configuration from file.

        Args:
            config_file: Path to configuration file
        """
        with open(config_file, "r") as f:
            data = json.load(f)

        if "upload" in data:
            self.upload = UploadOptions.from_dict(data["upload"])

        if "logging" in data:
            self.logging = LoggingConfig(**data["logging"])

        if "server" in data:
            self.server = ServerConfig(**data["server"])

    def save(self, config_file: Optional[str] = None):
        """Save configuration to file.

        Args:
            config_file: Path to configuration file
        """
        config_file = config_file or self.config_file or "image_uploader.json"

        with open(config_file, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve configuration values using dotted paths."""
        parts = [part for part in (key or "").split(".") if part]
        if not parts:
            return default

        current: Any = self
        for part in parts:
            if not hasattr(current, part):
                return default
            current = getattr(current, part)

        return current

    def set(self, key: str, value: Any) -> None:
        """Set configuration values using dotted paths.

        Upload options are immutable, so ``upload.*`` keys swap in a
        replaced copy.
        """
        parts = [part for part in (key or "").split(".") if part]
        if len(parts) != 2:
            raise KeyError(f"Expected '<section>.<name>', got {key!r}")

        section, name = parts
        if section == "upload":
            self.upload = self.upload.replace(**{name: value})
            return

        target = getattr(self, section, None)
        if target is None or not hasattr(target, name):
            raise KeyError(f"Unknown configuration key: {key}")
        setattr(target, name, value)

    def _load_from_env(self):
        """Load configuration from environment variables."""
        overrides: Dict[str, Any] = {}

        if "IMAGE_UPLOADER_DEST" in os.environ:
            overrides["dest"] = os.environ["IMAGE_UPLOADER_DEST"]
        if "IMAGE_UPLOADER_SAFE_NAME" in os.environ:
            overrides["safe_name"] = os.environ["IMAGE_UPLOADER_SAFE_NAME"].lower() == "true"
        if "IMAGE_UPLOADER_MAX_FILES" in os.environ:
            overrides["max_files"] = int(os.environ["IMAGE_UPLOADER_MAX_FILES"])
        if "IMAGE_UPLOADER_FORMATS" in os.environ:
            overrides["formats"] = [
                fmt.strip() for fmt in os.environ["IMAGE_UPLOADER_FORMATS"].split(",") if fmt.strip()
            ]

        if overrides:
            self.upload = self.upload.replace(**overrides)

        if "IMAGE_UPLOADER_LOG_LEVEL" in os.environ:
            self.logging.level = os.environ["IMAGE_UPLOADER_LOG_LEVEL"]

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Configuration dictionary
        """
        return {
            "upload": self.upload.to_dict(),
            "logging": self.logging.__dict__.copy(),
            "server": self.server.__dict__.copy(),
        }
