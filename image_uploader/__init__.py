"""Image upload pipeline: validation, resized versions and safe naming.

Exposes commonly used names lazily so importing the package does not pull
in Pillow or aiohttp until they are needed.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict

__version__ = "0.3.0"

__all__ = [
    "BatchDispatcher",
    "Config",
    "ImageHandler",
    "ImageUploader",
    "NamingResolver",
    "UploadFile",
    "UploadOptions",
    "VersionDetails",
    "VersionSpec",
    "UploadError",
    "InputError",
    "LimitError",
    "FormatError",
    "DimensionError",
    "CodecError",
    "FilesystemError",
    "get_logger",
    "setup_logging",
    "setup_uploader",
    "upload",
]

_LAZY_IMPORTS: Dict[str, tuple[str, str]] = {
    "BatchDispatcher": (".services.batch_dispatcher", "BatchDispatcher"),
    "Config": (".config", "Config"),
    "ImageHandler": (".services.image_handler", "ImageHandler"),
    "ImageUploader": (".services.uploader", "ImageUploader"),
    "NamingResolver": (".services.naming_service", "NamingResolver"),
    "UploadFile": (".core.models", "UploadFile"),
    "UploadOptions": (".config", "UploadOptions"),
    "VersionDetails": (".core.models", "VersionDetails"),
    "VersionSpec": (".config", "VersionSpec"),
    "UploadError": (".core.exceptions", "UploadError"),
    "InputError": (".core.exceptions", "InputError"),
    "LimitError": (".core.exceptions", "LimitError"),
    "FormatError": (".core.exceptions", "FormatError"),
    "DimensionError": (".core.exceptions", "DimensionError"),
    "CodecError": (".core.exceptions", "CodecError"),
    "FilesystemError": (".core.exceptions", "FilesystemError"),
    "get_logger": (".utils.logging", "get_logger"),
    "setup_logging": (".utils.logging", "setup_logging"),
    "setup_uploader": (".api.routes", "setup_uploader"),
    "upload": (".services.uploader", "upload"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module 'image_uploader' has no attribute '{name}'")

    module_path, attr_name = _LAZY_IMPORTS[name]
    module = import_module(module_path, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(__all__))
