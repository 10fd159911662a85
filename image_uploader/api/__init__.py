"""aiohttp integration."""

from .routes import UPLOADER_KEY, UploadHandlers, create_app, setup_uploader

__all__ = ["UPLOADER_KEY", "UploadHandlers", "create_app", "setup_uploader"]
