"""Upload services: naming, per-image handling and batch dispatch."""

from .batch_dispatcher import BatchDispatcher
from .image_handler import ImageHandler
from .naming_service import NamingResolver
from .uploader import ImageUploader, upload

__all__ = ["BatchDispatcher", "ImageHandler", "ImageUploader", "NamingResolver", "upload"]
