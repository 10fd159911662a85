"""Options-bound upload entry point."""

from typing import Any, Optional

from ..config import UploadOptions
from ..core.models import BatchResult, as_list, release_all
from .batch_dispatcher import BatchDispatcher, OptionsLike, Uploads


class ImageUploader:
    """Uploader configured once and reused for every request.

    All uploads made through one instance share a naming resolver, so
    concurrent requests with safe naming never pick the same discriminator.
    """

    def __init__(self, options: Optional[OptionsLike] = None, dispatcher: Optional[BatchDispatcher] = None):
        if options is None:
            options = UploadOptions()
        elif not isinstance(options, UploadOptions):
            options = UploadOptions.from_dict(options)
        self.options = options
        self.dispatcher = dispatcher or BatchDispatcher()

    async def upload(self, files: Uploads, **overrides: Any) -> BatchResult:
        """Upload ``files`` with the bound options, adjusted by ``overrides``.

        ``overrides`` accept the same keys as :meth:`UploadOptions.from_dict`,
        e.g. ``names="avatar"`` for a single request.
        """
        try:
            options = self.options.replace(**overrides)
        except Exception:
            release_all(as_list(files))
            raise
        return await self.dispatcher.process(files, options)

    __call__ = upload


async def upload(files: Uploads, options: OptionsLike) -> BatchResult:
    """One-off upload without keeping an uploader around."""
    return await BatchDispatcher().process(files, options)
