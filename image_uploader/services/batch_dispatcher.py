"""Batch dispatch of uploads to per-file handlers.

Fans a request of one or many uploads out to :class:`ImageHandler`
concurrently and shapes the aggregated result by arity.

Failure semantics: the first failing file rejects the whole call. Handlers
for other files that are already running are not cancelled; they finish in
the background and their results are discarded. Files written before the
failure are left on disk, so callers needing all-or-nothing behavior must
clean up themselves.

Uploads created with ``close_after_use`` are closed by their handler once
it settles, or here when the batch is rejected before any handler starts.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..config import UploadOptions
from ..core.exceptions import FilesystemError, InputError, LimitError
from ..core.models import BatchResult, UploadFile, as_list, release_all, unwrap_single
from ..core.validators import Validators
from ..utils.logging import get_logger
from .image_handler import ImageHandler
from .naming_service import NamingResolver

logger = get_logger("image_uploader.batch_dispatcher")

Uploads = Union[UploadFile, Sequence[UploadFile]]
OptionsLike = Union[UploadOptions, Mapping[str, Any]]


class BatchDispatcher:
    """Validates a request and distributes its files to image handlers."""

    def __init__(self, handler: Optional[ImageHandler] = None, resolver: Optional[NamingResolver] = None):
        self.handler = handler or ImageHandler(resolver or NamingResolver())

    @staticmethod
    def resolve_options(options: Optional[OptionsLike]) -> UploadOptions:
        if options is None:
            raise InputError("Missing options argument.")
        if isinstance(options, Mapping):
            options = UploadOptions.from_dict(options)
        if not isinstance(options, UploadOptions):
            raise InputError(
                f"Options must be UploadOptions or a mapping, got {type(options).__name__}"
            )
        return Validators.validate_options(options)

    @staticmethod
    def ensure_dest(dest: str) -> None:
        try:
            Path(dest).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create destination {dest}: {e}")
            raise FilesystemError(f"Could not create {dest}: {e}", {"dest": dest}) from e

    async def process(self, inputs: Optional[Uploads], options: Optional[OptionsLike]) -> BatchResult:
        """Upload one or many files.

        Args:
            inputs: A single upload or a sequence of uploads
            options: Upload options, or a mapping resolved through
                :meth:`UploadOptions.from_dict`

        Returns:
            The handler result for a single upload, otherwise the list of
            handler results in input order

        Raises:
            InputError: If inputs or options are missing or invalid
            LimitError: If more than ``max_files`` uploads were supplied
            FilesystemError: If the destination cannot be created
            UploadError: Whatever the first failing handler raised
        """
        if not inputs:
            raise InputError("Missing file argument.")
        uploads: List[UploadFile] = as_list(inputs)

        try:
            options = self.resolve_options(options)

            names = as_list(options.names)
            names.extend([None] * (len(uploads) - len(names)))

            if len(uploads) > options.max_files:
                logger.warning(f"Rejected batch of {len(uploads)} files (max {options.max_files})")
                raise LimitError(
                    "Out of maximum files number",
                    {"files": len(uploads), "max_files": options.max_files},
                )

            await asyncio.to_thread(self.ensure_dest, options.dest)
        except Exception:
            # No handler will run, so nothing else releases these
            release_all(uploads)
            raise

        logger.debug(f"Dispatching {len(uploads)} upload(s) to {os.path.abspath(options.dest)}")
        results = await asyncio.gather(
            *(
                self.handler.handle(upload, options, names[index])
                for index, upload in enumerate(uploads)
            )
        )

        return unwrap_single(list(results))
