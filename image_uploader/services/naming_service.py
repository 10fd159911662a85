"""Collision-safe filename discriminators.

A discriminator is the ``-<N>`` part inserted before the extension so an
upload never overwrites an existing file with the same base name.
"""

import asyncio
import glob
import re
import weakref
from collections import defaultdict
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set, Tuple

from ..core.exceptions import FilesystemError
from ..utils.logging import get_logger

logger = get_logger("image_uploader.naming_service")

NameKey = Tuple[str, str, str]


class NamingResolver:
    """Computes the next free discriminator for ``<base>*.<ext>`` in a directory.

    Existing files matching the glob each contribute their trailing
    ``-<digits>`` number, or 0 when they have none. With no match the name
    is free and the discriminator is empty; otherwise it is one more than
    the highest number found.

    :meth:`reserve` additionally serializes resolution per
    ``(dest, base, ext)`` and remembers discriminators handed out to
    uploads that are still writing, so concurrent uploads of the same name
    in this process never receive the same discriminator. Other processes
    writing to the same directory are not coordinated.
    """

    SUFFIX_PATTERN = re.compile(r"-(\d+)\.\w+$")

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[NameKey, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._reserved: Dict[NameKey, Set[int]] = defaultdict(set)

    @staticmethod
    def _key(dest: str, base_name: str, ext: str) -> NameKey:
        return str(Path(dest).resolve()), base_name, ext

    @classmethod
    def suffix_number(cls, filename: str) -> int:
        """Trailing ``-<digits>`` of ``filename``, or 0 when absent."""
        match = cls.SUFFIX_PATTERN.search(filename)
        return int(match.group(1)) if match else 0

    def scan(self, dest: str, base_name: str, ext: str) -> List[int]:
        """List the numbers contributed by existing matching entries.

        Blocking; run through ``asyncio.to_thread`` from async code.

        Raises:
            FilesystemError: If the directory cannot be listed
        """
        pattern = f"{glob.escape(base_name)}*.{glob.escape(ext)}"
        try:
            matches = [entry.name for entry in Path(dest).glob(pattern)]
        except OSError as e:
            logger.error(f"Failed to list {dest}: {e}")
            raise FilesystemError(f"Could not list {dest}: {e}", {"dest": dest}) from e
        return [self.suffix_number(name) for name in matches]

    @staticmethod
    def compute(numbers: Iterable[int]) -> str:
        numbers = list(numbers)
        if not numbers:
            return ""
        return f"-{max(numbers + [0]) + 1}"

    async def resolve(self, dest: str, base_name: str, ext: str) -> str:
        """Return the discriminator for a new ``<base_name>.<ext>`` in ``dest``.

        Only the directory listing is performed; nothing is reserved.

        Args:
            dest: Destination directory
            base_name: Base filename without extension
            ext: Extension without the dot

        Returns:
            ``""`` when the name is free, ``"-<N>"`` otherwise
        """
        numbers = await asyncio.to_thread(self.scan, dest, base_name, ext)
        numbers.extend(self._reserved.get(self._key(dest, base_name, ext), ()))
        return self.compute(numbers)

    @asynccontextmanager
    async def reserve(self, dest: str, base_name: str, ext: str) -> AsyncIterator[str]:
        """Resolve and hold a discriminator until the block exits.

        Usage::

            async with resolver.reserve(dest, "photo", "png") as discriminator:
                ...  # write files named with the discriminator
        """
        key = self._key(dest, base_name, ext)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock

        async with lock:
            discriminator = await self.resolve(dest, base_name, ext)
            number = int(discriminator[1:]) if discriminator else 0
            self._reserved[key].add(number)

        logger.debug(f"Reserved discriminator '{discriminator}' for {base_name}.{ext} in {dest}")
        try:
            yield discriminator
        finally:
            reserved = self._reserved.get(key)
            if reserved is not None:
                reserved.discard(number)
                if not reserved:
                    del self._reserved[key]

    def reserved(self, dest: str, base_name: str, ext: str) -> Optional[Set[int]]:
        """In-flight discriminator numbers for a name, if any."""
        numbers = self._reserved.get(self._key(dest, base_name, ext))
        return set(numbers) if numbers else None
