"""Value types shared across the upload pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import BinaryIO, Dict, List, Optional, Sequence, TypeVar, Union

T = TypeVar("T")


@dataclass
class UploadFile:
    """A readable byte stream paired with the filename it was declared with.

    ``filename`` is whatever the host environment reported (a multipart
    part's filename, for instance). It is only consulted when no explicit
    name is requested for this position.

    ``close_after_use`` hands the stream over to the pipeline, which closes
    it once the upload has been processed or rejected.
    """

    stream: BinaryIO
    filename: Optional[str] = None
    close_after_use: bool = False

    @property
    def stem(self) -> Optional[str]:
        """Declared filename without directory parts or extension."""
        if not self.filename:
            return None
        # Browsers may send Windows paths
        name = PurePath(self.filename.replace("\\", "/")).name
        stem = PurePath(name).stem
        return stem or None

    def release(self) -> None:
        """Close the stream if the pipeline owns it."""
        if self.close_after_use:
            self.stream.close()


@dataclass(frozen=True)
class VersionDetails:
    """Descriptor of one written file."""

    filename: str
    path: str

    def to_dict(self) -> Dict[str, str]:
        return {"filename": self.filename, "path": self.path}


HandlerResult = Union[VersionDetails, List[VersionDetails]]
BatchResult = Union[HandlerResult, List[HandlerResult]]


def as_list(value: Union[None, T, Sequence[T]]) -> List[T]:
    """Normalize a one-or-many value into a list.

    ``None`` becomes an empty list, a list or tuple is copied, and any
    other value is wrapped.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def unwrap_single(items: List[T]) -> Union[T, List[T]]:
    """Return the only element of ``items``, or the list itself otherwise."""
    return items[0] if len(items) == 1 else items


def serialize_result(result: BatchResult) -> Union[Dict[str, str], list]:
    """Convert a (possibly nested) result into JSON-friendly structures."""
    if isinstance(result, VersionDetails):
        return result.to_dict()
    return [serialize_result(item) for item in result]


def release_all(uploads: Sequence[UploadFile]) -> None:
    """Release uploads that will never reach a handler."""
    for upload in uploads:
        if isinstance(upload, UploadFile):
            upload.release()
