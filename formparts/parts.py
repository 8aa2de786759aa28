from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from .content import CHUNK_SIZE, BytesContent, StreamContent, StreamProgressContent, validate_media_type
from .exceptions import FileError, MissingArgumentError

if TYPE_CHECKING:  # pragma: no cover
    from typing import BinaryIO, Union

    from .content import Content, ProgressCallback, SupportsRead

    StrPath = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]


class MultipartItem:
    """One entry of a multipart/form-data body.

    Every item carries a ``file_name`` (required), and optionally the form
    field ``name`` and a ``content_type``.  Items don't change once built;
    :meth:`to_content` turns one into the :class:`~formparts.content.Content`
    that is written on the wire.

    The set of item kinds is closed: :class:`ByteArrayPart`,
    :class:`FileInfoPart` and :class:`StreamPart`.
    """

    def __init__(self, file_name: str, content_type: str | None = None, name: str | None = None) -> None:
        if file_name is None:
            raise MissingArgumentError("file_name is required")

        self._file_name = file_name
        self._content_type = content_type
        self._name = name

    @property
    def name(self) -> str | None:
        """The form field name, if one was given."""
        return self._name

    @property
    def content_type(self) -> str | None:
        return self._content_type

    @property
    def file_name(self) -> str:
        return self._file_name

    def to_content(self, chunk_size: int = CHUNK_SIZE) -> Content:
        return to_content(self, chunk_size)

    def __repr__(self) -> str:
        return "{}(file_name={!r}, content_type={!r}, name={!r})".format(
            self.__class__.__name__, self.file_name, self.content_type, self.name
        )


class ByteArrayPart(MultipartItem):
    """An item whose payload is already in memory."""

    def __init__(
        self, value: bytes, file_name: str, content_type: str | None = None, name: str | None = None
    ) -> None:
        super().__init__(file_name, content_type, name)
        if value is None:
            raise MissingArgumentError("value is required")

        # Snapshot mutable buffers (bytearray, memoryview) so later changes
        # by the caller don't leak into the body.
        self._value = bytes(value)

    @property
    def value(self) -> bytes:
        return self._value


class FileInfoPart(MultipartItem):
    """An item backed by a file on disk.  The file is only opened when the
    item is converted to content.
    """

    def __init__(
        self, value: StrPath, file_name: str, content_type: str | None = None, name: str | None = None
    ) -> None:
        super().__init__(file_name, content_type, name)
        if value is None:
            raise MissingArgumentError("value is required")

        self._value = Path(os.fsdecode(value))

    @property
    def value(self) -> Path:
        return self._value


class StreamPart(MultipartItem):
    """An item read from a binary stream.

    ``progress``, when given, is called with the percentage of the stream
    written so far each time a chunk is accepted by the destination.
    """

    def __init__(
        self,
        value: SupportsRead,
        file_name: str,
        content_type: str | None = None,
        name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        super().__init__(file_name, content_type, name)
        if value is None:
            raise MissingArgumentError("value is required")
        if not hasattr(value, "read"):
            raise TypeError("value must be a readable stream, not %r" % type(value).__name__)

        self._value = value
        self._progress = progress

    @property
    def value(self) -> SupportsRead:
        return self._value

    @property
    def progress(self) -> ProgressCallback | None:
        return self._progress


def open_file(path: Path) -> BinaryIO:
    """Opens ``path`` for reading, turning any OSError into a FileError."""
    logger = logging.getLogger(__name__)
    logger.info("Opening file: %r", str(path))
    try:
        return open(path, "rb")
    except OSError as exc:
        logger.exception("Error opening file")
        raise FileError("Error opening file: %r" % str(path)) from exc


def to_content(item: MultipartItem, chunk_size: int = CHUNK_SIZE) -> Content:
    """Converts a multipart item into the content written on the wire.

    The content type, when the item has a non-empty one, is validated first
    and then set as the content's ``Content-Type`` header.  Stream-backed
    contents (file and stream parts) take ownership of their stream.
    """
    content_type = validate_media_type(item.content_type) if item.content_type else None

    content: Content
    if isinstance(item, ByteArrayPart):
        content = BytesContent(item.value)
    elif isinstance(item, FileInfoPart):
        content = StreamContent(open_file(item.value), chunk_size)
    elif isinstance(item, StreamPart):
        content = StreamProgressContent(item.value, item.progress, chunk_size)
    else:
        raise TypeError("Unsupported multipart item: %r" % (item,))

    if content_type:
        content.headers["Content-Type"] = content_type

    return content
