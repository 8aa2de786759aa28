from __future__ import annotations

import inspect
import logging
import os
from email.message import Message
from typing import TYPE_CHECKING

from .exceptions import ContentConsumedError, InvalidContentTypeError, WriteError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Iterator
    from types import TracebackType
    from typing import Any, Protocol

    class SupportsRead(Protocol):
        def read(self, __n: int) -> bytes: ...

    class SupportsWrite(Protocol):
        def write(self, __b: bytes) -> Any: ...

    ProgressCallback = Callable[[float], None]


# Number of bytes handed to the sink per write.
CHUNK_SIZE = 4096

# fmt: off
# Token characters, as per RFC7230 3.2.6.  Both halves of a media type must be
# made of these.
TOKEN_CHARS_SET = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
    "!#$%&'*+-.^_`|~")
# fmt: on


def parse_options_header(value: str | bytes | None) -> tuple[str, dict[str, str]]:
    """Parses a Content-Type header into a value in the following format:
    (content_type, {parameters})
    """
    # Uses email.message.Message to parse the header as described in PEP 594.
    # Ref: https://peps.python.org/pep-0594/#cgi
    if not value:
        return ("", {})

    # If we are passed bytes, we assume that it conforms to WSGI, encoding in latin-1.
    if isinstance(value, bytes):  # pragma: no cover
        value = value.decode("latin-1")

    # If we have no options, return the string as-is.
    if ";" not in value:
        return (value.lower().strip(), {})

    # Split at the first semicolon, to get our value and then options.
    message = Message()
    message["content-type"] = value
    params = message.get_params()
    if not params:
        raise InvalidContentTypeError("Could not parse content type: %r" % value)
    ctype = params.pop(0)[0]
    options: dict[str, str] = {}
    for key, param in params:
        # If the value is a tuple, it was RFC 2231 encoded; keep the decoded part.
        if isinstance(param, tuple):
            param = param[-1]
        options[key] = param
    return ctype, options


def validate_media_type(value: str) -> str:
    """Checks that ``value`` is a ``type/subtype`` media type, optionally
    followed by parameters, and returns it with surrounding whitespace removed.
    """
    if "\r" in value or "\n" in value:
        raise InvalidContentTypeError("Content type contains a line break: %r" % value)

    ctype, _ = parse_options_header(value)
    major, sep, minor = ctype.partition("/")
    if not sep or not major or not minor:
        raise InvalidContentTypeError("Content type is not of the form type/subtype: %r" % value)
    if not TOKEN_CHARS_SET.issuperset(major) or not TOKEN_CHARS_SET.issuperset(minor):
        raise InvalidContentTypeError("Invalid characters in content type: %r" % value)

    return value.strip()


def remaining_length(stream: object) -> int | None:
    """Returns the number of bytes between the current position of ``stream``
    and its end, or None when the stream can't seek.  The position is left
    where it was.
    """
    seekable = getattr(stream, "seekable", None)
    if seekable is not None and not seekable():
        return None

    try:
        pos = stream.tell()  # type: ignore[attr-defined]
        stream.seek(0, os.SEEK_END)  # type: ignore[attr-defined]
        end = stream.tell()  # type: ignore[attr-defined]
        stream.seek(pos)  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return None

    return max(end - pos, 0)


def write_chunk(fileobj: SupportsWrite, chunk: bytes) -> int:
    """Writes ``chunk`` to a blocking file-like sink."""
    try:
        fileobj.write(chunk)
    except WriteError:
        raise
    except (OSError, ValueError) as exc:
        # A closed file object raises ValueError rather than OSError.
        logging.getLogger(__name__).exception("Error writing %d bytes to %r", len(chunk), fileobj)
        raise WriteError("Error writing %d bytes to %r" % (len(chunk), fileobj)) from exc
    return len(chunk)


async def write_chunk_async(sink: Any, chunk: bytes) -> int:
    """Writes ``chunk`` to an asyncio-style sink and waits until the sink has
    accepted it.  The sink's ``write()`` may return an awaitable; if the sink
    has a ``drain()`` coroutine (like ``asyncio.StreamWriter``), it is awaited
    too.
    """
    try:
        result = sink.write(chunk)
        if inspect.isawaitable(result):
            await result
        drain = getattr(sink, "drain", None)
        if drain is not None:
            await drain()
    except WriteError:
        raise
    except (OSError, ValueError) as exc:
        # A closed file object raises ValueError rather than OSError.
        logging.getLogger(__name__).exception("Error writing %d bytes to %r", len(chunk), sink)
        raise WriteError("Error writing %d bytes to %r" % (len(chunk), sink)) from exc
    return len(chunk)


class Content:
    """An HTTP request body: a sequence of bytes plus the headers that
    describe them.

    Subclasses produce the body through :meth:`iter_chunks`.  The body can be
    collected with :meth:`read`, written to a blocking file object with
    :meth:`write_to` or to an asyncio sink with :meth:`serialize`.  After
    each chunk has been accepted by the sink, :meth:`on_chunk_written` is
    called with the number of bytes written so far.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer, not %r" % chunk_size)

        self.logger = logging.getLogger(__name__)
        self.headers: dict[str, str] = {}
        self.chunk_size = chunk_size

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")

    @content_type.setter
    def content_type(self, value: str | None) -> None:
        if value is None:
            self.headers.pop("Content-Type", None)
        else:
            self.headers["Content-Type"] = validate_media_type(value)

    @property
    def length(self) -> int | None:
        """The size of the body in bytes, if it is known."""
        return None

    def iter_chunks(self) -> Iterator[bytes]:
        raise NotImplementedError()

    def on_chunk_written(self, written: int) -> None:
        pass

    def read(self) -> bytes:
        return b"".join(self.iter_chunks())

    def write_to(self, fileobj: SupportsWrite) -> int:
        """Writes the body to ``fileobj`` one chunk at a time, returning the
        number of bytes written.
        """
        written = 0
        chunks = self.iter_chunks()
        try:
            for chunk in chunks:
                written += write_chunk(fileobj, chunk)
                self.on_chunk_written(written)
        finally:
            chunks.close()  # type: ignore[attr-defined]
        return written

    async def serialize(self, sink: Any) -> int:
        """Same as :meth:`write_to`, but each write is awaited before the next
        chunk is read.

        Chunks are still read from the source with plain blocking ``read()``
        calls, so a stream backed by a slow file blocks the event loop for
        the duration of each read.  Wrap the part's stream, or run the
        whole call in an executor, if that matters.
        """
        written = 0
        chunks = self.iter_chunks()
        try:
            for chunk in chunks:
                written += await write_chunk_async(sink, chunk)
                self.logger.debug("Wrote %d bytes (%d total)", len(chunk), written)
                self.on_chunk_written(written)
        finally:
            chunks.close()  # type: ignore[attr-defined]
        return written

    def close(self) -> None:
        pass

    def __enter__(self) -> Content:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(length={self.length!r}, content_type={self.content_type!r})"


class BytesContent(Content):
    """A body held entirely in memory.  It is written in a single piece and
    can be read any number of times.
    """

    def __init__(self, value: bytes) -> None:
        super().__init__()
        self._value = bytes(value)

    @property
    def value(self) -> bytes:
        return self._value

    @property
    def length(self) -> int:
        return len(self._value)

    def iter_chunks(self) -> Iterator[bytes]:
        if self._value:
            yield self._value


class StreamContent(Content):
    """A body read from a binary stream.

    The content owns the stream: it is closed once the body has been read to
    the end, when writing it fails, or when :meth:`close` is called.  The
    length is measured once, here, and is None for streams that can't seek.
    When it is known, no more than ``length`` bytes are read, even if the
    stream has grown since.
    """

    def __init__(self, stream: SupportsRead, chunk_size: int = CHUNK_SIZE) -> None:
        super().__init__(chunk_size)
        self._stream = stream
        self._length = remaining_length(stream)
        self._consumed = False

    @property
    def stream(self) -> SupportsRead:
        return self._stream

    @property
    def length(self) -> int | None:
        return self._length

    def iter_chunks(self) -> Iterator[bytes]:
        if self._consumed:
            raise ContentConsumedError("The stream of %r has already been read" % self)
        self._consumed = True
        return self._read_chunks()

    def _read_chunks(self) -> Iterator[bytes]:
        # With a known length, never write more than was measured: the length
        # may already have been sent as Content-Length.
        remaining = self._length
        try:
            while remaining is None or remaining > 0:
                size = self.chunk_size if remaining is None else min(self.chunk_size, remaining)
                chunk = self._stream.read(size)
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        close = getattr(self._stream, "close", None)
        if close is not None:
            close()


class StreamProgressContent(StreamContent):
    """A :class:`StreamContent` that reports how much of the stream has been
    written.

    After each chunk is accepted by the sink, ``progress`` is called with the
    percentage written so far, ``100.0 * written / length``.  Nothing is
    reported for an empty stream, nor for a stream whose length is unknown.
    """

    CHUNK_SIZE = CHUNK_SIZE

    def __init__(
        self, stream: SupportsRead, progress: ProgressCallback | None = None, chunk_size: int = CHUNK_SIZE
    ) -> None:
        super().__init__(stream, chunk_size)
        self._progress = progress

        if progress is not None and self._length is None:
            self.logger.warning("Can't measure the length of %r, progress will not be reported", stream)

    def on_chunk_written(self, written: int) -> None:
        if self._progress is None or not self._length:
            return

        percent = min(100.0 * written / self._length, 100.0)
        try:
            self._progress(percent)
        except Exception as exc:
            self.logger.exception("Progress callback failed at %.2f%%", percent)
            raise WriteError("Progress callback failed at %.2f%%" % percent) from exc
