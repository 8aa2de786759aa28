from __future__ import annotations

import binascii
import logging
import os
from typing import TYPE_CHECKING, Union

from .content import BytesContent, remaining_length, validate_media_type, write_chunk, write_chunk_async
from .exceptions import ContentConsumedError, FileError, InvalidBoundaryError, MissingArgumentError
from .parts import ByteArrayPart, FileInfoPart, MultipartItem, StreamPart, to_content

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Iterator, Mapping
    from typing import Any, TypedDict

    from .content import Content, SupportsWrite

    class EncoderConfig(TypedDict, total=False):
        CHUNK_SIZE: int
        ENCODING: str


# A payload is either a multipart item or the raw value of a plain field.
Payload = Union[MultipartItem, bytes]

# Characters allowed in a boundary, as per RFC 2046 5.1.1 ("bchars").
BOUNDARY_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
    "'()+_,-./:=? "
)
MAX_BOUNDARY_LENGTH = 70

CRLF = b"\r\n"

# Escapes for quoted header parameters, the way HTML5 browsers encode them.
_HEADER_PARAM_ESCAPES = {
    ord('"'): "%22",
    ord("\r"): "%0D",
    ord("\n"): "%0A",
}


def choose_boundary() -> str:
    """Returns a random boundary of 32 hex characters."""
    return binascii.hexlify(os.urandom(16)).decode("ascii")


def validate_boundary(boundary: str) -> str:
    if not boundary or len(boundary) > MAX_BOUNDARY_LENGTH:
        raise InvalidBoundaryError(
            "Boundary must be between 1 and %d characters long, got %d" % (MAX_BOUNDARY_LENGTH, len(boundary))
        )
    if not BOUNDARY_CHARS.issuperset(boundary):
        raise InvalidBoundaryError("Invalid characters in boundary: %r" % boundary)
    if boundary.endswith(" "):
        raise InvalidBoundaryError("Boundary can't end with a space: %r" % boundary)
    return boundary


def format_header_param(name: str, value: str) -> str:
    """Formats ``name="value"`` for a header, escaping quotes and line
    breaks in ``value``.
    """
    return '{}="{}"'.format(name, value.translate(_HEADER_PARAM_ESCAPES))


class MultipartEncoder:
    """Assembles multipart items and plain fields into a
    ``multipart/form-data`` body.

    Items are only converted to content (and files only opened) while the
    body is being produced, one part at a time.  The body can be produced
    once: stream parts can't be rewound.

    Example::

        encoder = MultipartEncoder()
        encoder.add(ByteArrayPart(b"...", "a.bin", "application/octet-stream", name="blob"))
        encoder.add_field("comment", "hello")
        headers = {"Content-Type": encoder.content_type}
        await encoder.serialize(writer)

    The following configuration keys are recognized:

    .. list-table::
       :widths: 15 5 5 30
       :header-rows: 1

       * - Name
         - Type
         - Default
         - Description
       * - CHUNK_SIZE
         - `int`
         - 4096
         - The number of bytes read from a file or stream part per write.
       * - ENCODING
         - `str`
         - ``"utf-8"``
         - The encoding of header text and of `str` field values.
    """

    #: This is the default configuration for our encoder.
    DEFAULT_CONFIG: EncoderConfig = {
        "CHUNK_SIZE": 4096,
        "ENCODING": "utf-8",
    }

    def __init__(self, boundary: str | None = None, config: EncoderConfig = {}) -> None:
        self.logger = logging.getLogger(__name__)

        self.config: EncoderConfig = self.DEFAULT_CONFIG.copy()
        self.config.update(config)

        if boundary is None:
            boundary = choose_boundary()
        self.boundary = validate_boundary(boundary)

        self._entries: list[tuple[str, Payload]] = []
        self._consumed = False

    @property
    def content_type(self) -> str:
        return "multipart/form-data; boundary=%s" % self.boundary

    def add(self, item: MultipartItem, name: str | None = None) -> None:
        """Adds an item.  The field name is the item's own ``name`` or, if it
        has none, ``name``.
        """
        if item is None:
            raise MissingArgumentError("item is required")
        if not isinstance(item, MultipartItem):
            raise TypeError("Expected a MultipartItem, got %r" % type(item).__name__)

        field_name = item.name or name
        if not field_name:
            raise MissingArgumentError("No field name for %r" % (item,))

        # Fail early on a bad content type rather than halfway through a body.
        if item.content_type:
            validate_media_type(item.content_type)

        self._entries.append((field_name, item))

    def add_field(self, name: str, value: str | bytes) -> None:
        """Adds a plain form field without a file name."""
        if not name:
            raise MissingArgumentError("name is required")
        if value is None:
            raise MissingArgumentError("value is required")

        if isinstance(value, str):
            value = value.encode(self.config["ENCODING"])
        self._entries.append((name, bytes(value)))

    def _part_header(self, name: str, payload: Payload) -> bytes:
        lines = ["--" + self.boundary]
        disposition = "Content-Disposition: form-data; " + format_header_param("name", name)
        if isinstance(payload, MultipartItem):
            disposition += "; " + format_header_param("filename", payload.file_name)
            lines.append(disposition)
            if payload.content_type:
                lines.append("Content-Type: " + validate_media_type(payload.content_type))
        else:
            lines.append(disposition)

        return ("\r\n".join(lines) + "\r\n\r\n").encode(self.config["ENCODING"])

    def _closing_boundary(self) -> bytes:
        return ("--%s--\r\n" % self.boundary).encode(self.config["ENCODING"])

    def _payload_length(self, payload: Payload) -> int | None:
        if isinstance(payload, bytes):
            return len(payload)
        elif isinstance(payload, ByteArrayPart):
            return len(payload.value)
        elif isinstance(payload, FileInfoPart):
            try:
                return os.stat(payload.value).st_size
            except OSError as exc:
                self.logger.exception("Error reading the size of %r", str(payload.value))
                raise FileError("Error reading the size of %r" % str(payload.value)) from exc
        elif isinstance(payload, StreamPart):
            return remaining_length(payload.value)
        raise TypeError("Unsupported payload: %r" % (payload,))

    @property
    def content_length(self) -> int | None:
        """The size of the whole body, or None when a stream part can't tell
        its length.
        """
        total = len(self._closing_boundary())
        for name, payload in self._entries:
            size = self._payload_length(payload)
            if size is None:
                return None
            total += len(self._part_header(name, payload)) + size + len(CRLF)
        return total

    def _iter_parts(self) -> Iterator[tuple[bytes, Content]]:
        if self._consumed:
            raise ContentConsumedError("This multipart body has already been produced")
        self._consumed = True

        for name, payload in self._entries:
            self.logger.debug("Encoding part %r", name)
            if isinstance(payload, MultipartItem):
                content = to_content(payload, self.config["CHUNK_SIZE"])
            else:
                content = BytesContent(payload)
            yield self._part_header(name, payload), content

    def iter_chunks(self) -> Iterator[bytes]:
        """Yields the body piece by piece.  Progress callbacks are not called,
        since nothing is known about when the chunks are written.
        """
        for header, content in self._iter_parts():
            with content:
                yield header
                yield from content.iter_chunks()
                yield CRLF
        yield self._closing_boundary()

    def to_bytes(self) -> bytes:
        return b"".join(self.iter_chunks())

    def write_to(self, fileobj: SupportsWrite) -> int:
        """Writes the whole body to a blocking file object and returns the
        number of bytes written.
        """
        written = 0
        for header, content in self._iter_parts():
            # The content owns its stream from here on, so it is released even
            # if the header write fails.
            with content:
                written += write_chunk(fileobj, header)
                written += content.write_to(fileobj)
                written += write_chunk(fileobj, CRLF)
        written += write_chunk(fileobj, self._closing_boundary())

        self.logger.info("Wrote multipart body of %d bytes", written)
        return written

    async def serialize(self, sink: Any) -> int:
        """Writes the whole body to an asyncio-style sink, waiting for each
        write to complete before the next one.
        """
        written = 0
        for header, content in self._iter_parts():
            with content:
                written += await write_chunk_async(sink, header)
                written += await content.serialize(sink)
                written += await write_chunk_async(sink, CRLF)
        written += await write_chunk_async(sink, self._closing_boundary())

        self.logger.info("Wrote multipart body of %d bytes", written)
        return written

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(boundary={self.boundary!r}, parts={len(self._entries)})"


def encode_multipart(
    items: Iterable[MultipartItem],
    fields: Mapping[str, str | bytes] | None = None,
    boundary: str | None = None,
) -> tuple[bytes, str]:
    """Encodes ``items`` (and optionally plain ``fields``) in one go,
    returning ``(body, content_type)``.
    """
    encoder = MultipartEncoder(boundary=boundary)
    if fields:
        for name, value in fields.items():
            encoder.add_field(name, value)
    for item in items:
        encoder.add(item)

    return encoder.to_bytes(), encoder.content_type
