from __future__ import annotations

import io
import os
import tempfile
import unittest
from pathlib import Path

from formparts.content import BytesContent, StreamContent, StreamProgressContent
from formparts.exceptions import FileError, InvalidContentTypeError, MissingArgumentError
from formparts.parts import ByteArrayPart, FileInfoPart, MultipartItem, StreamPart, to_content

from .compat import parametrize, parametrize_class


def make_part(kind: str, value: object, file_name: object) -> MultipartItem:
    if kind == "bytes":
        return ByteArrayPart(value, file_name)  # type: ignore[arg-type]
    elif kind == "file":
        return FileInfoPart(value, file_name)  # type: ignore[arg-type]
    return StreamPart(value, file_name)  # type: ignore[arg-type]


VALUES = {"bytes": b"data", "file": "some/file.txt", "stream": io.BytesIO(b"data")}


@parametrize_class
class TestRequiredArguments(unittest.TestCase):
    @parametrize("kind", ["bytes", "file", "stream"])
    def test_missing_file_name(self, kind: str) -> None:
        with self.assertRaises(MissingArgumentError):
            make_part(kind, VALUES[kind], None)

    @parametrize("kind", ["bytes", "file", "stream"])
    def test_missing_value(self, kind: str) -> None:
        with self.assertRaises(MissingArgumentError):
            make_part(kind, None, "f.txt")

    def test_missing_argument_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            StreamPart(None, "f.txt")

    def test_stream_must_be_readable(self) -> None:
        with self.assertRaises(TypeError):
            StreamPart(b"not a stream", "f.txt")


class TestMultipartItem(unittest.TestCase):
    def test_metadata(self) -> None:
        part = ByteArrayPart(b"abc", "a.bin", "application/octet-stream", "blob")
        self.assertEqual(part.file_name, "a.bin")
        self.assertEqual(part.content_type, "application/octet-stream")
        self.assertEqual(part.name, "blob")

    def test_defaults(self) -> None:
        part = ByteArrayPart(b"abc", "a.bin")
        self.assertIsNone(part.content_type)
        self.assertIsNone(part.name)

    def test_read_only(self) -> None:
        part = ByteArrayPart(b"abc", "a.bin")
        with self.assertRaises(AttributeError):
            part.file_name = "b.bin"  # type: ignore[misc]
        with self.assertRaises(AttributeError):
            part.value = b"def"  # type: ignore[misc]

    def test_repr(self) -> None:
        part = ByteArrayPart(b"abc", "a.bin", name="blob")
        self.assertEqual(repr(part), "ByteArrayPart(file_name='a.bin', content_type=None, name='blob')")

    def test_unknown_item(self) -> None:
        item = MultipartItem("f.txt")
        with self.assertRaises(TypeError):
            item.to_content()


class TestContentType(unittest.TestCase):
    def test_sets_header(self) -> None:
        content = ByteArrayPart(b"{}", "a.json", "application/json").to_content()
        self.assertEqual(content.content_type, "application/json")
        self.assertEqual(content.headers, {"Content-Type": "application/json"})

    def test_with_parameters(self) -> None:
        content = ByteArrayPart(b"hi", "a.txt", "text/plain; charset=utf-8").to_content()
        self.assertEqual(content.content_type, "text/plain; charset=utf-8")

    def test_absent(self) -> None:
        content = ByteArrayPart(b"hi", "a.txt").to_content()
        self.assertIsNone(content.content_type)
        self.assertEqual(content.headers, {})

    def test_empty(self) -> None:
        content = ByteArrayPart(b"hi", "a.txt", "").to_content()
        self.assertIsNone(content.content_type)

    def test_invalid(self) -> None:
        part = ByteArrayPart(b"hi", "a.txt", "not a media type")
        with self.assertRaises(InvalidContentTypeError):
            part.to_content()

    def test_invalid_does_not_open_file(self) -> None:
        part = FileInfoPart("/does/not/exist", "a.txt", "text")
        # The content type is checked before the file is opened.
        with self.assertRaises(InvalidContentTypeError):
            part.to_content()

    def test_stream_part(self) -> None:
        content = StreamPart(io.BytesIO(b"x"), "x.txt", "text/plain").to_content()
        self.assertEqual(content.content_type, "text/plain")
        content.close()


class TestByteArrayPart(unittest.TestCase):
    def test_round_trip(self) -> None:
        data = bytes(range(256)) * 50
        content = to_content(ByteArrayPart(data, "data.bin"))
        self.assertIsInstance(content, BytesContent)
        self.assertEqual(content.read(), data)
        self.assertEqual(content.length, len(data))

    def test_single_chunk(self) -> None:
        data = b"x" * 10000
        chunks = list(ByteArrayPart(data, "x.bin").to_content().iter_chunks())
        self.assertEqual(chunks, [data])

    def test_snapshot_of_mutable_buffer(self) -> None:
        buf = bytearray(b"abc")
        part = ByteArrayPart(buf, "a.bin")
        buf[0:1] = b"z"
        self.assertEqual(part.value, b"abc")
        self.assertEqual(part.to_content().read(), b"abc")


class TestFileInfoPart(unittest.TestCase):
    def setUp(self) -> None:
        self.dir = tempfile.TemporaryDirectory()
        self.path = Path(self.dir.name) / "upload.bin"
        self.data = os.urandom(10000)
        self.path.write_bytes(self.data)

    def tearDown(self) -> None:
        self.dir.cleanup()

    def test_value_is_path(self) -> None:
        part = FileInfoPart(str(self.path), "upload.bin")
        self.assertEqual(part.value, self.path)

    def test_read(self) -> None:
        content = FileInfoPart(self.path, "upload.bin").to_content()
        self.assertIsInstance(content, StreamContent)
        self.assertEqual(content.length, len(self.data))
        self.assertEqual(content.read(), self.data)

    def test_file_closed_after_read(self) -> None:
        content = FileInfoPart(self.path, "upload.bin").to_content()
        assert isinstance(content, StreamContent)
        content.read()
        self.assertTrue(content.stream.closed)  # type: ignore[attr-defined]

    def test_file_closed_by_context_manager(self) -> None:
        with FileInfoPart(self.path, "upload.bin").to_content() as content:
            assert isinstance(content, StreamContent)
        self.assertTrue(content.stream.closed)  # type: ignore[attr-defined]

    def test_opened_lazily(self) -> None:
        missing = Path(self.dir.name) / "missing.bin"
        part = FileInfoPart(missing, "missing.bin")
        missing.write_bytes(b"late")
        self.assertEqual(part.to_content().read(), b"late")

    def test_missing_file(self) -> None:
        part = FileInfoPart(Path(self.dir.name) / "missing.bin", "missing.bin")
        with self.assertRaises(FileError) as ctx:
            part.to_content()

        self.assertIsInstance(ctx.exception, OSError)
        self.assertIsInstance(ctx.exception.__cause__, FileNotFoundError)


class TestStreamPart(unittest.TestCase):
    def test_content(self) -> None:
        progress = lambda p: None  # noqa: E731
        part = StreamPart(io.BytesIO(b"hello"), "hello.txt", progress=progress)
        self.assertIs(part.progress, progress)

        content = part.to_content()
        self.assertIsInstance(content, StreamProgressContent)
        self.assertEqual(content.read(), b"hello")

    def test_length_from_current_position(self) -> None:
        stream = io.BytesIO(b"0123456789")
        stream.seek(4)
        content = StreamPart(stream, "digits.txt").to_content()
        self.assertEqual(content.length, 6)
        self.assertEqual(content.read(), b"456789")
