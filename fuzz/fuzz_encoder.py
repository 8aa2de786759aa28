import io
import sys
from unittest.mock import Mock

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from formparts.encoder import MultipartEncoder
    from formparts.exceptions import FormPartError
    from formparts.parts import ByteArrayPart, StreamPart

on_progress = Mock()


def encode_field(fdp: EnhancedDataProvider, encoder: MultipartEncoder) -> None:
    encoder.add_field(fdp.ConsumeFieldName("field"), fdp.ConsumeRandomBytes())


def encode_bytes(fdp: EnhancedDataProvider, encoder: MultipartEncoder) -> None:
    part = ByteArrayPart(
        fdp.ConsumeRandomBytes(),
        fdp.ConsumeRandomString(),
        fdp.ConsumeRandomString(),
        name=fdp.ConsumeFieldName("bytes"),
    )
    encoder.add(part)


def encode_stream(fdp: EnhancedDataProvider, encoder: MultipartEncoder) -> None:
    part = StreamPart(
        io.BytesIO(fdp.ConsumeRandomBytes()),
        fdp.ConsumeRandomString(),
        name="stream",
        progress=on_progress,
    )
    encoder.add(part)


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    targets = [encode_field, encode_bytes, encode_stream]

    try:
        encoder = MultipartEncoder(boundary=fdp.ConsumeRandomString() or None)
        for _ in range(fdp.ConsumeIntInRange(1, 4)):
            fdp.PickValueInList(targets)(fdp, encoder)
        expected = encoder.content_length
        body = encoder.to_bytes()
    except (FormPartError, UnicodeEncodeError):
        return

    assert expected == len(body), (expected, len(body))


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
