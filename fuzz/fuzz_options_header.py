import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from formparts.content import validate_media_type
    from formparts.exceptions import InvalidContentTypeError


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    try:
        validate_media_type(fdp.ConsumeRandomString())
    except InvalidContentTypeError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
