from ._version import __version__
from .content import BytesContent, Content, StreamContent, StreamProgressContent, parse_options_header
from .encoder import MultipartEncoder, choose_boundary, encode_multipart
from .parts import ByteArrayPart, FileInfoPart, MultipartItem, StreamPart, to_content

__all__ = (
    "__version__",
    "ByteArrayPart",
    "BytesContent",
    "Content",
    "FileInfoPart",
    "MultipartEncoder",
    "MultipartItem",
    "StreamContent",
    "StreamPart",
    "StreamProgressContent",
    "choose_boundary",
    "encode_multipart",
    "parse_options_header",
    "to_content",
)
