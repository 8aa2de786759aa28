class FormPartError(ValueError):
    """Base error class for multipart body construction."""

    pass


class MissingArgumentError(FormPartError):
    """Raised when a part is constructed without one of its required
    arguments (the payload or the file name).
    """

    pass


class InvalidContentTypeError(FormPartError):
    """Raised when a content type is not a ``type/subtype`` media type."""

    pass


class InvalidBoundaryError(FormPartError):
    """Raised when a multipart boundary is empty, too long, or contains
    characters that RFC 2046 does not allow.
    """

    pass


class ContentConsumedError(FormPartError):
    """A stream-backed content can only be read once.  This is raised on the
    second attempt.
    """

    pass


class ContentError(FormPartError, OSError):
    """Exception class for I/O problems while producing or writing content."""

    pass


class FileError(ContentError):
    """Raised when the file behind a file part can't be opened."""

    pass


class WriteError(ContentError):
    """This exception is raised when writing a chunk to the destination
    fails, or when the progress callback raises while a body is being
    written.
    """

    pass
