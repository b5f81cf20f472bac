"""Conversion errors."""


class ConversionError(Exception):
    """Base class for every error raised by the conversion engine."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message if cause is None else f"{message}: {cause}")


class CorruptArchive(ConversionError):
    """The input bytes are not a readable ZIP container."""


class EntryNotFound(ConversionError, KeyError):
    """An archive path has no entry."""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        super().__init__(f"Entry not found in archive: {path}", cause)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class MissingRootfile(ConversionError):
    """META-INF/container.xml is absent or names no package document."""


class InvalidPackageDocument(ConversionError):
    """The OPF package document is missing, unparseable or incomplete."""


class SourceFileNotFound(ConversionError, FileNotFoundError):
    """The EPUB file handed to convert_and_save does not exist."""


class OutputWriteError(ConversionError):
    """book.json could not be written."""
