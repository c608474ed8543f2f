"""Custom exceptions for imagediff."""


class ImageDiffError(Exception):
    """Base exception for all imagediff errors."""

    pass


class ConfigurationError(ImageDiffError):
    """Raised when the flag registry does not match what the code expects."""

    pass


class PathExpansionError(ImageDiffError):
    """Raised when a user-supplied path cannot be expanded."""

    pass


class InvalidPlatformError(ImageDiffError):
    """Raised when a platform specifier cannot be parsed."""

    pass


class AcquisitionError(ImageDiffError):
    """Raised when an image reference cannot be resolved or pulled."""

    pass


class ImageNotFoundError(AcquisitionError):
    """Raised when an image is absent locally and pulling is not allowed."""

    pass


class RegistryError(AcquisitionError):
    """Raised when a registry request fails."""

    pass


class TarReadError(AcquisitionError):
    """Raised when unable to read or parse an image tar archive."""

    pass


class DigestMismatchError(AcquisitionError):
    """Raised when written content does not match its expected digest."""

    pass


class BlobNotFoundError(ImageDiffError):
    """Raised when a blob is missing from the content store."""

    pass


class ComparisonError(ImageDiffError):
    """Raised when the diff engine fails.

    The partially built report, if any, is kept in ``report``.
    """

    def __init__(self, message: str, report=None) -> None:
        super().__init__(message)
        self.report = report


class UnavailableError(ComparisonError):
    """Raised when the comparison cannot be decided with the local content.

    Typically the images carry no manifest for the selected platforms.
    """

    pass
