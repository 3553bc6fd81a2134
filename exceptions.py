class HoughError(Exception):
    """Base class for errors raised by the line detector."""


class InvalidParameter(HoughError, ValueError):
    """A step size, mask setting or render option is out of range."""


class ImageLoadError(HoughError, OSError):
    """The input image is missing or could not be decoded."""


class ImageWriteError(HoughError, OSError):
    """The rendered line image could not be written."""
