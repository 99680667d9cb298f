"""Exception hierarchy shared across colorgate."""


class ColorgateError(Exception):
    """Base class for all colorgate errors."""

    pass


class DecodeError(ColorgateError):
    """Raised when image bytes cannot be decoded into a raster.

    Covers empty buffers, corrupt data, and unsupported formats. Inside
    the retry loop this is treated as a fetch failure for the current
    attempt only; a fresh generation is still allowed.
    """

    pass
