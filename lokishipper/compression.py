"""Gzip compression for request bodies."""

import gzip

GZIP_MAGIC = b"\x1f\x8b"


class EmptyInputError(ValueError):
    """Raised when asked to compress zero bytes."""

    pass


def gzip_compress(data: bytes) -> bytes:
    """
    Compress ``data`` with gzip (RFC 1952).

    The header mtime is fixed at 0 so identical input always produces
    identical output.

    Raises:
        EmptyInputError: if ``data`` is empty.
    """
    if not data:
        raise EmptyInputError("cannot compress empty data")
    return gzip.compress(data, mtime=0)
