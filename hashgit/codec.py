"""Loose object envelope.

A loose object is ``<kind> <decimal-length>\\0<payload>`` compressed as a
whole with zlib.
"""

import zlib
from typing import Tuple

from .errors import Malformed


#: Compression level used when none is given. Favours speed over size.
DEFAULT_LEVEL = 1


def header(kind: str, length: int) -> bytes:
    """Return the uncompressed envelope header for a payload of `length`
    bytes.
    """
    return "{0} {1}".format(kind, length).encode("utf-8") + b"\0"


def encode(kind: str, payload: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """Wrap `payload` in an envelope and compress it.

    Args:
        kind: Object kind, e.g. ``"blob"``.
        payload: Raw object payload.
        level: zlib compression level.

    Returns:
        bytes: Compressed loose object.
    """
    return zlib.compress(header(kind, len(payload)) + payload, level)


def decode(data: bytes) -> Tuple[str, bytes]:
    """Decompress a loose object and split it into its kind and payload.

    The declared length must match the payload exactly.

    Raises:
        Malformed: If the data does not decompress, has no header terminator,
            or the header does not parse or disagrees with the payload.
    """
    try:
        raw = zlib.decompress(data)
    except zlib.error as exc:
        raise Malformed("object is not zlib compressed: {0}".format(exc)) from exc

    nul = raw.find(b"\0")
    if nul < 0:
        raise Malformed("object header is not terminated")

    try:
        head = raw[:nul].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Malformed("object header is not valid UTF-8") from exc

    kind, sep, length = head.partition(" ")
    if not sep or not kind:
        raise Malformed("object header {0!r} has no kind".format(head))

    if not (length.isascii() and length.isdigit()):
        raise Malformed("object length {0!r} is not an integer".format(length))

    payload = raw[nul + 1:]
    if int(length) != len(payload):
        raise Malformed(
            "object declares {0} bytes but holds {1}".format(length, len(payload))
        )

    return kind, payload
