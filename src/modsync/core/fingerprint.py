"""Content fingerprints for change detection.

Small files are hashed in full. Large files are hashed from three fixed-size
windows (start, middle, end) so that multi-gigabyte payloads are not read
end to end. The file size is appended to the digest, which keeps files with
colliding windows but different lengths apart.

The fingerprint is a change-detection value, not a tamper-proof checksum.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

from modsync.core.constants import SAMPLE_SIZE, SAMPLE_THRESHOLD


def encode_uvarint(value: int) -> bytes:
    """Encode a non-negative integer as a little-endian base-128 varint.

    Args:
        value: Integer to encode.

    Returns:
        Encoded bytes (7 payload bits per byte, 0x80 continuation bit).
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative value: {value}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _read_exactly(f: BinaryIO, count: int) -> bytes:
    data = f.read(count)
    if len(data) != count:
        raise OSError(f"Short read: expected {count} bytes, got {len(data)}")
    return data


def fingerprint_stream(
    f: BinaryIO,
    size: int,
    sample_threshold: int = SAMPLE_THRESHOLD,
    sample_size: int = SAMPLE_SIZE,
) -> str:
    """Fingerprint an open binary stream of known size.

    Args:
        f: Seekable binary stream positioned anywhere.
        size: Total length of the stream in bytes.
        sample_threshold: Size at or above which sampling is used.
        sample_size: Length of each sampled window.

    Returns:
        Lowercase hex string of digest + varint(size).

    Raises:
        OSError: If fewer bytes than expected can be read.
    """
    hasher = hashlib.md5()

    if size >= sample_threshold and size >= 3 * sample_size:
        for offset in (0, size // 2, size - sample_size):
            f.seek(offset)
            hasher.update(_read_exactly(f, sample_size))
    else:
        f.seek(0)
        hasher.update(_read_exactly(f, size))

    return (hasher.digest() + encode_uvarint(size)).hex()


def fingerprint_file(
    path: Path,
    sample_threshold: int = SAMPLE_THRESHOLD,
    sample_size: int = SAMPLE_SIZE,
) -> str:
    """Compute the content fingerprint of a file.

    Args:
        path: File to fingerprint.
        sample_threshold: Size at or above which sampling is used.
        sample_size: Length of each sampled window.

    Returns:
        Lowercase hex fingerprint.

    Raises:
        OSError: If the file cannot be opened or read in full.
    """
    with open(path, "rb") as f:
        size = Path(path).stat().st_size
        return fingerprint_stream(f, size, sample_threshold, sample_size)
