"""PPM image decoding.

Reads 8-bit portable pixel maps in the ASCII (``P3``) and binary (``P6``)
variants and converts them into the buffer layout expected by a texture upload:
pixel order reversed, so row 0 of the buffer is the bottom row of the image,
and each RGB triple swapped to BGR.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .errors import (
    MalformedLine,
    TruncatedData,
    UnreadableFile,
    UnsupportedDepth,
    UnsupportedFormat,
)

logger = logging.getLogger(__name__)

ASCII_MAGIC = "P3"
BINARY_MAGIC = "P6"
SUPPORTED_MAGIC = (ASCII_MAGIC, BINARY_MAGIC)
MAX_SAMPLE_VALUE = 255

_WHITESPACE = frozenset(b" \t\n\r\v\f")
_COMMENT = ord("#")
_NEWLINE = ord("\n")


@dataclass
class DecodedImage:
    """Decoded texture pixels and dimensions.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        pixels: Flat uint8 buffer of length 3 * width * height, bottom row
            first, BGR channel order
        max_value: Declared maximum sample value
        magic: Magic token of the source file
    """
    width: int
    height: int
    pixels: np.ndarray
    max_value: int = MAX_SAMPLE_VALUE
    magic: str = BINARY_MAGIC

    @property
    def nbytes(self) -> int:
        return int(self.pixels.size)

    def as_array(self) -> np.ndarray:
        """Return the buffer as a (height, width, 3) view."""
        return self.pixels.reshape(self.height, self.width, 3)


class _HeaderReader:
    """Cursor over the raw file bytes used to pull header tokens."""

    def __init__(self, data: bytes, source: str):
        self.data = data
        self.source = source
        self.pos = 0

    def line_number(self) -> int:
        return self.data.count(b"\n", 0, self.pos) + 1

    def skip_whitespace_and_comments(self) -> None:
        data = self.data
        while self.pos < len(data):
            byte = data[self.pos]
            if byte in _WHITESPACE:
                self.pos += 1
            elif byte == _COMMENT:
                end = data.find(b"\n", self.pos)
                self.pos = len(data) if end < 0 else end + 1
            else:
                break

    def token(self) -> bytes:
        self.skip_whitespace_and_comments()
        start = self.pos
        data = self.data
        while self.pos < len(data) and data[self.pos] not in _WHITESPACE and data[self.pos] != _COMMENT:
            self.pos += 1
        return data[start:self.pos]

    def integer(self, name: str) -> int:
        token = self.token()
        if not token:
            raise TruncatedData(f"{self.source}: missing {name} in header")
        if not token.isdigit():
            raise MalformedLine(
                f"invalid {name} {token.decode('latin-1')!r}",
                source=self.source,
                line_number=self.line_number(),
            )
        return int(token)


def _read_header(reader: _HeaderReader) -> Tuple[str, int, int, int]:
    magic = reader.token().decode("latin-1")
    if magic not in SUPPORTED_MAGIC:
        raise UnsupportedFormat(
            f"{reader.source}: unsupported PPM format {magic!r}, only P3 and P6 are supported"
        )

    width = reader.integer("width")
    height = reader.integer("height")
    max_value = reader.integer("max value")

    if width <= 0 or height <= 0:
        raise MalformedLine(
            f"image dimensions must be positive, got {width}x{height}",
            source=reader.source,
            line_number=reader.line_number(),
        )
    if max_value > MAX_SAMPLE_VALUE:
        raise UnsupportedDepth(
            f"{reader.source}: max value {max_value} exceeds {MAX_SAMPLE_VALUE}, "
            f"only 8-bit PPM files are supported"
        )
    if max_value == 0:
        raise MalformedLine(
            "max value must be positive",
            source=reader.source,
            line_number=reader.line_number(),
        )

    return magic, width, height, max_value


def _read_binary_samples(reader: _HeaderReader, count: int) -> np.ndarray:
    data = reader.data
    # Exactly one whitespace byte separates the max value from the samples
    if reader.pos >= len(data):
        raise TruncatedData(f"{reader.source}: no sample data after header")
    if data[reader.pos] not in _WHITESPACE:
        raise MalformedLine(
            "expected a single whitespace byte after max value",
            source=reader.source,
            line_number=reader.line_number(),
        )
    reader.pos += 1

    available = len(data) - reader.pos
    if available < count:
        raise TruncatedData(
            f"{reader.source}: expected {count} sample bytes, found {available}"
        )
    return np.frombuffer(data, dtype=np.uint8, count=count, offset=reader.pos)


def _read_ascii_samples(reader: _HeaderReader, count: int) -> np.ndarray:
    tokens: List[bytes] = reader.data[reader.pos:].split(maxsplit=count)[:count]
    if len(tokens) < count:
        raise TruncatedData(
            f"{reader.source}: expected {count} samples, found {len(tokens)}"
        )

    samples = np.empty(count, dtype=np.uint8)
    for i, token in enumerate(tokens):
        if not token.isdigit():
            raise MalformedLine(
                f"invalid sample {token.decode('latin-1')!r} at position {i}",
                source=reader.source,
            )
        samples[i] = int(token) & 0xFF
    return samples


def flip_and_swap(samples: np.ndarray) -> np.ndarray:
    """Reverse pixel order and swap RGB to BGR in a single pass.

    For input triple ``i`` the output index is ``len - 3 - i``, with
    ``out[idx] = in[i + 2]``, ``out[idx + 1] = in[i + 1]``,
    ``out[idx + 2] = in[i]``.

    Args:
        samples: Flat uint8 array whose length is a multiple of 3

    Returns:
        New flat uint8 array of the same length
    """
    return np.ascontiguousarray(samples.reshape(-1, 3)[::-1, ::-1]).reshape(-1)


def decode_ppm(data: bytes, source: str = "<stream>") -> DecodedImage:
    """Decode PPM file contents.

    Args:
        data: Raw file bytes
        source: Name used in error messages

    Returns:
        Decoded image

    Raises:
        UnsupportedFormat: Magic token is not P3 or P6
        UnsupportedDepth: Max sample value above 255
        MalformedLine: Non-numeric or non-positive header field or sample
        TruncatedData: Fewer than width * height * 3 samples
    """
    reader = _HeaderReader(data, source)
    magic, width, height, max_value = _read_header(reader)
    count = width * height * 3

    logger.debug(f"PPM {source}: format {magic}, {width}x{height}, max value {max_value}")

    if magic == BINARY_MAGIC:
        samples = _read_binary_samples(reader, count)
    else:
        samples = _read_ascii_samples(reader, count)

    return DecodedImage(
        width=width,
        height=height,
        pixels=flip_and_swap(samples),
        max_value=max_value,
        magic=magic,
    )


def load_ppm(path: str) -> DecodedImage:
    """Read and decode a PPM file.

    Args:
        path: Path to a P3 or P6 file

    Returns:
        Decoded image

    Raises:
        UnreadableFile: The file cannot be opened or read
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise UnreadableFile(str(path), e.strerror or str(e)) from e

    image = decode_ppm(data, source=str(path))
    logger.info(f"Loaded PPM texture {path}: {image.width}x{image.height} pixels")
    return image
