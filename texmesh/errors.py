"""Exceptions raised by the mesh, material and image decoders."""

from __future__ import annotations

from typing import Optional


class TexMeshError(Exception):
    """Base class for all decoding errors."""


class UnreadableFile(TexMeshError):
    """A file does not exist or cannot be opened."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Cannot read file: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class UnsupportedFormat(TexMeshError):
    """The image magic number is not one of the supported variants."""


class UnsupportedDepth(TexMeshError):
    """The image declares a maximum sample value above 255."""


class MalformedLine(TexMeshError):
    """A required numeric token is absent or cannot be parsed."""

    def __init__(
        self,
        message: str,
        source: str = "<stream>",
        line_number: Optional[int] = None,
        line: Optional[str] = None
    ):
        self.source = source
        self.line_number = line_number
        self.line = line
        location = source if line_number is None else f"{source}:{line_number}"
        super().__init__(f"{location}: {message}")


class UnresolvedReference(TexMeshError):
    """A face references a pool entry that does not exist."""

    def __init__(self, kind: str, index: int, size: int, source: str = "<stream>",
                 line_number: Optional[int] = None):
        self.kind = kind
        self.index = index
        self.size = size
        self.source = source
        self.line_number = line_number
        location = source if line_number is None else f"{source}:{line_number}"
        super().__init__(
            f"{location}: {kind} index {index + 1} out of range (pool has {size} entries)"
        )


class TruncatedData(TexMeshError):
    """Image sample data ends before width * height * 3 samples were read."""
