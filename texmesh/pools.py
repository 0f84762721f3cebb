"""Indexed vertex pools.

Raw attribute storage filled while a mesh file is read. Positions and normals
are 3-tuples, texture coordinates 2-tuples, all kept in file order. Faces refer
to entries by index, so every lookup here is bounds checked explicitly instead
of relying on list indexing (which would silently accept negative indices).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .errors import UnresolvedReference

logger = logging.getLogger(__name__)

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

ZERO_NORMAL: Vec3 = (0.0, 0.0, 0.0)
ZERO_TEXCOORD: Vec2 = (0.0, 0.0)


class VertexPool:
    """Append-only position, normal and texture coordinate pools."""

    def __init__(self):
        self.positions: List[Vec3] = []
        self.normals: List[Vec3] = []
        self.texcoords: List[Vec2] = []

    def add_position(self, position: Vec3) -> int:
        self.positions.append(position)
        return len(self.positions) - 1

    def add_normal(self, normal: Vec3) -> int:
        self.normals.append(normal)
        return len(self.normals) - 1

    def add_texcoord(self, texcoord: Vec2) -> int:
        self.texcoords.append(texcoord)
        return len(self.texcoords) - 1

    def position(self, index: int) -> Vec3:
        """Look up a position by 0-based index.

        Raises:
            UnresolvedReference: If the index is outside the pool
        """
        if not 0 <= index < len(self.positions):
            raise UnresolvedReference("position", index, len(self.positions))
        return self.positions[index]

    def normal(self, index: int) -> Vec3:
        """Look up a normal by 0-based index.

        Raises:
            UnresolvedReference: If the index is outside the pool
        """
        if not 0 <= index < len(self.normals):
            raise UnresolvedReference("normal", index, len(self.normals))
        return self.normals[index]

    def texcoord(self, index: int, strict: bool = False) -> Vec2:
        """Look up a texture coordinate by 0-based index.

        Out-of-range indices are clamped to 0 and reported as a warning,
        unless ``strict`` is set, in which case they raise like the other
        pools. An empty pool yields ``(0.0, 0.0)``.

        Args:
            index: 0-based texture coordinate index
            strict: Raise instead of clamping

        Returns:
            (s, t) texture coordinate
        """
        if 0 <= index < len(self.texcoords):
            return self.texcoords[index]

        if strict:
            raise UnresolvedReference("texcoord", index, len(self.texcoords))

        logger.warning(
            f"Texture coordinate index {index + 1} out of range "
            f"({len(self.texcoords)} available), clamping to 1"
        )
        if not self.texcoords:
            return ZERO_TEXCOORD
        return self.texcoords[0]

    def counts(self) -> Dict[str, int]:
        return {
            "positions": len(self.positions),
            "normals": len(self.normals),
            "texcoords": len(self.texcoords),
        }

    def clear(self) -> None:
        self.positions.clear()
        self.normals.clear()
        self.texcoords.clear()
