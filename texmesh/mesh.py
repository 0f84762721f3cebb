"""Wavefront OBJ mesh decoding.

This module reads the triangulated OBJ subset used for textured models
(``v``, ``vn``, ``vt``, ``f`` and ``mtllib``) and flattens it into a list of
self-contained triangles. Each triangle corner carries its own copy of the
position, normal and texture coordinate, so nothing downstream needs to
resolve indices again.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .errors import MalformedLine, TexMeshError, UnreadableFile, UnresolvedReference
from .material import Material, load_mtl, resolve_relative
from .pools import ZERO_NORMAL, ZERO_TEXCOORD, Vec2, Vec3, VertexPool

logger = logging.getLogger(__name__)

# Base color baked into every vertex; colors are never read from the file
DEFAULT_VERTEX_COLOR: Vec3 = (0.7, 0.7, 0.7)

# Interleaved float layout of one vertex: attribute -> (offset, size)
VERTEX_LAYOUT: Dict[str, Tuple[int, int]] = {
    "position": (0, 3),
    "color": (3, 3),
    "normal": (6, 3),
    "texcoord": (9, 2),
}
VERTEX_STRIDE = 11


@dataclass(frozen=True)
class Vertex:
    """One triangle corner with all attributes stored by value."""
    position: Vec3
    color: Vec3
    normal: Vec3
    texcoord: Vec2

    def as_tuple(self) -> Tuple[float, ...]:
        return self.position + self.color + self.normal + self.texcoord


@dataclass(frozen=True)
class Triangle:
    vertices: Tuple[Vertex, Vertex, Vertex]

    def __iter__(self):
        return iter(self.vertices)


@dataclass
class MeshData:
    """Result of decoding a mesh file.

    Attributes:
        triangles: Decoded triangles in file order
        material: Material from the last successfully decoded library
        texture_path: Resolved diffuse texture path, not yet loaded
        source: Path or name of the decoded mesh
        counts: Number of positions, normals, texcoords and faces read
    """
    triangles: List[Triangle] = field(default_factory=list)
    material: Optional[Material] = None
    texture_path: Optional[str] = None
    source: str = "<stream>"
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    def to_vertex_array(self) -> np.ndarray:
        """Interleave all triangle corners into a float32 array.

        Returns:
            (3 * n_triangles, VERTEX_STRIDE) array laid out per VERTEX_LAYOUT
        """
        if not self.triangles:
            return np.zeros((0, VERTEX_STRIDE), dtype=np.float32)
        return np.array(
            [vertex.as_tuple() for triangle in self.triangles for vertex in triangle],
            dtype=np.float32,
        )


def _normalize(vector: Vec3) -> Optional[Vec3]:
    length = math.sqrt(vector[0] ** 2 + vector[1] ** 2 + vector[2] ** 2)
    if length == 0.0 or not math.isfinite(length):
        return None
    return (vector[0] / length, vector[1] / length, vector[2] / length)


class ObjDecoder:
    """Line-by-line OBJ decoder.

    The decoder owns the vertex pools for one decode. Values on a line are
    fully parsed before anything is appended, so a malformed line leaves the
    pools as they were.

    Args:
        base_path: Path of the mesh file, used to resolve ``mtllib`` names
        source: Name used in error messages
        strict_texcoords: Raise on out-of-range texture coordinate indices
            instead of clamping them to the first entry
    """

    def __init__(self, base_path: str = "", source: str = "<stream>", strict_texcoords: bool = False):
        self.base_path = str(base_path)
        self.source = source
        self.strict_texcoords = strict_texcoords
        self.pool = VertexPool()
        self.mesh = MeshData(source=source)
        self._face_count = 0

    def decode(self, lines: Iterable[str]) -> MeshData:
        for line_number, line in enumerate(lines, start=1):
            self.feed(line, line_number)

        self.mesh.counts = dict(self.pool.counts(), faces=self._face_count)
        return self.mesh

    def feed(self, line: str, line_number: int = 0) -> None:
        tokens = line.split()
        if not tokens:
            return

        directive = tokens[0]
        if directive == "v":
            self.pool.add_position(self._floats(tokens, 3, line, line_number))
        elif directive == "vn":
            normal = _normalize(self._floats(tokens, 3, line, line_number))
            if normal is None:
                raise MalformedLine("zero-length normal", self.source, line_number, line)
            self.pool.add_normal(normal)
        elif directive == "vt":
            self.pool.add_texcoord(self._floats(tokens, 2, line, line_number))
        elif directive == "f":
            self._face(tokens, line, line_number)
        elif directive == "mtllib":
            self._material_library(tokens[1:])

    def _floats(self, tokens: List[str], count: int, line: str, line_number: int) -> tuple:
        if len(tokens) < count + 1:
            raise MalformedLine(
                f"'{tokens[0]}' needs {count} values, got {len(tokens) - 1}",
                self.source, line_number, line,
            )
        try:
            return tuple(float(token) for token in tokens[1:count + 1])
        except ValueError:
            raise MalformedLine(
                f"non-numeric value in '{tokens[0]}' line", self.source, line_number, line
            ) from None

    def _face_indices(self, token: str, line: str, line_number: int) -> Tuple[int, Optional[int], Optional[int]]:
        """Split a face token into 0-based (position, texcoord, normal) indices.

        Absent texcoord or normal slots are returned as None.
        """
        parts = token.split("/")
        if len(parts) > 3 or not parts[0]:
            raise MalformedLine(f"invalid face vertex '{token}'", self.source, line_number, line)

        try:
            position = int(parts[0]) - 1
            texcoord = int(parts[1]) - 1 if len(parts) > 1 and parts[1] else None
            normal = int(parts[2]) - 1 if len(parts) > 2 and parts[2] else None
        except ValueError:
            raise MalformedLine(
                f"non-numeric index in face vertex '{token}'", self.source, line_number, line
            ) from None

        return position, texcoord, normal

    def _corner(self, token: str, line: str, line_number: int) -> Vertex:
        position_index, texcoord_index, normal_index = self._face_indices(token, line, line_number)
        pool = self.pool

        try:
            position = pool.position(position_index)

            if normal_index is not None:
                normal = pool.normal(normal_index)
            elif pool.normals:
                normal = pool.normal(0)
            else:
                normal = ZERO_NORMAL

            if texcoord_index is not None:
                texcoord = pool.texcoord(texcoord_index, strict=self.strict_texcoords)
            elif pool.texcoords:
                texcoord = pool.texcoord(0)
            else:
                texcoord = ZERO_TEXCOORD
        except UnresolvedReference as e:
            raise UnresolvedReference(e.kind, e.index, e.size, self.source, line_number) from None

        return Vertex(position=position, color=DEFAULT_VERTEX_COLOR, normal=normal, texcoord=texcoord)

    def _face(self, tokens: List[str], line: str, line_number: int) -> None:
        corners = tokens[1:]
        if len(corners) != 3:
            raise MalformedLine(
                f"only triangular faces are supported, got {len(corners)} vertices",
                self.source, line_number, line,
            )

        triangle = Triangle(tuple(self._corner(token, line, line_number) for token in corners))
        self.mesh.triangles.append(triangle)
        self._face_count += 1

    def _material_library(self, names: List[str]) -> None:
        for name in names:
            path = resolve_relative(self.base_path, name)
            try:
                material = load_mtl(path)
            except TexMeshError as e:
                logger.warning(f"Skipping material library {path}: {e}")
                continue

            self.mesh.material = material
            if material.has_texture:
                self.mesh.texture_path = material.texture_path


def parse_obj(
    lines: Iterable[str],
    base_path: str = "",
    source: str = "<stream>",
    strict_texcoords: bool = False
) -> MeshData:
    """Decode OBJ text lines into a triangle list.

    Args:
        lines: Text lines of the mesh file
        base_path: Path of the mesh file, used to resolve ``mtllib`` names
        source: Name used in error messages
        strict_texcoords: Raise on out-of-range texture coordinate indices

    Returns:
        Decoded mesh

    Raises:
        MalformedLine: A numeric field is missing or invalid, or a face is
            not a triangle
        UnresolvedReference: A face position or normal index is out of range
    """
    decoder = ObjDecoder(base_path=base_path, source=source, strict_texcoords=strict_texcoords)
    return decoder.decode(lines)


def load_obj(path: str, strict_texcoords: bool = False) -> MeshData:
    """Read and decode an OBJ file.

    Material libraries are resolved relative to ``path``. A missing or broken
    material library is logged and the mesh is returned without it.

    Raises:
        UnreadableFile: The mesh file cannot be opened
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            mesh = parse_obj(f, base_path=str(path), source=str(path), strict_texcoords=strict_texcoords)
    except OSError as e:
        raise UnreadableFile(str(path), e.strerror or str(e)) from e

    counts = mesh.counts
    logger.info(
        f"Loaded OBJ {path}: {counts['positions']} vertices, {counts['normals']} normals, "
        f"{counts['texcoords']} texcoords, {counts['faces']} faces, "
        f"{mesh.triangle_count} triangles"
    )
    return mesh
