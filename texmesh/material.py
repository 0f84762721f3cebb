"""Material library decoding.

Only the name and the diffuse texture map of a material are read. The texture
path is resolved against the material file's directory but never opened here:
the image is decoded later, once the caller is ready to hold pixel data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import MalformedLine, UnreadableFile

logger = logging.getLogger(__name__)

DIFFUSE_MAP_DIRECTIVE = "map_Kd"


@dataclass
class Material:
    """A named material with an optional diffuse texture.

    Attributes:
        name: Material name from ``newmtl``
        diffuse_texture: Texture path as written in the file
        texture_path: Texture path resolved against the material file
    """
    name: str = ""
    diffuse_texture: Optional[str] = None
    texture_path: Optional[str] = None

    @property
    def has_texture(self) -> bool:
        return self.texture_path is not None


def resolve_relative(base_path: str, name: str) -> str:
    """Resolve a file name against the directory of another file.

    Everything in ``base_path`` up to and including its last ``/`` or ``\\``
    is prepended to ``name``. A base path with no separator leaves ``name``
    unchanged.
    """
    base_path = str(base_path)
    cut = max(base_path.rfind("/"), base_path.rfind("\\"))
    directory = base_path[:cut + 1] if cut >= 0 else ""
    return directory + name


def parse_mtl(lines: Iterable[str], base_path: str = "", source: str = "<stream>") -> Material:
    """Decode material library lines.

    Args:
        lines: Text lines of the material file
        base_path: Path of the material file, used to resolve texture paths
        source: Name used in error messages

    Returns:
        The decoded material. If the library declares several, the last
        ``newmtl`` name is kept.
    """
    material = Material()

    for line_number, line in enumerate(lines, start=1):
        tokens = line.split()
        if not tokens:
            continue

        directive = tokens[0]
        if directive == "newmtl":
            if len(tokens) < 2:
                raise MalformedLine("newmtl without a name", source, line_number, line)
            material.name = tokens[1]
            logger.debug(f"Found material: {material.name}")
        elif directive == DIFFUSE_MAP_DIRECTIVE:
            if len(tokens) < 2:
                raise MalformedLine(f"{DIFFUSE_MAP_DIRECTIVE} without a path", source, line_number, line)
            # Map options such as -s or -o precede the file name
            material.diffuse_texture = tokens[-1]
            material.texture_path = resolve_relative(base_path, material.diffuse_texture)
            logger.debug(f"Found texture path: {material.texture_path}")

    return material


def load_mtl(path: str) -> Material:
    """Read and decode a material library file.

    Raises:
        UnreadableFile: The file cannot be opened
        MalformedLine: A directive is missing its argument
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            material = parse_mtl(f, base_path=str(path), source=str(path))
    except OSError as e:
        raise UnreadableFile(str(path), e.strerror or str(e)) from e

    logger.info(
        f"Loaded material '{material.name}' from {path}"
        + (f" with texture {material.texture_path}" if material.has_texture else "")
    )
    return material
