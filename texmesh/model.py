"""Two-phase textured model loading.

``TexturedModel`` is the surface handed to a renderer. Loading happens in two
steps because texture pixels usually can only be consumed once a rendering
context exists:

1. ``load_mesh`` decodes the mesh and its material and remembers the
   texture path, without touching the image.
2. ``load_pending_texture`` decodes that image and clears the pending path.

Example:
    model = TexturedModel()
    result = model.load_mesh("assets/house.obj")
    ...  # create the rendering context
    image = model.load_pending_texture()
"""

from __future__ import annotations

import logging
from typing import Dict, NamedTuple, Optional

import numpy as np

from .mesh import MeshData, load_obj
from .ppm import DecodedImage, load_ppm
from .timing import Timer

logger = logging.getLogger(__name__)


class LoadResult(NamedTuple):
    triangles: int
    has_deferred_texture: bool


class TexturedModel:
    """Mesh plus deferred diffuse texture.

    Args:
        strict_texcoords: Treat out-of-range texture coordinate indices as
            errors instead of clamping them
    """

    def __init__(self, strict_texcoords: bool = False):
        self.strict_texcoords = strict_texcoords
        self.mesh: Optional[MeshData] = None
        self.texture: Optional[DecodedImage] = None
        self.timings: Dict[str, float] = {}
        self._pending_texture: Optional[str] = None

    @property
    def pending_texture_path(self) -> Optional[str]:
        return self._pending_texture

    def load_mesh(self, path: str) -> LoadResult:
        """Decode a mesh file and record its texture for later loading.

        On failure the exception propagates and the previously loaded mesh,
        if any, is kept.

        Args:
            path: Path to the OBJ file

        Returns:
            Triangle count and whether a texture is waiting to be loaded
        """
        with Timer("Load mesh", logger) as timer:
            mesh = load_obj(path, strict_texcoords=self.strict_texcoords)

        self.mesh = mesh
        self.texture = None
        self._pending_texture = mesh.texture_path
        self.timings["load_mesh"] = timer.elapsed

        if self._pending_texture is not None:
            logger.info(f"Texture {self._pending_texture} deferred until load_pending_texture()")

        return LoadResult(mesh.triangle_count, self._pending_texture is not None)

    def load_pending_texture(self) -> Optional[DecodedImage]:
        """Decode the texture recorded by ``load_mesh``.

        The pending path is consumed whether or not decoding succeeds; a
        failed load is not retried.

        Returns:
            The decoded image, or None if no texture is pending
        """
        path = self._pending_texture
        if path is None:
            return None

        self._pending_texture = None
        with Timer("Load texture", logger) as timer:
            image = load_ppm(path)

        self.texture = image
        self.timings["load_texture"] = timer.elapsed
        return image

    def triangle_count(self) -> int:
        return 0 if self.mesh is None else self.mesh.triangle_count

    def vertex_array(self) -> np.ndarray:
        """Interleaved vertex data of the loaded mesh (see ``VERTEX_LAYOUT``)."""
        if self.mesh is None:
            return MeshData().to_vertex_array()
        return self.mesh.to_vertex_array()
