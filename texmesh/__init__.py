"""Textured model decoding.

Decodes triangulated Wavefront OBJ meshes, their material libraries and PPM
textures into flat, render-ready buffers.
"""

from __future__ import annotations

__version__ = "0.1.0"
