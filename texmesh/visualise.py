"""Visualization utilities for decoded models.

These helpers hand decoded meshes and textures to Open3D, OpenCV and
matplotlib for inspection. They are not needed for decoding itself.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import matplotlib.pyplot as plt
import numpy as np
import open3d as o3d

from .mesh import VERTEX_LAYOUT, MeshData
from .ppm import DecodedImage

logger = logging.getLogger(__name__)


def _attribute(vertex_array: np.ndarray, name: str) -> np.ndarray:
    offset, size = VERTEX_LAYOUT[name]
    return np.ascontiguousarray(vertex_array[:, offset:offset + size])


def upright_image(image: DecodedImage, order: str = "rgb") -> np.ndarray:
    """Undo the decoder's pixel reversal.

    Args:
        image: Decoded texture (bottom row first, BGR)
        order: Channel order of the result, "rgb" or "bgr"

    Returns:
        (height, width, 3) uint8 array with row 0 at the top of the image
    """
    bgr = image.as_array()[::-1, ::-1]
    if order == "bgr":
        return np.ascontiguousarray(bgr)
    if order == "rgb":
        return np.ascontiguousarray(bgr[..., ::-1])
    raise ValueError(f"Unknown channel order: {order}")


def mesh_to_open3d(
    mesh: MeshData,
    image: Optional[DecodedImage] = None
) -> o3d.geometry.TriangleMesh:
    """Convert a decoded mesh to an Open3D triangle mesh.

    Args:
        mesh: Decoded mesh
        image: Decoded diffuse texture (optional)

    Returns:
        Open3D TriangleMesh with one vertex per triangle corner
    """
    vertex_array = mesh.to_vertex_array().astype(np.float64)
    n_corners = len(vertex_array)

    o3d_mesh = o3d.geometry.TriangleMesh()
    o3d_mesh.vertices = o3d.utility.Vector3dVector(_attribute(vertex_array, "position"))
    o3d_mesh.triangles = o3d.utility.Vector3iVector(
        np.arange(n_corners, dtype=np.int32).reshape(-1, 3)
    )
    o3d_mesh.vertex_normals = o3d.utility.Vector3dVector(_attribute(vertex_array, "normal"))
    o3d_mesh.vertex_colors = o3d.utility.Vector3dVector(_attribute(vertex_array, "color"))

    if image is not None and n_corners > 0:
        uvs = _attribute(vertex_array, "texcoord").copy()
        # Open3D samples textures with the origin at the top-left
        uvs[:, 1] = 1.0 - uvs[:, 1]
        o3d_mesh.triangle_uvs = o3d.utility.Vector2dVector(uvs)
        o3d_mesh.triangle_material_ids = o3d.utility.IntVector(
            np.zeros(n_corners // 3, dtype=np.int32)
        )
        o3d_mesh.textures = [o3d.geometry.Image(upright_image(image, "rgb"))]

    return o3d_mesh


def save_texture_preview(image: DecodedImage, output_path: str) -> bool:
    """Write a decoded texture back out as a regular image file.

    Args:
        image: Decoded texture
        output_path: Output file path, format chosen by extension

    Returns:
        True if successful, False otherwise
    """
    ok = cv2.imwrite(output_path, upright_image(image, "bgr"))
    if ok:
        logger.info(f"Texture preview saved to {output_path}")
    else:
        logger.error(f"Failed to write texture preview to {output_path}")
    return bool(ok)


def create_model_summary_image(
    mesh: MeshData,
    image: Optional[DecodedImage],
    output_path: str
) -> None:
    """Create a summary figure of a model: texture and UV layout.

    Args:
        mesh: Decoded mesh
        image: Decoded texture (optional)
        output_path: Path to save the visualization
    """
    fig, axs = plt.subplots(1, 2, figsize=(14, 7))

    if image is not None:
        # extent maps texture space [0, 1] onto the image
        axs[0].imshow(upright_image(image, "rgb"), extent=(0, 1, 0, 1))
        axs[0].set_title(f"Texture ({image.width}x{image.height})")
    else:
        axs[0].text(0.5, 0.5, "No texture", ha="center", va="center")
        axs[0].set_title("Texture")
    axs[0].axis('off')

    uvs = _attribute(mesh.to_vertex_array(), "texcoord")
    for corners in uvs.reshape(-1, 3, 2):
        closed = np.vstack((corners, corners[:1]))
        axs[1].plot(closed[:, 0], closed[:, 1], 'b-', linewidth=0.5, alpha=0.6)
    axs[1].set_xlim(0, 1)
    axs[1].set_ylim(0, 1)
    axs[1].set_aspect('equal')
    axs[1].set_title(f"UV Layout ({mesh.triangle_count} triangles)")

    plt.tight_layout()

    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Model summary image saved to {output_path}")


def show(
    mesh: MeshData,
    image: Optional[DecodedImage] = None,
    save_path: Optional[str] = None,
    window_size: Tuple[int, int] = (1280, 720)
) -> None:
    """Open an interactive viewer on a decoded model.

    Args:
        mesh: Decoded mesh
        image: Decoded texture (optional)
        save_path: Path to save screenshot (optional)
        window_size: Visualization window size
    """
    vis = o3d.visualization.Visualizer()
    vis.create_window(width=window_size[0], height=window_size[1])

    vis.add_geometry(o3d.geometry.TriangleMesh.create_coordinate_frame(size=1.0))
    vis.add_geometry(mesh_to_open3d(mesh, image))

    opt = vis.get_render_option()
    opt.background_color = np.array([0.1, 0.1, 0.1])
    opt.mesh_show_back_face = True

    vis.poll_events()
    vis.update_renderer()

    if save_path is not None:
        vis.capture_screen_image(save_path)
        logger.info(f"Screenshot saved to {save_path}")

    vis.run()
    vis.destroy_window()
