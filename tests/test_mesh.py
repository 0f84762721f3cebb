"""Tests for the OBJ mesh decoder.

This module tests directive parsing, face index resolution and the handling
of material libraries referenced from a mesh.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from texmesh import mesh
from texmesh.errors import MalformedLine, UnreadableFile, UnresolvedReference

POOLS = """\
v 0 0 0
v 1 0 0
v 0 1 0
vn 0 0 2
vn 0 3 0
vn 4 0 0
vt 0 0
vt 1 0
vt 0.25 0.75
"""


def parse(text, **kwargs):
    return mesh.parse_obj(text.splitlines(), **kwargs)


class TestFaceResolution(unittest.TestCase):
    """Test how face lines resolve against the vertex pools."""

    def test_index_translation(self):
        """1-based face indices resolve to pool entries 0, 1, 2."""
        result = parse(POOLS + "f 1/1/1 2/2/2 3/3/3\n")

        self.assertEqual(result.triangle_count, 1)
        corners = result.triangles[0].vertices
        self.assertEqual([c.position for c in corners], [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)])
        self.assertEqual([c.normal for c in corners], [(0.0, 0.0, 1.0), (0.0, 1.0, 0.0), (1.0, 0.0, 0.0)])
        self.assertEqual([c.texcoord for c in corners], [(0.0, 0.0), (1.0, 0.0), (0.25, 0.75)])

    def test_face_grammars(self):
        """All four face vertex forms decode, absent slots default to entry 0."""
        faces = {
            "f 1 2 3": ((0.0, 0.0), (0.0, 0.0, 1.0)),
            "f 1/3 2/3 3/3": ((0.25, 0.75), (0.0, 0.0, 1.0)),
            "f 1//2 2//2 3//2": ((0.0, 0.0), (0.0, 1.0, 0.0)),
            "f 1/3/2 2/3/2 3/3/2": ((0.25, 0.75), (0.0, 1.0, 0.0)),
        }
        for face, (texcoord, normal) in faces.items():
            with self.subTest(face=face):
                result = parse(POOLS + face + "\n")
                self.assertEqual(result.triangle_count, 1)
                for corner in result.triangles[0]:
                    self.assertEqual(corner.texcoord, texcoord)
                    self.assertEqual(corner.normal, normal)

    def test_absent_slots_without_pools(self):
        """Faces without texcoords or normals decode when those pools are empty."""
        result = parse("v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")

        corner = result.triangles[0].vertices[0]
        self.assertEqual(corner.normal, (0.0, 0.0, 0.0))
        self.assertEqual(corner.texcoord, (0.0, 0.0))

    def test_default_color(self):
        result = parse(POOLS + "f 1/1/1 2/2/2 3/3/3\n")

        for corner in result.triangles[0]:
            self.assertEqual(corner.color, mesh.DEFAULT_VERTEX_COLOR)

    def test_position_out_of_range(self):
        with self.assertRaises(UnresolvedReference) as ctx:
            parse(POOLS + "f 1 2 4\n")
        self.assertEqual(ctx.exception.kind, "position")
        self.assertEqual(ctx.exception.line_number, 10)

    def test_zero_index_is_out_of_range(self):
        with self.assertRaises(UnresolvedReference):
            parse(POOLS + "f 0 1 2\n")

    def test_normal_out_of_range(self):
        with self.assertRaises(UnresolvedReference) as ctx:
            parse(POOLS + "f 1//1 2//2 3//9\n")
        self.assertEqual(ctx.exception.kind, "normal")

    def test_texcoord_out_of_range_is_clamped(self):
        """An out-of-range texcoord falls back to the first entry with a warning."""
        with self.assertLogs("texmesh.pools", level="WARNING"):
            result = parse(POOLS + "f 1/1/1 2/9/2 3/3/3\n")

        self.assertEqual(result.triangles[0].vertices[1].texcoord, (0.0, 0.0))

    def test_strict_texcoords(self):
        with self.assertRaises(UnresolvedReference) as ctx:
            parse(POOLS + "f 1/1/1 2/9/2 3/3/3\n", strict_texcoords=True)
        self.assertEqual(ctx.exception.kind, "texcoord")

    def test_quad_rejected(self):
        with self.assertRaises(MalformedLine):
            parse(POOLS + "v 1 1 0\nf 1 2 4 3\n")

    def test_non_numeric_index(self):
        with self.assertRaises(MalformedLine):
            parse(POOLS + "f 1/a/1 2/2/2 3/3/3\n")


class TestAttributes(unittest.TestCase):
    """Test attribute directives."""

    def test_normals_are_unit_length(self):
        """Normals are normalized whatever their length in the file."""
        text = "vn 3 4 0\nvn 0 0 0.001\nvn -10 10 10\nvn 1e6 2e6 3e6\n"
        decoder = mesh.ObjDecoder()
        decoder.decode(text.splitlines())

        self.assertEqual(len(decoder.pool.normals), 4)
        for normal in decoder.pool.normals:
            self.assertTrue(np.isclose(np.linalg.norm(normal), 1.0))
        np.testing.assert_allclose(decoder.pool.normals[0], (0.6, 0.8, 0.0))

    def test_zero_normal_rejected(self):
        with self.assertRaises(MalformedLine):
            parse("vn 0 0 0\n")

    def test_texcoords_not_flipped(self):
        decoder = mesh.ObjDecoder()
        decoder.feed("vt 0.25 0.75")

        self.assertEqual(decoder.pool.texcoords, [(0.25, 0.75)])

    def test_malformed_position_not_added(self):
        """A bad numeric field raises and leaves no partial entry behind."""
        decoder = mesh.ObjDecoder()
        decoder.feed("v 1 2 3", 1)

        with self.assertRaises(MalformedLine) as ctx:
            decoder.feed("v 1.0 abc 3.0", 2)

        self.assertEqual(ctx.exception.line_number, 2)
        self.assertEqual(decoder.pool.positions, [(1.0, 2.0, 3.0)])

    def test_missing_component(self):
        with self.assertRaises(MalformedLine):
            parse("v 1 2\n")

    def test_w_component_ignored(self):
        decoder = mesh.ObjDecoder()
        decoder.feed("v 1 2 3 1")

        self.assertEqual(decoder.pool.positions, [(1.0, 2.0, 3.0)])


class TestMeshData(unittest.TestCase):
    """Test the decoded mesh container."""

    def test_triangle_count_matches_faces(self):
        """Unknown directives and comments are skipped; each face adds one triangle."""
        text = (
            "# exported by hand\n"
            "o box\n"
            + POOLS
            + "usemtl default\n"
            "s off\n"
            "g side\n"
            "f 1 2 3\n"
            "\n"
            "f 3/3/3 2/2/2 1/1/1\n"
            "f 1//1 3//3 2//2\n"
        )
        result = parse(text)

        self.assertEqual(result.triangle_count, 3)
        self.assertEqual(result.counts["faces"], 3)
        self.assertEqual(result.counts["positions"], 3)
        self.assertEqual(result.counts["normals"], 3)
        self.assertEqual(result.counts["texcoords"], 3)

    def test_vertex_array(self):
        result = parse(POOLS + "f 1/1/1 2/2/2 3/3/3\nf 3/3/3 2/2/2 1/1/1\n")
        array = result.to_vertex_array()

        self.assertEqual(array.dtype, np.float32)
        self.assertEqual(array.shape, (6, mesh.VERTEX_STRIDE))
        offset, size = mesh.VERTEX_LAYOUT["color"]
        np.testing.assert_allclose(array[:, offset:offset + size], 0.7)
        offset, size = mesh.VERTEX_LAYOUT["texcoord"]
        np.testing.assert_allclose(array[2, offset:offset + size], (0.25, 0.75))

    def test_empty_vertex_array(self):
        self.assertEqual(mesh.MeshData().to_vertex_array().shape, (0, mesh.VERTEX_STRIDE))


class TestLoadObj(unittest.TestCase):
    """Test reading meshes and their material libraries from disk."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.obj_path = os.path.join(self.temp_dir, "model.obj")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def write(self, name, text):
        with open(os.path.join(self.temp_dir, name), "w") as f:
            f.write(text)

    def test_material_library(self):
        """The texture path is resolved next to the material file but not loaded."""
        self.write("model.obj", "mtllib model.mtl\n" + POOLS + "f 1/1/1 2/2/2 3/3/3\n")
        self.write("model.mtl", "newmtl painted\nKd 1 1 1\nmap_Kd wood.ppm\n")

        result = mesh.load_obj(self.obj_path)

        self.assertEqual(result.triangle_count, 1)
        self.assertEqual(result.material.name, "painted")
        self.assertEqual(result.material.diffuse_texture, "wood.ppm")
        self.assertEqual(result.texture_path, os.path.join(self.temp_dir, "wood.ppm"))

    def test_missing_material_library(self):
        """A missing material library is logged and the mesh still loads."""
        self.write("model.obj", "mtllib missing.mtl\n" + POOLS + "f 1 2 3\n")

        with self.assertLogs("texmesh.mesh", level="WARNING"):
            result = mesh.load_obj(self.obj_path)

        self.assertEqual(result.triangle_count, 1)
        self.assertIsNone(result.material)
        self.assertIsNone(result.texture_path)

    def test_missing_mesh(self):
        with pytest.raises(UnreadableFile):
            mesh.load_obj(os.path.join(self.temp_dir, "missing.obj"))


if __name__ == "__main__":
    unittest.main()
