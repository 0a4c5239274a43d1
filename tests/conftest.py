import io
import logging

import pytest
from PIL import Image

from gltf_export.host import MeshData, SubMesh
from gltf_export.logs import CollectingHandler
from gltf_export.materials import ShadingConfig
from gltf_export.scene import InMemoryHost, SceneObject, cube_mesh


def png_bytes(size=(4, 4), color=(255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def bmp_bytes(size=(4, 4), color=(0, 255, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="BMP")
    return buf.getvalue()


def triangle_mesh(name="Triangle") -> MeshData:
    return MeshData(
        positions=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
        submeshes=[SubMesh([0, 1, 2])],
        name=name,
    )


@pytest.fixture
def host():
    return InMemoryHost()


@pytest.fixture
def red():
    return ShadingConfig(name="Red", base_color=(1.0, 0.0, 0.0, 1.0), metallic=0.0, roughness=0.5)


@pytest.fixture
def blue():
    return ShadingConfig(name="Blue", base_color=(0.0, 0.0, 1.0, 1.0))


@pytest.fixture
def simple_scene(red, blue):
    """Root -> (A: cube/red, B -> (C: cube/blue)), cube mesh shared"""
    cube = cube_mesh()
    root = SceneObject("Root")
    a = root.add_child(SceneObject("A", mesh=cube, materials=[red]))
    a.transform.translation = (1.0, 2.0, 3.0)
    b = root.add_child(SceneObject("B"))
    b.transform.scale = (2.0, 2.0, 2.0)
    b.add_child(SceneObject("C", mesh=cube, materials=[blue]))
    return root


@pytest.fixture
def collected():
    handler = CollectingHandler(level=logging.DEBUG)
    with handler:
        yield handler
