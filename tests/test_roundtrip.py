"""Exported files read back through pygltflib and the package reader"""

import asyncio
import math

import pytest
from pygltflib import GLTF2

from conftest import png_bytes
from gltf_export.export import SceneExport
from gltf_export.host import CameraData, LightData, LightSettings, TextureImage, Transform
from gltf_export.materials import ShadingConfig, SkyboxConfig, TextureSlot
from gltf_export.reader import load_gltf, read_accessor
from gltf_export.scene import InMemoryHost, SceneObject, cube_mesh
from gltf_export.schema import ParticlesUnlitData, SkyboxMode

TOLERANCE = 1e-5


def build_scene():
    """Three materials and two meshes spread over a five node tree"""
    albedo = TextureImage(data=png_bytes(), name="albedo")
    materials = [
        ShadingConfig(name="Painted", base_color_texture=TextureSlot(albedo, scale=(2.0, 2.0))),
        ShadingConfig(name="Glow", unlit=True, base_color=(0.0, 1.0, 0.0, 1.0)),
        ShadingConfig(name="Smoke", particles=ParticlesUnlitData(cutoff=0.1), translucent=True),
    ]
    cube, small = cube_mesh(), cube_mesh(0.5, name="Small")

    half = math.sqrt(0.5)
    root = SceneObject("Root", transform=Transform(translation=(0.0, 1.0, 0.0)))
    arm = root.add_child(SceneObject("Arm", transform=Transform(rotation=(0.0, half, 0.0, half))))
    arm.add_child(SceneObject("Hand", mesh=cube, materials=[materials[0]],
                              transform=Transform(translation=(1.0, 0.0, 0.0), scale=(0.5, 0.5, 0.5))))
    root.add_child(SceneObject("Lamp", light=LightData(type="spot", intensity=5.0, range=4.0)))
    root.add_child(SceneObject("Props", mesh=small, materials=[materials[1]]))
    root.add_child(SceneObject("Fog", mesh=small, materials=[materials[2]]))
    root.add_child(SceneObject("Eye", camera=CameraData(yfov=1.0, aspect_ratio=1.5)))
    return root


def export_to(path, host=None):
    export = SceneExport(host or InMemoryHost())
    assert export.add_scene([build_scene()], "Main")
    assert asyncio.run(export.save_to_file(path))


def names_tree(nodes, index):
    node = nodes[index]
    return node.name, [names_tree(nodes, child) for child in (node.children or [])]


@pytest.mark.parametrize("filename", ["scene.glb", "scene.gltf"])
def test_pygltflib_reads_export(tmp_path, filename):
    path = tmp_path / filename
    export_to(path)

    gltf = GLTF2().load(str(path))

    assert gltf.asset.version == "2.0"
    assert gltf.scene == 0
    assert len(gltf.materials) == 3
    assert len(gltf.meshes) == 3
    assert len(gltf.cameras) == 1
    assert len(gltf.textures) == 1
    assert names_tree(gltf.nodes, gltf.scenes[0].nodes[0]) == (
        "Root", [("Arm", [("Hand", [])]), ("Lamp", []), ("Props", []), ("Fog", []), ("Eye", [])]
    )
    assert sorted(gltf.extensionsUsed) == [
        "KHR_lights_punctual", "KHR_materials_unlit", "KHR_texture_transform",
    ]


def test_transforms_survive(tmp_path):
    path = tmp_path / "scene.glb"
    export_to(path)

    gltf = GLTF2().load(str(path))
    by_name = {node.name: node for node in gltf.nodes}
    half = math.sqrt(0.5)

    assert by_name["Root"].translation == pytest.approx([0.0, 1.0, 0.0], abs=TOLERANCE)
    assert by_name["Arm"].rotation == pytest.approx([0.0, half, 0.0, half], abs=TOLERANCE)
    assert by_name["Hand"].scale == pytest.approx([0.5, 0.5, 0.5], abs=TOLERANCE)
    assert by_name["Props"].translation is None


def test_geometry_survives(tmp_path):
    path = tmp_path / "scene.glb"
    export_to(path)

    content = load_gltf(path)
    gltf = content.gltf
    expected = cube_mesh()
    hand = next(n for n in gltf["nodes"] if n["name"] == "Hand")
    primitive = gltf["meshes"][hand["mesh"]]["primitives"][0]

    positions = read_accessor(content, primitive["attributes"]["POSITION"])
    assert len(positions) == 24
    for got, want in zip(positions, expected.positions):
        assert got == pytest.approx(want, abs=TOLERANCE)
    assert read_accessor(content, primitive["indices"]) == list(expected.submeshes[0].indices)

    accessor = gltf["accessors"][primitive["attributes"]["POSITION"]]
    assert accessor["min"] == [-0.5, -0.5, -0.5]
    assert accessor["max"] == [0.5, 0.5, 0.5]


def test_materials_and_extras_survive(tmp_path):
    path = tmp_path / "scene.glb"
    export_to(path)

    gltf = load_gltf(path).gltf
    painted, glow, smoke = gltf["materials"]

    transform = painted["pbrMetallicRoughness"]["baseColorTexture"]["extensions"]["KHR_texture_transform"]
    assert transform == {"scale": [2.0, 2.0]}
    assert glow["extensions"] == {"KHR_materials_unlit": {}}
    assert smoke["alphaMode"] == "BLEND"
    assert smoke["extras"]["particlesUnlitData"]["cutoff"] == pytest.approx(0.1)

    light = gltf["extensions"]["KHR_lights_punctual"]["lights"][0]
    assert light["type"] == "spot"
    assert light["range"] == 4.0
    assert gltf["images"][0]["mimeType"] == "image/png"


def test_environment_extras(tmp_path):
    host = InMemoryHost(
        skybox=SkyboxConfig(mode=SkyboxMode.PROCEDURAL, exposure=1.2),
        light_settings=LightSettings(ambient_mode=1, intensity_multiplier=0.8),
    )
    path = tmp_path / "scene.glb"
    export_to(path, host)

    gltf = load_gltf(path).gltf
    scene_extras = gltf["scenes"][0]["extras"]["lightSettings"]
    assert scene_extras["ambientMode"] == 1
    assert scene_extras["intensityMultiplier"] == pytest.approx(0.8)

    skybox = gltf["materials"][-1]
    assert skybox["name"] == "Skybox"
    assert skybox["extras"]["skyboxData"]["skyboxMode"] == 2
    assert skybox["extras"]["skyboxData"]["exposure"] == pytest.approx(1.2)


def test_identical_input_identical_output(tmp_path):
    first, second = tmp_path / "a.glb", tmp_path / "b.glb"
    export_to(first)
    export_to(second)

    assert first.read_bytes() == second.read_bytes()
