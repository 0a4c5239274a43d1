import math
import random

import pytest

from conftest import triangle_mesh
from gltf_export.errors import WriterDisposedError
from gltf_export.export import SceneExport
from gltf_export.host import CameraData, LightData, Transform
from gltf_export.materials import ShadingConfig
from gltf_export.reader import read_glb
from gltf_export.scene import InMemoryHost, SceneObject
from gltf_export.settings import SceneExportSettings
from gltf_export.validator import validate_document
from gltf_export.walker import SceneWalker
from gltf_export.writer import GltfWriter


def walk(host, roots, **settings):
    writer = GltfWriter(host=host)
    walker = SceneWalker(writer, host, SceneExportSettings(**settings))
    indices, ok = walker.walk(roots)
    return writer.document, indices, ok


def test_post_order_indices(host, simple_scene):
    doc, roots, ok = walk(host, [simple_scene])

    assert ok
    assert [n.name for n in doc.nodes] == ["A", "C", "B", "Root"]
    assert roots == [3]
    assert doc.nodes[2].children == [1]
    assert doc.nodes[3].children == [0, 2]
    # Every child index references an earlier node
    for index, node in enumerate(doc.nodes):
        assert all(child < index for child in node.children)


def test_transforms_and_resources(host, simple_scene):
    doc, _, _ = walk(host, [simple_scene])

    assert doc.nodes[0].translation == (1.0, 2.0, 3.0)
    assert doc.nodes[2].scale == (2.0, 2.0, 2.0)
    # One cube packed once, two material combinations
    assert len(doc.materials) == 2
    assert len(doc.meshes) == 2
    assert len(doc.accessors) == 4
    assert doc.nodes[0].mesh != doc.nodes[1].mesh


def test_shared_mesh_and_material_deduplicated(host, red):
    mesh = triangle_mesh()
    root = SceneObject("Root")
    for i in range(5):
        root.add_child(SceneObject(f"Copy{i}", mesh=mesh, materials=[red]))

    doc, _, ok = walk(host, [root])

    assert ok
    assert len(doc.meshes) == 1
    assert len(doc.materials) == 1
    assert {n.mesh for n in doc.nodes[:5]} == {0}


def test_editor_only_children_hoisted_with_world_transform(host):
    parent = SceneObject("Parent", transform=Transform(translation=(1.0, 0.0, 0.0)))
    helper = parent.add_child(SceneObject(
        "Helper", editor_only=True,
        transform=Transform(translation=(0.0, 2.0, 0.0), scale=(2.0, 2.0, 2.0)),
    ))
    helper.add_child(SceneObject("Child", transform=Transform(translation=(1.0, 0.0, 0.0))))

    doc, roots, ok = walk(host, [parent])

    assert ok
    names = [n.name for n in doc.nodes]
    assert "Helper" not in names
    child, parent_index = names.index("Child"), names.index("Parent")
    assert roots == [parent_index, child]
    assert doc.nodes[parent_index].children == []

    node = doc.nodes[child]
    assert node.translation == pytest.approx((3.0, 2.0, 0.0), abs=1e-5)
    assert node.scale == pytest.approx((2.0, 2.0, 2.0), abs=1e-5)
    assert node.rotation == pytest.approx((0.0, 0.0, 0.0, 1.0), abs=1e-5)


def test_hoisting_composes_rotation(host):
    half = math.sqrt(0.5)
    excluded = SceneObject("Excluded", active=False,
                           transform=Transform(rotation=(0.0, 0.0, half, half)))
    excluded.add_child(SceneObject("Child", transform=Transform(translation=(1.0, 0.0, 0.0))))

    doc, roots, _ = walk(host, [excluded])

    assert [n.name for n in doc.nodes] == ["Child"]
    assert roots == [0]
    node = doc.nodes[0]
    # 90 degrees about Z maps +X onto +Y
    assert node.translation == pytest.approx((0.0, 1.0, 0.0), abs=1e-5)
    assert node.rotation == pytest.approx((0.0, 0.0, half, half), abs=1e-5)


def test_hoisting_under_non_uniform_scale_with_rotation_is_flagged(host, collected):
    parent = SceneObject("Stretch", editor_only=True,
                         transform=Transform(scale=(2.0, 1.0, 1.0)))
    parent.add_child(SceneObject("Tilted", transform=Transform(rotation=(0.0, 0.0, math.sin(math.pi / 8),
                                                                           math.cos(math.pi / 8)))))
    parent.add_child(SceneObject("Straight", transform=Transform(translation=(1.0, 0.0, 0.0))))

    doc, roots, ok = walk(host, [parent])

    assert not ok
    assert [n.name for n in doc.nodes] == ["Tilted", "Straight"]
    assert roots == [0, 1]
    assert any("Tilted" in m and "sheared" in m for m in collected.warnings)
    # Axis-aligned scale carries over exactly
    assert doc.nodes[1].translation == pytest.approx((2.0, 0.0, 0.0), abs=1e-5)
    assert doc.nodes[1].scale == pytest.approx((2.0, 1.0, 1.0), abs=1e-5)


def test_inactive_nodes_kept_when_requested(host):
    root = SceneObject("Root", active=False)
    root.add_child(SceneObject("Child"))

    doc, roots, _ = walk(host, [root], only_active_in_hierarchy=False)

    assert [n.name for n in doc.nodes] == ["Child", "Root"]
    assert roots == [1]


def test_layer_mask(host, red):
    root = SceneObject("Root")
    root.add_child(SceneObject("Hidden", layer=3, mesh=triangle_mesh(), materials=[red]))
    group = root.add_child(SceneObject("Group", layer=3, mesh=triangle_mesh()))
    group.add_child(SceneObject("Visible"))

    doc, _, ok = walk(host, [root], layer_mask=1 << 0)

    assert ok
    names = [n.name for n in doc.nodes]
    assert "Hidden" not in names
    # Group is kept for its child but exports no content of its own
    group_node = doc.nodes[names.index("Group")]
    assert group_node.children == [names.index("Visible")]
    assert group_node.mesh is None
    assert doc.meshes == []


def test_disabled_components(host):
    root = SceneObject("Root", mesh=triangle_mesh(), renderer_enabled=False,
                       camera=CameraData(enabled=False), light=LightData(enabled=False))

    doc, _, _ = walk(host, [root])
    assert doc.nodes[0].mesh is None
    assert doc.nodes[0].camera is None
    assert doc.nodes[0].light is None

    doc, _, _ = walk(host, [root], disabled_components=True)
    assert doc.nodes[0].mesh == 0
    assert doc.nodes[0].camera == 0
    assert doc.nodes[0].light == 0


def test_cameras_and_lights(host):
    camera = CameraData(projection="orthographic", ortho_size=5.0, aspect_ratio=2.0)
    sun = LightData(type="directional", intensity=3.0, range=10.0)
    root = SceneObject("Root", camera=camera)
    root.add_child(SceneObject("Sun", light=sun))
    root.add_child(SceneObject("Sun2", light=sun))

    doc, _, ok = walk(host, [root])

    assert ok
    assert len(doc.cameras) == 1
    ortho = doc.cameras[0].to_dict()["orthographic"]
    assert (ortho["xmag"], ortho["ymag"]) == (10.0, 5.0)
    assert len(doc.lights) == 1
    assert "range" not in doc.lights[0].to_dict()
    assert doc.nodes[0].to_dict()["extensions"] == {"KHR_lights_punctual": {"light": 0}}


def test_cycle_detected(host, collected):
    root = SceneObject("Loop")
    root.add_child(root)

    doc, roots, ok = walk(host, [root])

    assert not ok
    assert roots == [0]
    assert doc.nodes[0].children == []
    assert any("own ancestor" in m for m in collected.errors)


def test_material_failure_degrades_flag(host, collected):
    root = SceneObject("Root", mesh=triangle_mesh(), materials=["not a material"])

    doc, roots, ok = walk(host, [root])

    assert not ok
    assert roots == [0]
    assert doc.nodes[0].mesh == 0
    assert doc.meshes[0].primitives[0].material is None
    assert collected.errors


def test_bad_light_degrades_flag_and_walk_continues(host):
    root = SceneObject("Root")
    root.add_child(SceneObject("Broken", light=LightData(type="area")))
    root.add_child(SceneObject("Fine"))

    doc, _, ok = walk(host, [root])

    assert not ok
    assert [n.name for n in doc.nodes] == ["Broken", "Fine", "Root"]
    assert doc.lights == []


class FlakyHost(InMemoryHost):
    def get_node_info(self, node):
        if node.name == "Flaky":
            raise RuntimeError("host query failed")
        return super().get_node_info(node)


def test_node_query_failure_skips_subtree():
    root = SceneObject("Root")
    flaky = root.add_child(SceneObject("Flaky"))
    flaky.add_child(SceneObject("Lost"))
    root.add_child(SceneObject("Kept"))

    doc, _, ok = walk(FlakyHost(), [root])

    assert not ok
    assert [n.name for n in doc.nodes] == ["Kept", "Root"]


class ChildlessHost(InMemoryHost):
    def get_children(self, node):
        if node.name == "Bad":
            raise RuntimeError("children unavailable")
        return super().get_children(node)


def test_children_query_failure_keeps_walking(red, collected):
    host = ChildlessHost()
    bad = SceneObject("Bad")
    bad.add_child(SceneObject("Unreachable"))
    good = SceneObject("Good", mesh=triangle_mesh(), materials=[red])

    doc, roots, ok = walk(host, [bad, good])

    assert not ok
    assert [n.name for n in doc.nodes] == ["Bad", "Good"]
    assert roots == [0, 1]
    assert doc.nodes[0].children == []
    assert doc.nodes[1].mesh == 0
    assert any("children of 'Bad'" in m for m in collected.errors)


def test_guid_written_as_extras(host):
    doc, _, _ = walk(host, [SceneObject("Root", guid="0f1e2d")])
    assert doc.nodes[0].to_dict()["extras"] == {"guid": "0f1e2d"}


def test_disposed_writer_aborts_walk(host, simple_scene):
    writer = GltfWriter(host=host)
    writer.dispose()

    with pytest.raises(WriterDisposedError):
        SceneWalker(writer, host).walk([simple_scene])


def random_tree(rng, mesh, materials, depth=0):
    node = SceneObject(
        f"n{rng.randrange(10 ** 6)}",
        layer=rng.choice([0, 0, 0, 5]),
        active=rng.random() > 0.15,
        editor_only=rng.random() < 0.1,
        transform=Transform(translation=(rng.uniform(-5, 5), 0.0, rng.uniform(-5, 5))),
    )
    if rng.random() < 0.5:
        node.mesh = mesh
        node.materials = [rng.choice(materials)]
    if depth < 4:
        for _ in range(rng.randrange(4)):
            node.add_child(random_tree(rng, mesh, materials, depth + 1))
    return node


@pytest.mark.parametrize("seed", range(8))
def test_random_hierarchies_have_no_dangling_indices(seed):
    rng = random.Random(seed)
    host = InMemoryHost()
    mesh = triangle_mesh()
    materials = [ShadingConfig(name=f"m{i}") for i in range(3)]
    roots = [random_tree(rng, mesh, materials) for _ in range(3)]

    export = SceneExport(host, scene_settings=SceneExportSettings(layer_mask=1))
    assert export.add_scene(roots, "Random")

    gltf, binary = read_glb(export.writer.to_glb())
    report = validate_document(gltf, [binary] if binary else [])
    assert report.error_count == 0, report.summary()
    assert len(gltf.get("materials", [])) <= 3
