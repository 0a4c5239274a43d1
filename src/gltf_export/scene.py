"""
In-memory scene host

A plain-Python scene graph implementing the host provider surface, plus a
loader for JSON scene descriptions used by the CLI and the MCP server.

Quick Start:
    from gltf_export.scene import InMemoryHost, SceneObject, cube_mesh

    host = InMemoryHost()
    root = SceneObject("Root")
    root.add_child(SceneObject("Cube", mesh=cube_mesh()))
"""

import base64
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .host import (
    CameraData,
    LightData,
    LightSettings,
    MeshData,
    NodeInfo,
    Renderable,
    ShadowCastingMode,
    ShadowSettings,
    SubMesh,
    TextureImage,
    Transform,
)
from .materials import ShadingConfig, SkyboxConfig, TextureSlot
from .schema import CLAMP_TO_EDGE, MIRRORED_REPEAT, NEAREST, PrimitiveMode, REPEAT, SkyboxMode

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class SceneObject:
    """A host node; identity (not value) is what the exporter deduplicates on"""
    name: Optional[str] = None
    transform: Transform = field(default_factory=Transform)
    children: List["SceneObject"] = field(default_factory=list)
    layer: int = 0
    active: bool = True
    editor_only: bool = False
    guid: Optional[str] = None

    # Content
    mesh: Optional[MeshData] = None
    materials: List[Any] = field(default_factory=list)
    shadows: Optional[ShadowSettings] = None
    renderer_enabled: bool = True
    camera: Optional[CameraData] = None
    light: Optional[LightData] = None

    def add_child(self, child: "SceneObject") -> "SceneObject":
        self.children.append(child)
        return child


class InMemoryHost:
    """SceneHost + EnvironmentProvider over SceneObject trees"""

    def __init__(self, skybox: Optional[SkyboxConfig] = None,
                 light_settings: Optional[LightSettings] = None):
        self.skybox = skybox
        self.light_settings = light_settings

    def get_children(self, node: SceneObject):
        return node.children

    def get_local_transform(self, node: SceneObject) -> Transform:
        return node.transform

    def get_node_info(self, node: SceneObject) -> NodeInfo:
        return NodeInfo(name=node.name, layer=node.layer, active=node.active,
                        editor_only=node.editor_only, guid=node.guid)

    def try_get_renderable(self, node: SceneObject) -> Optional[Renderable]:
        if node.mesh is None:
            return None
        return Renderable(mesh=node.mesh, materials=list(node.materials),
                          shadows=node.shadows, enabled=node.renderer_enabled)

    def try_get_camera(self, node: SceneObject) -> Optional[CameraData]:
        return node.camera

    def try_get_light(self, node: SceneObject) -> Optional[LightData]:
        return node.light

    def get_shading_config(self, material) -> ShadingConfig:
        if isinstance(material, ShadingConfig):
            return material
        raise TypeError(f"Not a material: {material!r}")

    def get_texture_bytes(self, texture) -> Optional[TextureImage]:
        if isinstance(texture, TextureImage):
            return texture
        return None

    # Environment capability
    def get_skybox(self) -> Optional[SkyboxConfig]:
        return self.skybox

    def get_light_settings(self) -> Optional[LightSettings]:
        return self.light_settings


def cube_mesh(size: float = 1.0, name: str = "Cube") -> MeshData:
    """Unit cube with per-face normals and UVs (24 vertices, 12 triangles)"""
    h = size / 2.0
    faces = (
        ((0, 0, 1), ((-h, -h, h), (h, -h, h), (h, h, h), (-h, h, h))),
        ((0, 0, -1), ((h, -h, -h), (-h, -h, -h), (-h, h, -h), (h, h, -h))),
        ((1, 0, 0), ((h, -h, h), (h, -h, -h), (h, h, -h), (h, h, h))),
        ((-1, 0, 0), ((-h, -h, -h), (-h, -h, h), (-h, h, h), (-h, h, -h))),
        ((0, 1, 0), ((-h, h, h), (h, h, h), (h, h, -h), (-h, h, -h))),
        ((0, -1, 0), ((-h, -h, -h), (h, -h, -h), (h, -h, h), (-h, -h, h))),
    )
    positions, normals, uvs, indices = [], [], [], []
    for normal, corners in faces:
        base = len(positions)
        positions.extend(corners)
        normals.extend([normal] * 4)
        uvs.extend([(0.0, 1.0), (1.0, 1.0), (1.0, 0.0), (0.0, 0.0)])
        indices.extend([base, base + 1, base + 2, base, base + 2, base + 3])
    return MeshData(positions=positions, normals=normals, uvs=uvs,
                    submeshes=[SubMesh(indices)], name=name)


# ============================================================================
# JSON scene descriptions
# ============================================================================

TOPOLOGIES = {
    "points": PrimitiveMode.POINTS,
    "lines": PrimitiveMode.LINES,
    "line_strip": PrimitiveMode.LINE_STRIP,
    "triangles": PrimitiveMode.TRIANGLES,
}

WRAP_MODES = {
    "repeat": REPEAT,
    "clamp": CLAMP_TO_EDGE,
    "mirror": MIRRORED_REPEAT,
}

SHADOW_CASTING_MODES = {
    "off": ShadowCastingMode.OFF,
    "on": ShadowCastingMode.ON,
    "two_sided": ShadowCastingMode.TWO_SIDED,
    "shadows_only": ShadowCastingMode.SHADOWS_ONLY,
}


def _lookup(table: Dict[str, Any], key: str, kind: str):
    try:
        return table[key]
    except KeyError:
        raise ValueError(f"Unknown {kind} '{key}'") from None


def _texture(name: str, desc: Dict[str, Any], base_dir: Path) -> TextureImage:
    if "path" in desc:
        data = (base_dir / desc["path"]).read_bytes()
    elif "data" in desc:
        data = base64.b64decode(desc["data"])
    else:
        raise ValueError(f"Texture '{name}' needs 'path' or 'data'")
    image = TextureImage(data=data, mime_type=desc.get("mimeType"), name=name)
    wrap = _lookup(WRAP_MODES, desc.get("wrap", "repeat"), "wrap mode")
    image.wrap_s = image.wrap_t = wrap
    if desc.get("filter") == "point":
        image.mag_filter = image.min_filter = NEAREST
    return image


def _slot(desc, textures: Dict[str, TextureImage]) -> Optional[TextureSlot]:
    if desc is None:
        return None
    if isinstance(desc, str):
        desc = {"texture": desc}
    return TextureSlot(
        texture=_lookup(textures, desc["texture"], "texture"),
        uv_channel=desc.get("uvChannel", 0),
        offset=tuple(desc.get("offset", (0.0, 0.0))),
        scale=tuple(desc.get("scale", (1.0, 1.0))),
        rotation=desc.get("rotation", 0.0),
    )


def _material(name: str, desc: Dict[str, Any], textures) -> ShadingConfig:
    config = ShadingConfig(name=desc.get("name", name))
    config.specular_glossiness = desc.get("specularGlossiness", False)
    config.unlit = desc.get("unlit", False)
    config.base_color = tuple(desc.get("baseColor", config.base_color))
    config.base_color_texture = _slot(desc.get("baseColorTexture"), textures)
    config.metallic = desc.get("metallic", config.metallic)
    config.roughness = desc.get("roughness", config.roughness)
    config.metallic_roughness_texture = _slot(desc.get("metallicRoughnessTexture"), textures)
    config.specular = tuple(desc.get("specular", config.specular))
    config.glossiness = desc.get("glossiness", config.glossiness)
    config.specular_glossiness_texture = _slot(desc.get("specularGlossinessTexture"), textures)
    config.normal_texture = _slot(desc.get("normalTexture"), textures)
    config.normal_scale = desc.get("normalScale", config.normal_scale)
    config.occlusion_texture = _slot(desc.get("occlusionTexture"), textures)
    config.occlusion_strength = desc.get("occlusionStrength", config.occlusion_strength)
    config.emissive = tuple(desc.get("emissive", config.emissive))
    config.emissive_texture = _slot(desc.get("emissiveTexture"), textures)
    config.alpha_clip = desc.get("alphaClip")
    config.translucent = desc.get("translucent", False)
    config.double_sided = desc.get("doubleSided", False)
    config.transmission = desc.get("transmission", 0.0)
    config.transmission_texture = _slot(desc.get("transmissionTexture"), textures)
    return config


def _shadows(desc: Dict[str, Any]) -> ShadowSettings:
    if "shadowCastingMode" in desc:
        mode = _lookup(SHADOW_CASTING_MODES, desc["shadowCastingMode"], "shadow casting mode")
    else:
        mode = ShadowCastingMode.ON if desc.get("castShadows", True) else ShadowCastingMode.OFF
    return ShadowSettings(mode, desc.get("receiveShadows", True))


def _mesh(name: str, desc: Dict[str, Any]) -> MeshData:
    if desc.get("primitive") == "cube":
        return cube_mesh(desc.get("size", 1.0), name=name)
    submeshes = [
        SubMesh(indices=s["indices"],
                topology=_lookup(TOPOLOGIES, s.get("topology", "triangles"), "topology"))
        for s in desc.get("submeshes", [])
    ]
    return MeshData(
        positions=[tuple(p) for p in desc["positions"]],
        submeshes=submeshes,
        normals=desc.get("normals"),
        tangents=desc.get("tangents"),
        uvs=desc.get("uvs"),
        uvs2=desc.get("uvs2"),
        colors=desc.get("colors"),
        name=name,
    )


def _camera(desc: Dict[str, Any]) -> CameraData:
    return CameraData(
        projection=desc.get("projection", "perspective"),
        yfov=math.radians(desc["fovDegrees"]) if "fovDegrees" in desc else desc.get("yfov", 0.8),
        aspect_ratio=desc.get("aspectRatio"),
        ortho_size=desc.get("orthoSize", 1.0),
        znear=desc.get("znear", 0.01),
        zfar=desc.get("zfar", 1000.0),
        name=desc.get("name"),
        enabled=desc.get("enabled", True),
    )


def _light(desc: Dict[str, Any]) -> LightData:
    return LightData(
        type=desc.get("type", "point"),
        color=tuple(desc.get("color", (1.0, 1.0, 1.0))),
        intensity=desc.get("intensity", 1.0),
        range=desc.get("range"),
        spot_angle=desc.get("spotAngle", math.pi / 4),
        inner_spot_angle=desc.get("innerSpotAngle", 0.0),
        name=desc.get("name"),
        enabled=desc.get("enabled", True),
    )


def _object(desc: Dict[str, Any], meshes, materials, cameras, lights) -> SceneObject:
    obj = SceneObject(
        name=desc.get("name"),
        transform=Transform(
            translation=tuple(desc.get("translation", (0.0, 0.0, 0.0))),
            rotation=tuple(desc.get("rotation", (0.0, 0.0, 0.0, 1.0))),
            scale=tuple(desc.get("scale", (1.0, 1.0, 1.0))),
        ),
        layer=desc.get("layer", 0),
        active=desc.get("active", True),
        editor_only=desc.get("editorOnly", False),
        guid=desc.get("guid"),
        renderer_enabled=desc.get("rendererEnabled", True),
    )
    if "mesh" in desc:
        obj.mesh = _lookup(meshes, desc["mesh"], "mesh")
        obj.materials = [
            None if m is None else _lookup(materials, m, "material")
            for m in desc.get("materials", [])
        ]
        if any(key in desc for key in ("shadowCastingMode", "castShadows", "receiveShadows")):
            obj.shadows = _shadows(desc)
    if "camera" in desc:
        camera = desc["camera"]
        obj.camera = _lookup(cameras, camera, "camera") if isinstance(camera, str) else _camera(camera)
    if "light" in desc:
        light = desc["light"]
        obj.light = _lookup(lights, light, "light") if isinstance(light, str) else _light(light)
    for child in desc.get("children", []):
        obj.add_child(_object(child, meshes, materials, cameras, lights))
    return obj


def _skybox(desc: Dict[str, Any], textures) -> SkyboxConfig:
    skybox = SkyboxConfig(mode=SkyboxMode[desc.get("mode", "CUBE_MAP").upper()])
    skybox.tint = tuple(desc.get("tint", skybox.tint))
    skybox.exposure = desc.get("exposure", skybox.exposure)
    skybox.rotation = desc.get("rotation", skybox.rotation)
    skybox.sun_size = desc.get("sunSize", skybox.sun_size)
    skybox.sun_size_convergence = desc.get("sunSizeConvergence", skybox.sun_size_convergence)
    skybox.atmosphere_thickness = desc.get("atmosphereThickness", skybox.atmosphere_thickness)
    skybox.ground = tuple(desc.get("ground", skybox.ground))
    skybox.panorama = _slot(desc.get("panorama"), textures)
    for face in ("front", "back", "left", "right", "up", "down"):
        if face in desc:
            setattr(skybox, face, _lookup(textures, desc[face], "texture"))
    return skybox


def scene_from_dict(data: Dict[str, Any],
                    base_dir: Union[str, Path] = ".") -> Tuple[InMemoryHost, List[SceneObject], str]:
    """Build a host and its root objects from a JSON scene description

    Returns (host, roots, scene name). Shared entries ("meshes",
    "materials", "textures", "cameras", "lights") are instantiated once so
    objects referencing the same name share one host resource.
    """
    base_dir = Path(base_dir)
    textures = {name: _texture(name, desc, base_dir) for name, desc in data.get("textures", {}).items()}
    materials = {name: _material(name, desc, textures) for name, desc in data.get("materials", {}).items()}
    meshes = {name: _mesh(name, desc) for name, desc in data.get("meshes", {}).items()}
    cameras = {name: _camera(desc) for name, desc in data.get("cameras", {}).items()}
    lights = {name: _light(desc) for name, desc in data.get("lights", {}).items()}

    roots = [_object(desc, meshes, materials, cameras, lights) for desc in data.get("objects", [])]

    host = InMemoryHost()
    environment = data.get("environment") or {}
    if "skybox" in environment:
        host.skybox = _skybox(environment["skybox"], textures)
    if "lightSettings" in environment:
        settings = environment["lightSettings"]
        host.light_settings = LightSettings(
            ambient_mode=settings.get("ambientMode", 0),
            intensity_multiplier=settings.get("intensityMultiplier", 1.0),
        )
        for key, attr in (("skyColour", "sky_colour"), ("equatorColour", "equator_colour"),
                          ("groundColour", "ground_colour"), ("ambientColour", "ambient_colour")):
            if key in settings:
                setattr(host.light_settings, attr, tuple(settings[key]))

    logger.info("Loaded scene description: %d roots, %d meshes, %d materials",
                len(roots), len(meshes), len(materials))
    return host, roots, data.get("name", "Scene")
