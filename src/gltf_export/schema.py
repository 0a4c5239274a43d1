"""
glTF Document Model

In-memory glTF 2.0 document built during an export session.

Every top-level list is append-only for the lifetime of a session and every
cross reference is an index into one of them. ``Document.to_dict()`` produces
the JSON object written into the container.

Serialization Notes:
- Properties equal to their glTF default are omitted
- alphaCutoff is written only in MASK mode and only when it differs from 0.5
- Material extras (skybox, particles-unlit) are mutually exclusive
"""

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Set, Tuple

EPSILON = 1e-5
DEFAULT_ALPHA_CUTOFF = 0.5

# Accessor component types
BYTE = 5120
UNSIGNED_BYTE = 5121
SHORT = 5122
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

COMPONENT_SIZE: Dict[int, int] = {
    BYTE: 1,
    UNSIGNED_BYTE: 1,
    SHORT: 2,
    UNSIGNED_SHORT: 2,
    UNSIGNED_INT: 4,
    FLOAT: 4,
}

TYPE_COMPONENT_COUNT: Dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Buffer view targets
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

# Sampler enums
NEAREST = 9728
LINEAR = 9729
LINEAR_MIPMAP_LINEAR = 9987
REPEAT = 10497
CLAMP_TO_EDGE = 33071
MIRRORED_REPEAT = 33648

# Extensions
KHR_MATERIALS_UNLIT = "KHR_materials_unlit"
KHR_MATERIALS_PBR_SPECULAR_GLOSSINESS = "KHR_materials_pbrSpecularGlossiness"
KHR_MATERIALS_TRANSMISSION = "KHR_materials_transmission"
KHR_TEXTURE_TRANSFORM = "KHR_texture_transform"
KHR_LIGHTS_PUNCTUAL = "KHR_lights_punctual"


class PrimitiveMode(IntEnum):
    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6


class AlphaMode(Enum):
    OPAQUE = "OPAQUE"
    MASK = "MASK"
    BLEND = "BLEND"


class MaterialKind(Enum):
    METALLIC_ROUGHNESS = "metallic_roughness"
    SPECULAR_GLOSSINESS = "specular_glossiness"
    UNLIT = "unlit"


class SkyboxMode(IntEnum):
    SIX_SIDED = 0    # Six textures form the cube map
    CUBE_MAP = 1     # One equirectangular texture (panoramic)
    PROCEDURAL = 2   # No textures, parameters only


def _floats(values) -> List[float]:
    return [float(v) for v in values]


def _is_default(values, default) -> bool:
    return len(values) == len(default) and all(
        abs(float(a) - float(b)) <= EPSILON for a, b in zip(values, default)
    )


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _extras_dict(obj) -> Dict[str, Any]:
    """Dataclass -> camelCase JSON object; tuples become arrays"""
    result = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = _floats(value)
        result[_camel(f.name)] = value
    return result


def _extras_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    kwargs = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key in data:
            value = data[key]
            kwargs[f.name] = tuple(value) if isinstance(value, list) else value
    return kwargs


# ============================================================================
# Textures
# ============================================================================

@dataclass
class TextureTransform:
    """KHR_texture_transform payload"""
    offset: Tuple[float, float] = (0.0, 0.0)
    scale: Tuple[float, float] = (1.0, 1.0)
    rotation: float = 0.0

    @property
    def is_identity(self) -> bool:
        return (
            _is_default(self.offset, (0.0, 0.0))
            and _is_default(self.scale, (1.0, 1.0))
            and abs(self.rotation) <= EPSILON
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if not _is_default(self.offset, (0.0, 0.0)):
            result["offset"] = _floats(self.offset)
        if abs(self.rotation) > EPSILON:
            result["rotation"] = float(self.rotation)
        if not _is_default(self.scale, (1.0, 1.0)):
            result["scale"] = _floats(self.scale)
        return result


@dataclass
class TextureInfo:
    """Reference from a material to a texture"""
    index: int
    tex_coord: int = 0
    transform: Optional[TextureTransform] = None

    def _base_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"index": self.index}
        if self.tex_coord:
            result["texCoord"] = self.tex_coord
        if self.transform is not None and not self.transform.is_identity:
            result["extensions"] = {KHR_TEXTURE_TRANSFORM: self.transform.to_dict()}
        return result

    def to_dict(self) -> Dict[str, Any]:
        return self._base_dict()

    def extensions_used(self) -> Set[str]:
        if self.transform is not None and not self.transform.is_identity:
            return {KHR_TEXTURE_TRANSFORM}
        return set()


@dataclass
class NormalTextureInfo(TextureInfo):
    scale: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict()
        if abs(self.scale - 1.0) > EPSILON:
            result["scale"] = float(self.scale)
        return result


@dataclass
class OcclusionTextureInfo(TextureInfo):
    strength: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict()
        if abs(self.strength - 1.0) > EPSILON:
            result["strength"] = float(self.strength)
        return result


@dataclass
class Image:
    mime_type: str
    buffer_view: Optional[int] = None
    uri: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        if self.uri is not None:
            result["uri"] = self.uri
        else:
            result["bufferView"] = self.buffer_view
        result["mimeType"] = self.mime_type
        return result


@dataclass(frozen=True)
class Sampler:
    mag_filter: Optional[int] = LINEAR
    min_filter: Optional[int] = LINEAR_MIPMAP_LINEAR
    wrap_s: int = REPEAT
    wrap_t: int = REPEAT

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.mag_filter is not None:
            result["magFilter"] = self.mag_filter
        if self.min_filter is not None:
            result["minFilter"] = self.min_filter
        if self.wrap_s != REPEAT:
            result["wrapS"] = self.wrap_s
        if self.wrap_t != REPEAT:
            result["wrapT"] = self.wrap_t
        return result


@dataclass
class Texture:
    source: int
    sampler: Optional[int] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        if self.sampler is not None:
            result["sampler"] = self.sampler
        result["source"] = self.source
        return result


# ============================================================================
# Materials
# ============================================================================

@dataclass
class PbrMetallicRoughness:
    base_color_factor: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    base_color_texture: Optional[TextureInfo] = None
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    metallic_roughness_texture: Optional[TextureInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if not _is_default(self.base_color_factor, (1.0, 1.0, 1.0, 1.0)):
            result["baseColorFactor"] = _floats(self.base_color_factor)
        if self.base_color_texture is not None:
            result["baseColorTexture"] = self.base_color_texture.to_dict()
        if abs(self.metallic_factor - 1.0) > EPSILON:
            result["metallicFactor"] = float(self.metallic_factor)
        if abs(self.roughness_factor - 1.0) > EPSILON:
            result["roughnessFactor"] = float(self.roughness_factor)
        if self.metallic_roughness_texture is not None:
            result["metallicRoughnessTexture"] = self.metallic_roughness_texture.to_dict()
        return result

    def textures(self) -> List[TextureInfo]:
        return [t for t in (self.base_color_texture, self.metallic_roughness_texture) if t is not None]


@dataclass
class PbrSpecularGlossiness:
    diffuse_factor: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    specular_factor: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    glossiness_factor: float = 1.0
    diffuse_texture: Optional[TextureInfo] = None
    specular_glossiness_texture: Optional[TextureInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if not _is_default(self.diffuse_factor, (1.0, 1.0, 1.0, 1.0)):
            result["diffuseFactor"] = _floats(self.diffuse_factor)
        if not _is_default(self.specular_factor, (1.0, 1.0, 1.0)):
            result["specularFactor"] = _floats(self.specular_factor)
        if abs(self.glossiness_factor - 1.0) > EPSILON:
            result["glossinessFactor"] = float(self.glossiness_factor)
        if self.diffuse_texture is not None:
            result["diffuseTexture"] = self.diffuse_texture.to_dict()
        if self.specular_glossiness_texture is not None:
            result["specularGlossinessTexture"] = self.specular_glossiness_texture.to_dict()
        return result

    def textures(self) -> List[TextureInfo]:
        return [t for t in (self.diffuse_texture, self.specular_glossiness_texture) if t is not None]


@dataclass
class Transmission:
    factor: float = 0.0
    texture: Optional[TextureInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if abs(self.factor) > EPSILON:
            result["transmissionFactor"] = float(self.factor)
        if self.texture is not None:
            result["transmissionTexture"] = self.texture.to_dict()
        return result


@dataclass
class SkyboxData:
    """Environment/skybox parameters carried as material extras"""
    skybox_mode: SkyboxMode = SkyboxMode.CUBE_MAP

    # Cube map and panoramic
    sky_tint: Tuple[float, float, float, float] = (0.5, 0.5, 0.5, 1.0)
    exposure: float = 1.0
    rotation: float = 0.0

    # Procedural
    sun_size: float = 0.04
    sun_size_convergence: float = 5.0
    atmosphere_thickness: float = 1.0
    ground: Tuple[float, float, float, float] = (0.369, 0.349, 0.341, 1.0)

    # Six-sided cube map faces (texture indices, -1 = none)
    front_tex: int = -1
    back_tex: int = -1
    left_tex: int = -1
    right_tex: int = -1
    up_tex: int = -1
    down_tex: int = -1

    def to_dict(self) -> Dict[str, Any]:
        result = {"isSkybox": True}
        result.update(_extras_dict(self))
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkyboxData":
        kwargs = _extras_kwargs(cls, data)
        if "skybox_mode" in kwargs:
            kwargs["skybox_mode"] = SkyboxMode(kwargs["skybox_mode"])
        return cls(**kwargs)

    def face_textures(self) -> List[int]:
        return [self.front_tex, self.back_tex, self.left_tex,
                self.right_tex, self.up_tex, self.down_tex]


@dataclass
class ParticlesUnlitData:
    """Full parameter set of the particles-unlit shader family"""
    color: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    cutoff: float = 0.5
    bump_scale: float = 1.0
    emission_color: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    distortion_strength: float = 1.0
    distortion_blend: float = 0.5
    soft_particles_near_fade_distance: float = 0.0
    soft_particles_far_fade_distance: float = 1.0
    camera_near_fade_distance: float = 1.0
    camera_far_fade_distance: float = 2.0

    mode: float = 0.0
    color_mode: float = 0.0
    flipbook_mode: float = 0.0
    lighting_enabled: float = 0.0
    distortion_enabled: float = 0.0
    emission_enabled: float = 0.0
    blend_op: float = 0.0
    src_blend: float = 1.0
    dst_blend: float = 0.0
    z_write: float = 1.0
    cull: float = 2.0
    soft_particles_enabled: float = 0.0
    camera_fading_enabled: float = 0.0
    soft_particle_fade_params: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    camera_fade_params: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    color_add_sub_diff: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    distortion_strength_scaled: float = 0.1

    def to_dict(self) -> Dict[str, Any]:
        result = {"isParticlesUnlit": True}
        result.update(_extras_dict(self))
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParticlesUnlitData":
        return cls(**_extras_kwargs(cls, data))


@dataclass
class MaterialExtras:
    skybox: Optional[SkyboxData] = None
    particles_unlit: Optional[ParticlesUnlitData] = None
    alpha_premultiplied: bool = False

    def __post_init__(self):
        if self.skybox is not None and self.particles_unlit is not None:
            raise ValueError("skybox and particles-unlit extras are mutually exclusive")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.skybox is not None:
            result["skyboxData"] = self.skybox.to_dict()
        if self.particles_unlit is not None:
            result["particlesUnlitData"] = self.particles_unlit.to_dict()
        if self.alpha_premultiplied:
            result["alphaPremultiplied"] = True
        return result


@dataclass
class Material:
    """Tagged material variant: metallic-roughness, specular-glossiness or unlit"""
    name: Optional[str] = None
    kind: MaterialKind = MaterialKind.METALLIC_ROUGHNESS

    pbr_metallic_roughness: Optional[PbrMetallicRoughness] = None
    pbr_specular_glossiness: Optional[PbrSpecularGlossiness] = None

    normal_texture: Optional[NormalTextureInfo] = None
    occlusion_texture: Optional[OcclusionTextureInfo] = None
    emissive_texture: Optional[TextureInfo] = None
    emissive_factor: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    alpha_mode: AlphaMode = AlphaMode.OPAQUE
    alpha_cutoff: float = DEFAULT_ALPHA_CUTOFF
    double_sided: bool = False

    transmission: Optional[Transmission] = None
    extras: MaterialExtras = field(default_factory=MaterialExtras)

    def texture_infos(self) -> List[TextureInfo]:
        infos: List[TextureInfo] = []
        if self.pbr_metallic_roughness is not None:
            infos.extend(self.pbr_metallic_roughness.textures())
        if self.pbr_specular_glossiness is not None:
            infos.extend(self.pbr_specular_glossiness.textures())
        for info in (self.normal_texture, self.occlusion_texture, self.emissive_texture):
            if info is not None:
                infos.append(info)
        if self.transmission is not None and self.transmission.texture is not None:
            infos.append(self.transmission.texture)
        return infos

    def extensions_used(self) -> Set[str]:
        used: Set[str] = set()
        if self.kind == MaterialKind.UNLIT:
            used.add(KHR_MATERIALS_UNLIT)
        elif self.kind == MaterialKind.SPECULAR_GLOSSINESS:
            used.add(KHR_MATERIALS_PBR_SPECULAR_GLOSSINESS)
        if self.transmission is not None:
            used.add(KHR_MATERIALS_TRANSMISSION)
        for info in self.texture_infos():
            used |= info.extensions_used()
        return used

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name

        if self.pbr_metallic_roughness is not None:
            result["pbrMetallicRoughness"] = self.pbr_metallic_roughness.to_dict()
        if self.normal_texture is not None:
            result["normalTexture"] = self.normal_texture.to_dict()
        if self.occlusion_texture is not None:
            result["occlusionTexture"] = self.occlusion_texture.to_dict()
        if self.emissive_texture is not None:
            result["emissiveTexture"] = self.emissive_texture.to_dict()
        if any(c > EPSILON for c in self.emissive_factor):
            result["emissiveFactor"] = _floats(self.emissive_factor)

        if self.alpha_mode != AlphaMode.OPAQUE:
            result["alphaMode"] = self.alpha_mode.value
        if (self.alpha_mode == AlphaMode.MASK
                and abs(self.alpha_cutoff - DEFAULT_ALPHA_CUTOFF) > EPSILON):
            result["alphaCutoff"] = float(self.alpha_cutoff)
        if self.double_sided:
            result["doubleSided"] = True

        extensions: Dict[str, Any] = {}
        if self.kind == MaterialKind.UNLIT:
            extensions[KHR_MATERIALS_UNLIT] = {}
        elif self.kind == MaterialKind.SPECULAR_GLOSSINESS and self.pbr_specular_glossiness is not None:
            extensions[KHR_MATERIALS_PBR_SPECULAR_GLOSSINESS] = self.pbr_specular_glossiness.to_dict()
        if self.transmission is not None:
            extensions[KHR_MATERIALS_TRANSMISSION] = self.transmission.to_dict()
        if extensions:
            result["extensions"] = extensions

        extras = self.extras.to_dict()
        if extras:
            result["extras"] = extras
        return result


# ============================================================================
# Geometry
# ============================================================================

@dataclass
class Accessor:
    buffer_view: int
    component_type: int
    count: int
    type: str
    byte_offset: int = 0
    min: Optional[List[float]] = None
    max: Optional[List[float]] = None
    normalized: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"bufferView": self.buffer_view}
        if self.byte_offset:
            result["byteOffset"] = self.byte_offset
        result["componentType"] = self.component_type
        if self.normalized:
            result["normalized"] = True
        result["count"] = self.count
        result["type"] = self.type
        if self.min is not None:
            result["min"] = list(self.min)
        if self.max is not None:
            result["max"] = list(self.max)
        return result


@dataclass
class BufferView:
    buffer: int
    byte_offset: int
    byte_length: int
    byte_stride: Optional[int] = None
    target: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "buffer": self.buffer,
            "byteOffset": self.byte_offset,
            "byteLength": self.byte_length,
        }
        if self.byte_stride:
            result["byteStride"] = self.byte_stride
        if self.target is not None:
            result["target"] = self.target
        return result


@dataclass
class Buffer:
    byte_length: int
    uri: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"byteLength": self.byte_length}
        if self.uri is not None:
            result["uri"] = self.uri
        return result


@dataclass
class Primitive:
    attributes: Dict[str, int]
    indices: Optional[int] = None
    material: Optional[int] = None
    mode: PrimitiveMode = PrimitiveMode.TRIANGLES

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"attributes": dict(self.attributes)}
        if self.indices is not None:
            result["indices"] = self.indices
        if self.material is not None:
            result["material"] = self.material
        if self.mode != PrimitiveMode.TRIANGLES:
            result["mode"] = int(self.mode)
        return result


@dataclass
class Mesh:
    primitives: List[Primitive] = field(default_factory=list)
    name: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        result["primitives"] = [p.to_dict() for p in self.primitives]
        if self.extras:
            result["extras"] = dict(self.extras)
        return result


# ============================================================================
# Cameras and lights
# ============================================================================

@dataclass
class Camera:
    type: str = "perspective"  # perspective | orthographic
    name: Optional[str] = None
    # Perspective
    yfov: float = 0.8
    aspect_ratio: Optional[float] = None
    # Orthographic
    xmag: float = 1.0
    ymag: float = 1.0
    # Clipping (zfar None = infinite perspective)
    znear: float = 0.01
    zfar: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type}
        if self.name:
            result["name"] = self.name
        if self.type == "orthographic":
            result["orthographic"] = {
                "xmag": float(self.xmag),
                "ymag": float(self.ymag),
                "znear": float(self.znear),
                "zfar": float(self.zfar if self.zfar is not None else 1000.0),
            }
        else:
            projection: Dict[str, Any] = {"yfov": float(self.yfov), "znear": float(self.znear)}
            if self.aspect_ratio:
                projection["aspectRatio"] = float(self.aspect_ratio)
            if self.zfar is not None:
                projection["zfar"] = float(self.zfar)
            result["perspective"] = projection
        return result


@dataclass
class Light:
    """KHR_lights_punctual light"""
    type: str = "point"  # directional | point | spot
    name: Optional[str] = None
    color: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    intensity: float = 1.0
    range: Optional[float] = None
    inner_cone_angle: float = 0.0
    outer_cone_angle: float = 0.7853981633974483

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type}
        if self.name:
            result["name"] = self.name
        if not _is_default(self.color, (1.0, 1.0, 1.0)):
            result["color"] = _floats(self.color)
        if abs(self.intensity - 1.0) > EPSILON:
            result["intensity"] = float(self.intensity)
        if self.range is not None and self.type != "directional":
            result["range"] = float(self.range)
        if self.type == "spot":
            result["spot"] = {
                "innerConeAngle": float(self.inner_cone_angle),
                "outerConeAngle": float(self.outer_cone_angle),
            }
        return result


# ============================================================================
# Hierarchy
# ============================================================================

@dataclass
class Node:
    name: Optional[str] = None
    translation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    children: List[int] = field(default_factory=list)
    mesh: Optional[int] = None
    camera: Optional[int] = None
    light: Optional[int] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        if tuple(self.translation) != (0.0, 0.0, 0.0):
            result["translation"] = _floats(self.translation)
        if tuple(self.rotation) != (0.0, 0.0, 0.0, 1.0):
            result["rotation"] = _floats(self.rotation)
        if tuple(self.scale) != (1.0, 1.0, 1.0):
            result["scale"] = _floats(self.scale)
        if self.children:
            result["children"] = list(self.children)
        if self.mesh is not None:
            result["mesh"] = self.mesh
        if self.camera is not None:
            result["camera"] = self.camera
        if self.light is not None:
            result["extensions"] = {KHR_LIGHTS_PUNCTUAL: {"light": self.light}}
        if self.extras:
            result["extras"] = dict(self.extras)
        return result


@dataclass
class Scene:
    nodes: List[int] = field(default_factory=list)
    name: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        result["nodes"] = list(self.nodes)
        if self.extras:
            result["extras"] = dict(self.extras)
        return result


@dataclass
class Document:
    """Root aggregate of an export session"""
    generator: str = "gltf-export"
    scene: Optional[int] = None

    scenes: List[Scene] = field(default_factory=list)
    nodes: List[Node] = field(default_factory=list)
    meshes: List[Mesh] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    textures: List[Texture] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    samplers: List[Sampler] = field(default_factory=list)
    cameras: List[Camera] = field(default_factory=list)
    lights: List[Light] = field(default_factory=list)
    accessors: List[Accessor] = field(default_factory=list)
    buffer_views: List[BufferView] = field(default_factory=list)
    buffers: List[Buffer] = field(default_factory=list)

    extensions_used: Set[str] = field(default_factory=set)
    extensions_required: Set[str] = field(default_factory=set)

    def collect_extensions(self) -> Set[str]:
        used = set(self.extensions_used)
        for material in self.materials:
            used |= material.extensions_used()
        if self.lights:
            used.add(KHR_LIGHTS_PUNCTUAL)
        return used

    def to_dict(self) -> Dict[str, Any]:
        gltf: Dict[str, Any] = {
            "asset": {"version": "2.0", "generator": self.generator},
        }

        used = self.collect_extensions()
        if used:
            gltf["extensionsUsed"] = sorted(used)
        if self.extensions_required:
            gltf["extensionsRequired"] = sorted(self.extensions_required)
        if self.lights:
            gltf["extensions"] = {
                KHR_LIGHTS_PUNCTUAL: {"lights": [light.to_dict() for light in self.lights]}
            }

        if self.scene is not None:
            gltf["scene"] = self.scene

        sections = (
            ("scenes", self.scenes),
            ("nodes", self.nodes),
            ("meshes", self.meshes),
            ("materials", self.materials),
            ("textures", self.textures),
            ("images", self.images),
            ("samplers", self.samplers),
            ("cameras", self.cameras),
            ("accessors", self.accessors),
            ("bufferViews", self.buffer_views),
            ("buffers", self.buffers),
        )
        for key, items in sections:
            if items:
                gltf[key] = [item.to_dict() for item in items]
        return gltf
